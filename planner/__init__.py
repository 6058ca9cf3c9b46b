"""Fetch open issues from a GitHub project board."""
