import io
import json

import pytest
import requests


def make_response(payload=None, status_code=200, reason="OK", raw_body=None):
    """Builds a real requests.Response carrying a JSON (or raw) body."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.encoding = "utf-8"
    if raw_body is None:
        raw_body = json.dumps(payload).encode("utf-8")
    response.raw = io.BytesIO(raw_body)
    return response


def make_issue(number, updated_at="2023-06-01T12:00:00Z"):
    return {
        "number": number,
        "title": f"Issue {number}",
        "body": f"Body of issue {number}",
        "updatedAt": updated_at,
    }


def make_page(numbers, end_cursor=None, has_next_page=False):
    return {
        "data": {
            "search": {
                "nodes": [make_issue(n) for n in numbers],
                "pageInfo": {"endCursor": end_cursor, "hasNextPage": has_next_page},
            }
        }
    }


@pytest.fixture
def session():
    s = requests.Session()
    yield s
    s.close()
