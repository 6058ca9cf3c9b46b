import argparse
import datetime
import logging
import sys

from dateutil import parser

from planner.config import ConfigError, load_settings
from planner.github_client import FetchContext, GitHubClient, GitHubClientError

# ANSI Colors
CYAN = "\033[96m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RESET = "\033[0m"
BOLD = "\033[1m"


def resolve_since(since, days):
    """Returns the --since instant, or now minus --days when it is not given."""
    if since:
        since_dt = parser.parse(since)
        if since_dt.tzinfo is None:
            since_dt = since_dt.replace(tzinfo=datetime.timezone.utc)
        return since_dt.astimezone(datetime.timezone.utc)
    return datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=days)


def build_parser():
    arg_parser = argparse.ArgumentParser(description='List open GitHub issues on a project board.')
    arg_parser.add_argument('--owner', help='Project owner (default: PLANNER_OWNER)')
    arg_parser.add_argument('--project', type=int, help='Project number (default: PLANNER_PROJECT_NUMBER)')
    arg_parser.add_argument('--since', help='Only issues updated at or after this date')
    arg_parser.add_argument('--days', type=int, default=365, help='Look back this many days when --since is not set (default: 365)')
    arg_parser.add_argument('--timeout', type=float, help='Give up after this many seconds')
    arg_parser.add_argument('--env-file', help='Path to a .env file')
    arg_parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    return arg_parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # Configuration
    try:
        settings = load_settings(args.env_file)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    owner = args.owner or settings.owner
    project_number = args.project if args.project is not None else settings.project_number
    if project_number <= 0:
        print(f"Error: Invalid project number: {project_number}", file=sys.stderr)
        return 2

    try:
        since = resolve_since(args.since, args.days)
    except (ValueError, OverflowError) as e:
        print(f"Error: Invalid --since value {args.since!r}: {e}", file=sys.stderr)
        return 2

    client = GitHubClient(settings.github_token)
    context = FetchContext(timeout=args.timeout)

    print(f"Fetching issues for {CYAN}{owner}/{project_number}{RESET}...")
    try:
        issues = client.get_issues(owner, project_number, since, context)
    except GitHubClientError as e:
        print(f"Failed to get issues: {e}", file=sys.stderr)
        return 1
    finally:
        client.session.close()

    print(f"Found {BOLD}{len(issues)}{RESET} issues in project {owner}/{project_number} updated since {since.strftime('%Y-%m-%d')}:")
    for issue in issues:
        print(f"{YELLOW}#{issue.number}{RESET}: {GREEN}{issue.title}{RESET} (Updated: {issue.updated_at.strftime('%Y-%m-%d')})")
    return 0


if __name__ == '__main__':
    sys.exit(main())
