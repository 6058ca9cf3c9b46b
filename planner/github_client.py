import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

import requests
from dateutil import parser

logger = logging.getLogger(__name__)

GRAPHQL_URL = "https://api.github.com/graphql"
PAGE_SIZE = 100

ISSUES_QUERY = """
query($searchQuery: String!, $cursor: String) {
  search(query: $searchQuery, type: ISSUE, first: %d, after: $cursor) {
    nodes {
      ... on Issue {
        number
        title
        body
        updatedAt
      }
    }
    pageInfo {
      endCursor
      hasNextPage
    }
  }
}
""" % PAGE_SIZE


class GitHubClientError(Exception):
    """Base class for every failure raised while fetching issues."""


class EncodingError(GitHubClientError):
    """The request envelope could not be serialized."""


class RequestConstructionError(GitHubClientError):
    """The HTTP request object could not be built."""


class TransportError(GitHubClientError):
    """The network call failed."""


class CancelledError(TransportError):
    """The fetch context was cancelled or its deadline passed."""


class HTTPStatusError(GitHubClientError):
    """GitHub answered with a non-200 status."""

    def __init__(self, status_code, reason):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"github api returned non-200 status: {status_code} {reason}")


class DecodingError(GitHubClientError):
    """The response body is not the expected JSON shape."""


@dataclass(frozen=True)
class Issue:
    number: int
    title: str
    body: str
    updated_at: datetime


@dataclass(frozen=True)
class PageInfo:
    end_cursor: Optional[str]
    has_next_page: bool


@dataclass(frozen=True)
class SearchResultPage:
    nodes: Tuple[Issue, ...]
    page_info: PageInfo


@dataclass(frozen=True)
class QueryVariables:
    search_query: str
    cursor: Optional[str] = None

    def to_dict(self):
        return {"searchQuery": self.search_query, "cursor": self.cursor}


@dataclass(frozen=True)
class QueryRequest:
    query: str
    variables: QueryVariables

    def to_json(self):
        """Serializes the envelope to the GraphQL wire format."""
        try:
            return json.dumps({"query": self.query, "variables": self.variables.to_dict()})
        except (TypeError, ValueError) as e:
            raise EncodingError(f"failed to marshal graphql request: {e}") from e


class FetchContext:
    """
    Cancellation scope for one call to GitHubClient.get_issues.

    cancel() may be called from another thread. When a timeout is given it is
    an overall deadline covering every page, not a per-request limit.
    """

    def __init__(self, timeout=None):
        self._cancelled = threading.Event()
        self.deadline = None if timeout is None else time.monotonic() + timeout

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    @property
    def expired(self):
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self):
        """Seconds left before the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self):
        if self.cancelled:
            raise CancelledError("context cancelled")
        if self.expired:
            raise CancelledError("context deadline exceeded")


def format_timestamp(since):
    """Renders a datetime as UTC with second precision, e.g. 2023-01-01T00:00:00Z."""
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def build_search_query(owner, project_number, since):
    return f"is:issue is:open project:{owner}/{project_number} updated:>={format_timestamp(since)}"


def _require(mapping, key, kind, where):
    if not isinstance(mapping, dict) or key not in mapping:
        raise DecodingError(f"failed to decode graphql response: missing '{key}' in {where}")
    value = mapping[key]
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise DecodingError(
            f"failed to decode graphql response: '{key}' in {where} has unexpected type "
            f"{type(value).__name__}"
        )
    return value


def _decode_issue(node, index):
    where = f"search.nodes[{index}]"
    updated_at = _require(node, "updatedAt", str, where)
    try:
        updated = parser.isoparse(updated_at)
    except ValueError as e:
        raise DecodingError(f"failed to decode graphql response: bad updatedAt in {where}: {e}") from e
    return Issue(
        number=_require(node, "number", int, where),
        title=_require(node, "title", str, where),
        body=_require(node, "body", str, where),
        updated_at=updated,
    )


def decode_search_page(payload):
    """Builds a SearchResultPage from a decoded GraphQL response body."""
    if isinstance(payload, dict) and payload.get("errors") and not payload.get("data"):
        messages = "; ".join(str(err.get("message", err)) if isinstance(err, dict) else str(err)
                             for err in payload["errors"])
        raise DecodingError(f"graphql query failed: {messages}")

    data = _require(payload, "data", dict, "response")
    search = _require(data, "search", dict, "data")
    nodes = _require(search, "nodes", list, "search")
    page_info = _require(search, "pageInfo", dict, "search")

    end_cursor = page_info.get("endCursor")
    if end_cursor is not None and not isinstance(end_cursor, str):
        raise DecodingError("failed to decode graphql response: 'endCursor' in search.pageInfo is not a string")
    has_next_page = _require(page_info, "hasNextPage", bool, "search.pageInfo")
    # A next page without a cursor would restart from the first page.
    if has_next_page and end_cursor is None:
        raise DecodingError("failed to decode graphql response: hasNextPage is true but endCursor is null")

    return SearchResultPage(
        nodes=tuple(_decode_issue(node, i) for i, node in enumerate(nodes)),
        page_info=PageInfo(end_cursor=end_cursor, has_next_page=has_next_page),
    )


class GitHubClient:
    def __init__(self, token, session=None, endpoint=GRAPHQL_URL, timeout=30):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.headers = {
            "Authorization": f"bearer {token}",
            "Content-Type": "application/json"
        }

    def _request_timeout(self, context):
        remaining = context.remaining()
        if remaining is None:
            return self.timeout
        if self.timeout is None:
            return remaining
        return min(self.timeout, remaining)

    def fetch_page(self, variables, context=None):
        """Executes the issues query once and returns the decoded page."""
        context = context or FetchContext()
        context.check()

        body = QueryRequest(query=ISSUES_QUERY, variables=variables).to_json()

        try:
            prepared = self.session.prepare_request(
                requests.Request("POST", self.endpoint, data=body.encode("utf-8"), headers=self.headers)
            )
        except (requests.exceptions.RequestException, ValueError) as e:
            raise RequestConstructionError(f"failed to create http request: {e}") from e

        settings = self.session.merge_environment_settings(prepared.url, {}, None, None, None)
        try:
            response = self.session.send(prepared, timeout=self._request_timeout(context), **settings)
        except requests.exceptions.Timeout as e:
            if context.expired:
                raise CancelledError(f"failed to execute http request: context deadline exceeded: {e}") from e
            raise TransportError(f"failed to execute http request: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"failed to execute http request: {e}") from e

        with response:
            context.check()

            if response.status_code != 200:
                raise HTTPStatusError(response.status_code, response.reason)

            try:
                payload = response.json()
            except ValueError as e:
                raise DecodingError(f"failed to decode graphql response: {e}") from e

        return decode_search_page(payload)

    def get_issues(self, owner, project_number, since, context=None):
        """
        Fetches every open issue on the project board updated at or after since.

        Pages are requested one after another until GitHub reports no next page.
        If any page fails the error propagates and no issues are returned.
        """
        if not owner:
            raise ValueError("owner must be a non-empty string")
        if isinstance(project_number, bool) or not isinstance(project_number, int) or project_number <= 0:
            raise ValueError(f"project number must be a positive integer, got {project_number!r}")

        context = context or FetchContext()
        search_query = build_search_query(owner, project_number, since)
        all_issues = []
        cursor = None

        while True:
            page = self.fetch_page(QueryVariables(search_query=search_query, cursor=cursor), context)
            all_issues.extend(page.nodes)
            logger.debug("Fetched %d issues (total %d) for %s", len(page.nodes), len(all_issues), search_query)

            if not page.page_info.has_next_page:
                break
            cursor = page.page_info.end_cursor

        return all_issues
