"""Typed GitHub operations with REST/GraphQL pagination and on-disk caching.

Every operation goes through `request_with_backoff`, so callers get rate-limit
handling for free; results are cached per request shape and only written after
the whole (possibly multi-page) fetch succeeded.
"""

from __future__ import annotations

import datetime as dt
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import urlencode

from .config import (
    CACHE_DIR,
    CACHE_TTL_SEC,
    MAX_BACKOFF_SEC,
    MAX_PAGES,
    PER_PAGE,
    TRANSPORT,
)
from .errors import GraphQLError, HttpStatusError, UnexpectedPayloadError
from .file_cache import cache_key, read_json_cache, write_json_cache
from .http_client import (
    GhCliRunner,
    RawHttpResponse,
    RequestsRunner,
    Runner,
    parse_link_header,
    request_with_backoff,
)

REPO_RE = re.compile(r"^([^/\s]+)/([^/\s]+)$")

ISSUE_TIMELINE_QUERY = """
query($owner: String!, $name: String!, $number: Int!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    issue(number: $number) {
      timelineItems(
        first: 100,
        after: $cursor,
        itemTypes: [
          CROSS_REFERENCED_EVENT,
          REFERENCED_EVENT,
          CLOSED_EVENT,
          REOPENED_EVENT,
          LABELED_EVENT,
          UNLABELED_EVENT
        ]
      ) {
        nodes {
          __typename
          ... on CrossReferencedEvent {
            createdAt
            actor { login }
            source {
              __typename
              ... on PullRequest { number title url mergedAt closedAt }
              ... on Issue { number title url closedAt }
            }
          }
          ... on ReferencedEvent {
            createdAt
            actor { login }
            commit { oid url messageHeadline }
            commitRepository { nameWithOwner }
          }
          ... on ClosedEvent {
            createdAt
            actor { login }
            closer {
              __typename
              ... on PullRequest { number title url mergedAt closedAt }
              ... on Commit { oid url messageHeadline }
            }
          }
          ... on ReopenedEvent { createdAt actor { login } }
          ... on LabeledEvent { createdAt actor { login } label { name } }
          ... on UnlabeledEvent { createdAt actor { login } label { name } }
        }
        pageInfo { hasNextPage endCursor }
      }
    }
  }
}
""".strip()


@dataclass
class PullRequestComments:
    issue_comments: List[Dict[str, Any]] = field(default_factory=list)
    review_comments: List[Dict[str, Any]] = field(default_factory=list)
    all: List[Dict[str, Any]] = field(default_factory=list)


def parse_owner_repo(repo: str) -> tuple[str, str]:
    m = REPO_RE.match(repo or "")
    if not m:
        raise ValueError(f'Invalid repo "{repo}". Expected "owner/name".')
    return m.group(1), m.group(2)


def encode_query(params: Optional[Dict[str, Any]]) -> str:
    qs = urlencode({k: v for k, v in (params or {}).items() if v is not None})
    return f"?{qs}" if qs else ""


def iso_date(value: Union[str, dt.date, dt.datetime]) -> str:
    """Render a search date bound as YYYY-MM-DD; strings pass through unchanged."""
    if isinstance(value, str):
        return value
    return value.isoformat()[:10]


def comment_created_at(comment: Dict[str, Any]) -> str:
    return comment.get("created_at") or comment.get("createdAt") or ""


def merge_comments(issue_comments: List[Dict[str, Any]],
                   review_comments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Interleave both comment kinds by creation time; ties keep source order."""
    return sorted([*issue_comments, *review_comments], key=comment_created_at)


def _timeline_container(data: Any) -> Optional[Dict[str, Any]]:
    issue = ((data or {}).get("repository") or {}).get("issue") or {}
    return issue.get("timelineItems")


def default_runner() -> Runner:
    if TRANSPORT == "requests":
        return RequestsRunner()
    return GhCliRunner()


class GitHubClient:
    """GitHub data access for a single repository, backed by `gh api`."""

    def __init__(self,
                 repo: str,
                 *,
                 cache_dir: str = CACHE_DIR,
                 cache_ttl_seconds: Optional[float] = CACHE_TTL_SEC,
                 runner: Optional[Runner] = None,
                 sleep_fn: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.time,
                 max_backoff_sec: float = MAX_BACKOFF_SEC) -> None:
        self.owner, self.name = parse_owner_repo(repo)
        self.repo = f"{self.owner}/{self.name}"
        self.cache_dir = cache_dir
        self.cache_ttl_seconds = cache_ttl_seconds
        self.runner = runner or default_runner()
        self.sleep_fn = sleep_fn
        self.clock = clock
        self.max_backoff_sec = max_backoff_sec

    # -- typed operations -------------------------------------------------

    def get_pr(self, number: int, *, use_cache: bool = True) -> Any:
        return self._rest_request(
            "get_pr", "GET", f"/repos/{self.owner}/{self.name}/pulls/{number}", use_cache=use_cache
        )

    def get_issue(self, number: int, *, use_cache: bool = True) -> Any:
        return self._rest_request(
            "get_issue", "GET", f"/repos/{self.owner}/{self.name}/issues/{number}", use_cache=use_cache
        )

    def list_pr_comments(self, number: int, *, use_cache: bool = True) -> PullRequestComments:
        """Issue comments plus inline review comments, and both merged by time."""
        issue_comments = self._rest_paginate_array(
            "list_pr_comments",
            f"/repos/{self.owner}/{self.name}/issues/{number}/comments",
            use_cache=use_cache,
        )
        review_comments = self._rest_paginate_array(
            "list_pr_comments",
            f"/repos/{self.owner}/{self.name}/pulls/{number}/comments",
            use_cache=use_cache,
        )
        return PullRequestComments(
            issue_comments=issue_comments,
            review_comments=review_comments,
            all=merge_comments(issue_comments, review_comments),
        )

    def get_issue_timeline(self, number: int, *, use_cache: bool = True) -> List[Dict[str, Any]]:
        """Timeline nodes (closed, cross-referenced, ...) via GraphQL."""
        return self._graphql_paginate_nodes(
            "get_issue_timeline",
            ISSUE_TIMELINE_QUERY,
            {"owner": self.owner, "name": self.name, "number": number},
            extract=_timeline_container,
            use_cache=use_cache,
        )

    def search_merged_prs(self,
                          query: str = "",
                          merged_after: Optional[Union[str, dt.date]] = None,
                          merged_before: Optional[Union[str, dt.date]] = None,
                          *,
                          use_cache: bool = True) -> List[Dict[str, Any]]:
        """Search merged PRs in this repo, optionally bounded by merge date (inclusive)."""
        q_parts = [part for part in (f"repo:{self.repo}", "is:pr", "is:merged", (query or "").strip()) if part]
        if merged_after or merged_before:
            after = iso_date(merged_after) if merged_after else "*"
            before = iso_date(merged_before) if merged_before else "*"
            q_parts.append(f"merged:{after}..{before}")

        result = self._rest_paginate_search(
            "search_merged_prs", "/search/issues", {"q": " ".join(q_parts)}, use_cache=use_cache
        )
        return result["items"]

    # -- caching ----------------------------------------------------------

    def _cached(self, parts: Dict[str, Any], use_cache: bool, fetch: Callable[[], Any]) -> Any:
        key = cache_key({**parts, "repo": self.repo})
        if use_cache:
            cached = read_json_cache(self.cache_dir, key, self.cache_ttl_seconds, now=self.clock())
            if cached is not None:
                return cached
        value = fetch()
        if use_cache:
            write_json_cache(self.cache_dir, key, value)
        return value

    # -- transport --------------------------------------------------------

    def _request_raw(self, args: List[str]) -> RawHttpResponse:
        return request_with_backoff(
            self.runner,
            args,
            max_backoff_sec=self.max_backoff_sec,
            sleep_fn=self.sleep_fn,
            clock=self.clock,
        )

    def _rest_get(self, operation: str, endpoint: str, url: str, method: str = "GET") -> RawHttpResponse:
        resp = self._request_raw(["api", "--include", "-X", method, url])
        if resp.status is not None and resp.status >= 400:
            raise HttpStatusError(operation, endpoint, resp.status)
        return resp

    def _rest_request(self,
                      operation: str,
                      method: str,
                      endpoint: str,
                      params: Optional[Dict[str, Any]] = None,
                      *,
                      use_cache: bool) -> Any:
        def fetch() -> Any:
            url = f"{endpoint}{encode_query(params)}" if params else endpoint
            return self._rest_get(operation, endpoint, url, method).body

        parts = {"kind": "rest", "method": method, "endpoint": endpoint, "params": params}
        return self._cached(parts, use_cache, fetch)

    def _rest_paginate_array(self,
                             operation: str,
                             endpoint: str,
                             params: Optional[Dict[str, Any]] = None,
                             *,
                             use_cache: bool) -> List[Any]:
        params = params or {}

        def fetch() -> List[Any]:
            url = f"{endpoint}{encode_query({**params, 'per_page': PER_PAGE})}"
            out: List[Any] = []
            for _ in range(MAX_PAGES):
                resp = self._rest_get(operation, endpoint, url)
                if not isinstance(resp.body, list):
                    raise UnexpectedPayloadError(f"{operation}: expected array response for {endpoint}")
                out.extend(resp.body)
                next_url = parse_link_header(resp.headers.get("link")).get("next")
                if not next_url:
                    break
                url = next_url
            return out

        parts = {"kind": "rest-array", "endpoint": endpoint, "params": params}
        return self._cached(parts, use_cache, fetch)

    def _rest_paginate_search(self,
                              operation: str,
                              endpoint: str,
                              params: Dict[str, Any],
                              *,
                              use_cache: bool) -> Dict[str, Any]:
        def fetch() -> Dict[str, Any]:
            url = f"{endpoint}{encode_query({**params, 'per_page': PER_PAGE})}"
            items: List[Any] = []
            first_page: Optional[Dict[str, Any]] = None
            for _ in range(MAX_PAGES):
                resp = self._rest_get(operation, endpoint, url)
                if not isinstance(resp.body, dict):
                    raise UnexpectedPayloadError(f"{operation}: expected object response for {endpoint}")
                if first_page is None:
                    first_page = resp.body
                items.extend(resp.body.get("items") or [])
                next_url = parse_link_header(resp.headers.get("link")).get("next")
                if not next_url:
                    break
                url = next_url
            return {**(first_page or {}), "items": items}

        parts = {"kind": "rest-search", "endpoint": endpoint, "params": params}
        return self._cached(parts, use_cache, fetch)

    def _graphql_paginate_nodes(self,
                                operation: str,
                                query: str,
                                variables: Dict[str, Any],
                                *,
                                extract: Callable[[Any], Optional[Dict[str, Any]]],
                                use_cache: bool) -> List[Any]:
        def fetch() -> List[Any]:
            nodes: List[Any] = []
            cursor: Optional[str] = None
            for _ in range(MAX_PAGES):
                resp = self._request_raw(graphql_args(query, {**variables, "cursor": cursor}))
                if resp.status is not None and resp.status >= 400:
                    raise HttpStatusError(operation, "graphql", resp.status)
                body = resp.body if isinstance(resp.body, dict) else {}
                if body.get("errors"):
                    raise GraphQLError(operation, body["errors"])

                container = extract(body.get("data")) or {}
                nodes.extend(container.get("nodes") or [])
                page_info = container.get("pageInfo") or {}
                if not page_info.get("hasNextPage"):
                    break
                cursor = page_info.get("endCursor")
                if not cursor:
                    break
            return nodes

        parts = {"kind": "graphql", "query": query, "variables": variables}
        return self._cached(parts, use_cache, fetch)


def graphql_args(query: str, variables: Dict[str, Any]) -> List[str]:
    """Build `gh api graphql` args; strings use -f, numbers/bools use typed -F. None is omitted."""
    args = ["api", "graphql", "--include", "-f", f"query={query}"]
    for name, value in variables.items():
        if value is None:
            continue
        if isinstance(value, bool):
            args.extend(["-F", f"{name}={'true' if value else 'false'}"])
        elif isinstance(value, int):
            args.extend(["-F", f"{name}={value}"])
        else:
            args.extend(["-f", f"{name}={value}"])
    return args


__all__ = [
    "GitHubClient",
    "PullRequestComments",
    "ISSUE_TIMELINE_QUERY",
    "parse_owner_repo",
    "encode_query",
    "iso_date",
    "merge_comments",
    "graphql_args",
    "default_runner",
]
