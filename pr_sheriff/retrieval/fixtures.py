"""Replay `gh api` invocations from recorded `.http` fixture files (no network)."""

from __future__ import annotations

import os
import re
from typing import List, Optional
from urllib.parse import parse_qs, urlsplit

from .http_client import CommandResult, parse_gh_api_args

PULL_RE = re.compile(r"^/repos/[^/]+/[^/]+/pulls/(\d+)$")
ISSUE_RE = re.compile(r"^/repos/[^/]+/[^/]+/issues/(\d+)$")
ISSUE_COMMENTS_RE = re.compile(r"^/repos/[^/]+/[^/]+/issues/(\d+)/comments$")
REVIEW_COMMENTS_RE = re.compile(r"^/repos/[^/]+/[^/]+/pulls/(\d+)/comments$")


def fixture_name_for(args: List[str]) -> Optional[str]:
    """Return the fixture filename an invocation maps to, or None if unsupported."""
    request = parse_gh_api_args(args)
    if request["endpoint"] == "graphql":
        number = request["fields"].get("number")
        cursor = request["fields"].get("cursor")
        if number is None:
            return None
        return f"graphql_timeline_{number}_{cursor}.http" if cursor else f"graphql_timeline_{number}_page1.http"

    if request["method"] != "GET":
        return None

    parts = urlsplit(request["endpoint"])
    path = parts.path if parts.path.startswith("/") else f"/{parts.path}"
    page = (parse_qs(parts.query).get("page") or ["1"])[0]

    m = PULL_RE.match(path)
    if m:
        return f"rest_get_pr_{m.group(1)}.http"
    m = ISSUE_RE.match(path)
    if m:
        return f"rest_get_issue_{m.group(1)}.http"
    m = ISSUE_COMMENTS_RE.match(path)
    if m:
        return f"rest_issue_comments_{m.group(1)}_page{page}.http"
    m = REVIEW_COMMENTS_RE.match(path)
    if m:
        return f"rest_review_comments_{m.group(1)}_page{page}.http"
    if path == "/search/issues":
        return f"rest_search_issues_page{page}.http"
    return None


class FixtureRunner:
    """Runner that answers from `<fixtures_dir>/<name>.http`; misses fail like a dead `gh`."""

    def __init__(self, fixtures_dir: str) -> None:
        self.fixtures_dir = fixtures_dir
        self.calls: List[List[str]] = []

    def __call__(self, args: List[str]) -> CommandResult:
        self.calls.append(list(args))
        try:
            name = fixture_name_for(args)
        except ValueError as exc:
            return CommandResult(exit_code=1, stdout="", stderr=str(exc))
        if name is None:
            return CommandResult(exit_code=1, stdout="", stderr=f"no fixture mapping for: {' '.join(args[-1:])}")

        path = os.path.join(self.fixtures_dir, name)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return CommandResult(exit_code=0, stdout=f.read())
        except OSError as exc:
            return CommandResult(exit_code=1, stdout="", stderr=f"missing fixture {name}: {exc}")


__all__ = ["FixtureRunner", "fixture_name_for"]
