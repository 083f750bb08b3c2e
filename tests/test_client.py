"""Tests for pr_sheriff.retrieval.client covering pagination, caching, and failures.

Run with:
    pytest tests/test_client.py --maxfail=1 -v --cov=pr_sheriff.retrieval.client --cov-report=term-missing
"""

import datetime as dt
import os
from urllib.parse import parse_qs, urlsplit

import pytest

from conftest import StubRunner, read_fixture
from pr_sheriff.retrieval import client as client_module
from pr_sheriff.retrieval.client import GitHubClient, merge_comments
from pr_sheriff.retrieval.errors import GraphQLError, HttpStatusError, UnexpectedPayloadError


def _client(runner, cache_dir, **kwargs):
    kwargs.setdefault("sleep_fn", lambda _s: None)
    return GitHubClient("octo/hello", runner=runner, cache_dir=cache_dir, **kwargs)


def test_invalid_repo_is_rejected(cache_dir):
    with pytest.raises(ValueError):
        GitHubClient("not-a-repo", runner=StubRunner([]), cache_dir=cache_dir)


def test_list_pr_comments_paginates_and_merges_by_time(cache_dir):
    runner = StubRunner([
        read_fixture("rest_issue_comments_123_page1.http"),
        read_fixture("rest_issue_comments_123_page2.http"),
        read_fixture("rest_review_comments_123_page1.http"),
    ])
    comments = _client(runner, cache_dir).list_pr_comments(123, use_cache=False)

    assert [c["id"] for c in comments.issue_comments] == [1, 2]
    assert [c["id"] for c in comments.review_comments] == [3]
    assert [c["id"] for c in comments.all] == [1, 3, 2]
    assert runner.calls[0][-1] == "/repos/octo/hello/issues/123/comments?per_page=100"
    assert runner.calls[1][-1] == "https://api.github.com/repos/octo/hello/issues/123/comments?per_page=100&page=2"
    assert runner.calls[2][-1] == "/repos/octo/hello/pulls/123/comments?per_page=100"
    assert not os.path.exists(cache_dir)


def test_merge_comments_ties_keep_source_order_and_accept_camel_case():
    issue = [{"id": "i1", "created_at": "2024-01-02T00:00:00Z"}, {"id": "i2", "createdAt": "2024-01-01T00:00:00Z"}]
    review = [{"id": "r1", "created_at": "2024-01-02T00:00:00Z"}, {"id": "r0"}]
    assert [c["id"] for c in merge_comments(issue, review)] == ["r0", "i2", "i1", "r1"]


def test_get_pr_is_cached_within_ttl(cache_dir):
    runner = StubRunner([read_fixture("rest_get_pr_5.http")])
    gh = _client(runner, cache_dir, cache_ttl_seconds=3600)

    first = gh.get_pr(5)
    second = gh.get_pr(5)

    assert first["number"] == 5
    assert second == first
    assert len(runner.calls) == 1
    assert runner.calls[0] == ["api", "--include", "-X", "GET", "/repos/octo/hello/pulls/5"]


def test_use_cache_false_skips_read_and_write(cache_dir):
    runner = StubRunner([read_fixture("rest_get_pr_5.http"), read_fixture("rest_get_pr_5.http")])
    gh = _client(runner, cache_dir)
    gh.get_pr(5, use_cache=False)
    gh.get_pr(5, use_cache=False)
    assert len(runner.calls) == 2
    assert not os.path.exists(cache_dir)


def test_expired_cache_entry_is_refetched(cache_dir):
    now = [1_000_000.0]
    runner = StubRunner([read_fixture("rest_get_pr_5.http"), read_fixture("rest_get_pr_5.http")])
    gh = _client(runner, cache_dir, cache_ttl_seconds=60, clock=lambda: now[0])
    gh.get_pr(5)
    cached = os.path.join(cache_dir, os.listdir(cache_dir)[0])
    os.utime(cached, (now[0], now[0]))
    now[0] += 61
    gh.get_pr(5)
    assert len(runner.calls) == 2


def test_rate_limited_request_retries_once_after_retry_after(cache_dir):
    runner = StubRunner([read_fixture("rest_rate_limited.http"), read_fixture("rest_get_issue_1.http")])
    sleeps = []
    gh = _client(runner, cache_dir, sleep_fn=sleeps.append, max_backoff_sec=2)
    issue = gh.get_issue(1, use_cache=False)
    assert issue["number"] == 1
    assert len(runner.calls) == 2
    assert sleeps == [1]


def test_http_error_raises_with_operation_and_endpoint(cache_dir):
    runner = StubRunner(['HTTP/2.0 404 Not Found\n\n{"message": "Not Found"}'])
    with pytest.raises(HttpStatusError) as excinfo:
        _client(runner, cache_dir).get_issue(404)
    assert excinfo.value.status == 404
    assert "get_issue" in str(excinfo.value)
    assert "/repos/octo/hello/issues/404" in str(excinfo.value)
    assert not os.path.exists(cache_dir)


def test_error_on_later_page_fails_whole_call_and_caches_nothing(cache_dir):
    runner = StubRunner([
        read_fixture("rest_issue_comments_123_page1.http"),
        'HTTP/2.0 502 Bad Gateway\n\n{"message": "oops"}',
    ])
    with pytest.raises(HttpStatusError):
        _client(runner, cache_dir).list_pr_comments(123)
    assert not os.path.exists(cache_dir) or os.listdir(cache_dir) == []


def test_array_pagination_stops_at_page_cap(cache_dir, monkeypatch):
    monkeypatch.setattr(client_module, "MAX_PAGES", 3)
    looping = 'HTTP/2.0 200 OK\nLink: <https://api.github.com/loop?page=2>; rel="next"\n\n[{"id": 1}]'
    runner = StubRunner([looping] * 3 + [read_fixture("rest_review_comments_123_page1.http")])
    comments = _client(runner, cache_dir).list_pr_comments(9, use_cache=False)
    assert len(comments.issue_comments) == 3
    assert len(runner.calls) == 4


def test_array_pagination_rejects_object_payload(cache_dir):
    runner = StubRunner(['HTTP/2.0 200 OK\n\n{"message": "not a list"}'])
    with pytest.raises(UnexpectedPayloadError):
        _client(runner, cache_dir).list_pr_comments(1, use_cache=False)


def test_search_merged_prs_merges_items_and_builds_query(cache_dir):
    runner = StubRunner([read_fixture("rest_search_issues_page1.http"), read_fixture("rest_search_issues_page2.http")])
    gh = _client(runner, cache_dir)
    items = gh.search_merged_prs("fix", merged_after=dt.date(2024, 1, 1), use_cache=False)

    assert [item["number"] for item in items] == [5, 11]
    first_url = urlsplit(runner.calls[0][-1])
    assert first_url.path == "/search/issues"
    assert parse_qs(first_url.query)["q"] == ["repo:octo/hello is:pr is:merged fix merged:2024-01-01..*"]


def test_search_preserves_first_page_metadata_in_cache(cache_dir):
    runner = StubRunner([read_fixture("rest_search_issues_page1.http"), read_fixture("rest_search_issues_page2.http")])
    gh = _client(runner, cache_dir)
    result = gh._rest_paginate_search("search_merged_prs", "/search/issues", {"q": "x"}, use_cache=True)
    assert result["total_count"] == 2
    assert result["incomplete_results"] is False
    assert [item["number"] for item in result["items"]] == [5, 11]
    assert gh._rest_paginate_search("search_merged_prs", "/search/issues", {"q": "x"}, use_cache=True) == result
    assert len(runner.calls) == 2


def test_search_without_terms_or_dates(cache_dir):
    runner = StubRunner(['HTTP/2.0 200 OK\n\n{"total_count": 0, "items": []}'])
    assert _client(runner, cache_dir).search_merged_prs(merged_before="2024-02-01", use_cache=False) == []
    q = parse_qs(urlsplit(runner.calls[0][-1]).query)["q"]
    assert q == ["repo:octo/hello is:pr is:merged merged:*..2024-02-01"]


def test_issue_timeline_follows_end_cursor(cache_dir):
    runner = StubRunner([read_fixture("graphql_timeline_7_page1.http"), read_fixture("graphql_timeline_7_c1.http")])
    nodes = _client(runner, cache_dir).get_issue_timeline(7, use_cache=False)

    assert [n["__typename"] for n in nodes] == ["CrossReferencedEvent", "ClosedEvent"]
    assert len(runner.calls) == 2
    assert runner.calls[0][:3] == ["api", "graphql", "--include"]
    assert "-F" in runner.calls[0] and "number=7" in runner.calls[0]
    assert not any(arg.startswith("cursor=") for arg in runner.calls[0])
    assert "cursor=c1" in runner.calls[1]


def test_issue_timeline_stops_when_cursor_missing(cache_dir):
    page = ('HTTP/2.0 200 OK\n\n{"data": {"repository": {"issue": {"timelineItems": '
            '{"nodes": [{"__typename": "LabeledEvent"}], "pageInfo": {"hasNextPage": true, "endCursor": null}}}}}}')
    runner = StubRunner([page])
    assert len(_client(runner, cache_dir).get_issue_timeline(3, use_cache=False)) == 1
    assert len(runner.calls) == 1


def test_issue_timeline_graphql_errors_are_fatal_and_not_cached(cache_dir):
    runner = StubRunner(['HTTP/2.0 200 OK\n\n{"data": null, "errors": [{"message": "Could not resolve to an Issue"}]}'])
    with pytest.raises(GraphQLError) as excinfo:
        _client(runner, cache_dir).get_issue_timeline(99)
    assert "Could not resolve" in str(excinfo.value)
    assert not os.path.exists(cache_dir)


def test_issue_timeline_is_cached(cache_dir):
    runner = StubRunner([read_fixture("graphql_timeline_7_page1.http"), read_fixture("graphql_timeline_7_c1.http")])
    gh = _client(runner, cache_dir)
    first = gh.get_issue_timeline(7)
    assert gh.get_issue_timeline(7) == first
    assert len(runner.calls) == 2
