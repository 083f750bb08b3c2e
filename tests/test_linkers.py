"""Tests for pr_sheriff.graph.linkers: same-repo reference extraction.

Run with:
    pytest tests/test_linkers.py --maxfail=1 -v --cov=pr_sheriff.graph.linkers --cov-report=term-missing
"""

import pytest

from pr_sheriff.graph.linkers import (
    extract_referenced_numbers,
    extract_referenced_numbers_from_pr_and_comments,
)


def test_all_three_forms_are_unioned_sorted_and_deduplicated():
    text = (
        "Fixes #12 and #7.\n"
        "Also octo/hello#42, other/repo#99, and again #12.\n"
        "See https://github.com/octo/hello/issues/100 and https://github.com/octo/hello/pull/101 "
        "but not https://github.com/other/repo/pull/5"
    )
    assert extract_referenced_numbers(text, "octo", "hello") == [7, 12, 42, 100, 101]


def test_shorthand_must_not_be_glued_to_identifiers():
    assert extract_referenced_numbers("abc#12def _#13 also #14", "octo", "hello") == [14]


@pytest.mark.parametrize("text", [None, "", "no refs here", "#0 and octo/hello#0"])
def test_empty_or_non_positive_inputs(text):
    assert extract_referenced_numbers(text, "octo", "hello") == []


def test_qualified_reference_requires_exact_repo():
    text = "octo/hello-world#3 xocto/hello#4 octo/hello#5"
    assert extract_referenced_numbers(text, "octo", "hello") == [5]


def test_urls_on_other_hosts_are_accepted_for_same_repo():
    text = "mirror: https://ghe.example.com/octo/hello/pull/8 (http://github.com/octo/hello/issues/9)"
    assert extract_referenced_numbers(text, "octo", "hello") == [8, 9]


def test_punctuation_terminates_shorthand():
    assert extract_referenced_numbers("(#3), #4. [#5]", "octo", "hello") == [3, 4, 5]


def test_pr_and_comments_wrapper_tolerates_missing_bodies():
    pr = {"body": "Closes #1"}
    comments = [{"body": "dup of #2"}, {"body": None}, {}, {"body": "octo/hello#1"}]
    assert extract_referenced_numbers_from_pr_and_comments(pr, comments, "octo", "hello") == [1, 2]
    assert extract_referenced_numbers_from_pr_and_comments({"body": None}, None, "octo", "hello") == []


def test_bodies_are_joined_so_refs_do_not_merge_across_comments():
    pr = {"body": "ends with #1"}
    comments = [{"body": "2 starts here"}]
    assert extract_referenced_numbers_from_pr_and_comments(pr, comments, "octo", "hello") == [1]
