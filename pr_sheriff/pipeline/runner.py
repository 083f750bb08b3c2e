"""Entry points for analyzing whether an open PR has been superseded."""

from __future__ import annotations

import json
import os
import re
import sys
from typing import Any, Dict, List, Optional, Tuple

from pr_sheriff.graph import Budgets, build_reference_graph
from pr_sheriff.retrieval import GitHubClient, GitHubError
from pr_sheriff.retrieval.file_cache import ensure_dir
from pr_sheriff.retrieval.fixtures import FixtureRunner

from .config import (
    FIXTURES_DIR,
    MAX_CLOSING_PRS_PER_ISSUE,
    MAX_LAYER1_REFERENCES,
    MAX_LAYER2_CLOSING_PRS_PER_ISSUE,
    MAX_LAYER2_REFERENCES_PER_PR,
    MAX_SEARCH_CANDIDATES,
    NO_CACHE,
    OUTPUT_DIR,
    TARGETS,
)

TARGET_RE = re.compile(r"^([^/\s#]+)/([^/\s#]+)#(\d+)$")
PR_URL_RE = re.compile(r"^https?://[^\s/]+/([^/\s]+)/([^/\s]+)/pull/(\d+)(?:[/?#].*)?$")
KEYWORD_STOP_WORDS = {"the", "and", "for", "with", "from", "into", "this", "that", "fix", "adds", "add"}


def save_json(path: str, data: Any) -> None:
    """Write JSON to disk using UTF-8 and deterministic formatting."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def parse_target(raw: str) -> Tuple[str, str, int]:
    """Accept `owner/repo#N` or a pull request URL; return (owner, repo, number)."""
    text = (raw or "").strip()
    m = TARGET_RE.match(text) or PR_URL_RE.match(text)
    if not m or int(m.group(3)) <= 0:
        raise ValueError(f"Invalid target {raw!r}; expected owner/repo#N or a PR URL")
    return m.group(1), m.group(2), int(m.group(3))


def to_iso_date(value: Any) -> Optional[str]:
    """Reduce `YYYY-MM-DD` or an ISO timestamp to its date part."""
    if not isinstance(value, str):
        return None
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        return value
    if re.match(r"\d{4}-\d{2}-\d{2}T", value):
        return value[:10]
    return None


def pick_keyword_query(title: Any) -> str:
    """Build an `in:title` search from up to six distinctive words of a PR title."""
    if not isinstance(title, str) or not title.strip():
        return ""
    words: List[str] = []
    for part in re.split(r"[^a-z0-9]+", title.lower()):
        if len(part) >= 4 and part not in KEYWORD_STOP_WORDS and part not in words:
            words.append(part)
    if not words:
        return ""
    return f"in:title {' '.join(words[:6])}"


def default_budgets() -> Budgets:
    return Budgets(
        max_layer1_references=MAX_LAYER1_REFERENCES,
        max_closing_prs_per_issue=MAX_CLOSING_PRS_PER_ISSUE,
        max_layer2_references_per_pr=MAX_LAYER2_REFERENCES_PER_PR,
        max_layer2_closing_prs_per_issue=MAX_LAYER2_CLOSING_PRS_PER_ISSUE,
    )


def analyze_pr(owner: str,
               repo: str,
               pr_number: int,
               *,
               use_cache: bool = True,
               fixtures_dir: Optional[str] = None,
               client: Optional[GitHubClient] = None,
               budgets: Optional[Budgets] = None) -> Dict[str, Any]:
    """Collect the reference graph and merged-PR candidates for one target PR."""
    if fixtures_dir:
        use_cache = False
    if client is None:
        runner = FixtureRunner(fixtures_dir) if fixtures_dir else None
        client = GitHubClient(f"{owner}/{repo}", runner=runner)

    print(f"  building reference graph for {owner}/{repo}#{pr_number}...")
    graph = build_reference_graph(
        client, owner, repo, pr_number, budgets or default_budgets(), use_cache=use_cache
    )

    # the crawl already fetched the root PR and its comments
    root_pr, comments = graph.fetched_prs[pr_number]
    target = root_pr if isinstance(root_pr, dict) else {}

    print("  searching merged PRs...")
    merged_items = client.search_merged_prs(
        pick_keyword_query(target.get("title")),
        merged_after=to_iso_date(target.get("created_at")),
        use_cache=use_cache,
    )
    candidates = [
        {
            "number": item["number"],
            "title": item.get("title"),
            "url": item.get("html_url"),
            "source": "merged_search",
        }
        for item in merged_items[:MAX_SEARCH_CANDIDATES]
        if isinstance(item, dict) and isinstance(item.get("number"), int)
    ]

    referenced_issues = sorted(
        node.number for node in graph.nodes.values() if node.kind == "issue"
    )

    return {
        "kind": "analyze-pr",
        "input": {
            "owner": owner,
            "repo": repo,
            "pr": pr_number,
            "dryFixturesDir": fixtures_dir,
            "useCache": use_cache,
        },
        "status": "ok",
        "target": {
            "number": target.get("number"),
            "title": target.get("title"),
            "url": target.get("html_url"),
            "state": target.get("state"),
            "draft": target.get("draft"),
            "createdAt": target.get("created_at"),
            "updatedAt": target.get("updated_at"),
            "author": (target.get("user") or {}).get("login"),
        },
        "comments": {
            "counts": {
                "issue": len(comments.issue_comments),
                "review": len(comments.review_comments),
                "all": len(comments.all),
            }
        },
        "references": {
            "issues": [{"owner": owner, "repo": repo, "number": n} for n in referenced_issues]
        },
        "candidates": {
            "numbers": sorted({c["number"] for c in candidates}),
            "items": candidates,
        },
        "judgeInput": {
            "repo": f"{owner}/{repo}",
            "target": {
                "number": target.get("number"),
                "title": target.get("title") or "",
                "body": target.get("body") or "",
                "comments": [
                    {
                        "id": c.get("id"),
                        "created_at": c.get("created_at"),
                        "user": (c.get("user") or {}).get("login"),
                        "body": c.get("body") or "",
                    }
                    for c in comments.all
                ],
            },
            "candidates": [
                {"number": c["number"], "title": c["title"] or "", "url": c["url"]} for c in candidates
            ],
        },
        "graph": graph.to_dict(),
    }


def process_target(raw: str) -> str:
    """Analyze one `owner/repo#N` target and persist the result; return the output path."""
    owner, repo, number = parse_target(raw)
    print(f"\n=== {owner}/{repo}#{number} ===")
    result = analyze_pr(owner, repo, number, use_cache=not NO_CACHE, fixtures_dir=FIXTURES_DIR)
    ensure_dir(OUTPUT_DIR)
    out_path = os.path.join(OUTPUT_DIR, f"{owner}_{repo}_pr{number}.json")
    save_json(out_path, result)
    print(f"    DONE -> {out_path}")
    return out_path


def main(custom_targets: Optional[List[str]] = None) -> None:
    """Analyze every target; a failing target is reported and the rest still run."""
    targets = custom_targets or TARGETS
    if not targets:
        print("No targets specified. Provide owner/repo#N arguments or edit TARGETS.")
        sys.exit(1)

    failures = 0
    for target in targets:
        try:
            process_target(target)
        except (GitHubError, ValueError) as exc:
            failures += 1
            print(f"[error] {target}: {exc}")
    print(f"\nAnalyzed {len(targets) - failures}/{len(targets)} targets.")
    if failures:
        sys.exit(2)


if __name__ == "__main__":
    main(sys.argv[1:] or None)
