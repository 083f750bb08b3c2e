"""Same-repository issue/PR reference extraction from free text."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional, Set

# "#123" not glued to a preceding identifier ("abc#12", "_#13") or a trailing one ("#12def").
SHORTHAND_REF_RE = re.compile(r"(?<![A-Za-z0-9_])#(\d+)\b", re.ASCII)
QUALIFIED_REF_RE = re.compile(r"([A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+)#(\d+)\b", re.ASCII)
URL_REF_RE = re.compile(r"https?://[^\s/]+/([^\s/]+)/([^\s/]+)/(?:issues|pull)/(\d+)\b", re.ASCII)


def _add_positive(out: Set[int], raw: str) -> None:
    number = int(raw)
    if number > 0:
        out.add(number)


def extract_referenced_numbers(text: Optional[str], owner: str, repo: str) -> List[int]:
    """Return sorted unique issue/PR numbers in `text` that point at owner/repo.

    Recognizes `#N`, `owner/repo#N`, and `https://<host>/owner/repo/(issues|pull)/N`;
    qualified references and URLs to other repositories are ignored.
    """
    if not text:
        return []
    repo_full = f"{owner}/{repo}"
    out: Set[int] = set()

    for match in SHORTHAND_REF_RE.finditer(text):
        _add_positive(out, match.group(1))

    for match in QUALIFIED_REF_RE.finditer(text):
        if match.group(1) == repo_full:
            _add_positive(out, match.group(2))

    for match in URL_REF_RE.finditer(text):
        if f"{match.group(1)}/{match.group(2)}" == repo_full:
            _add_positive(out, match.group(3))

    return sorted(out)


def extract_referenced_numbers_from_pr_and_comments(pr: Optional[Dict[str, Any]],
                                                    comments: Optional[Iterable[Dict[str, Any]]],
                                                    owner: str,
                                                    repo: str) -> List[int]:
    """Extract references from a PR body plus every comment body."""
    parts = [(pr or {}).get("body") or ""]
    for comment in comments or []:
        parts.append((comment or {}).get("body") or "")
    return extract_referenced_numbers("\n\n".join(parts), owner, repo)


__all__ = [
    "SHORTHAND_REF_RE",
    "QUALIFIED_REF_RE",
    "URL_REF_RE",
    "extract_referenced_numbers",
    "extract_referenced_numbers_from_pr_and_comments",
]
