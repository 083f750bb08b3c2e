"""Decide whether a referenced number is an issue or a pull request."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pr_sheriff.retrieval.errors import GraphQLError, HttpStatusError, UnexpectedPayloadError

from .models import ApiCallStats

NumberKind = Literal["issue", "pr", "unknown"]


def kind_from_issue_payload(payload: Any) -> NumberKind:
    """GitHub serves PRs from the issues endpoint too; only PRs carry `pull_request`."""
    if not isinstance(payload, dict):
        return "unknown"
    return "pr" if payload.get("pull_request") else "issue"


class NodeClassifier:
    """Memoized number -> kind lookup, scoped to a single graph build.

    API failures on the lookup classify the number as "unknown" so the crawl
    skips it; transport failures (timeouts, dead `gh`) still propagate.
    """

    def __init__(self, client: Any, *, use_cache: bool = True, stats: Optional[ApiCallStats] = None) -> None:
        self.client = client
        self.use_cache = use_cache
        self.stats = stats if stats is not None else ApiCallStats()
        self.kinds: Dict[int, NumberKind] = {}

    def classify(self, number: int) -> NumberKind:
        if number in self.kinds:
            return self.kinds[number]
        self.stats.get_issue += 1
        try:
            payload = self.client.get_issue(number, use_cache=self.use_cache)
        except (HttpStatusError, GraphQLError, UnexpectedPayloadError) as exc:
            print(f"[warn] could not classify #{number}: {exc}")
            payload = None
        kind = kind_from_issue_payload(payload)
        self.kinds[number] = kind
        return kind


__all__ = ["NumberKind", "NodeClassifier", "kind_from_issue_payload"]
