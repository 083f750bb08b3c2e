"""Typed view over GitHub issue timeline nodes.

Only the two event kinds the crawl consumes are modelled; every other
`__typename` becomes an `OtherEvent` and is ignored downstream.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple, Union


@dataclass(frozen=True)
class ClosedEvent:
    closer_type: Optional[str]
    closer_number: Optional[int]
    created_at: Optional[str] = None


@dataclass(frozen=True)
class CrossReferencedEvent:
    source_type: Optional[str]
    source_number: Optional[int]
    created_at: Optional[str] = None


@dataclass(frozen=True)
class OtherEvent:
    typename: Optional[str]


TimelineEvent = Union[ClosedEvent, CrossReferencedEvent, OtherEvent]


def _number(value: Any) -> Optional[int]:
    # bool is an int subclass; GitHub never sends one here
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def parse_timeline_event(node: Any) -> Optional[TimelineEvent]:
    if not isinstance(node, dict):
        return None
    typename = node.get("__typename")
    if typename == "ClosedEvent":
        closer = node.get("closer") if isinstance(node.get("closer"), dict) else {}
        return ClosedEvent(
            closer_type=closer.get("__typename"),
            closer_number=_number(closer.get("number")),
            created_at=node.get("createdAt"),
        )
    if typename == "CrossReferencedEvent":
        source = node.get("source") if isinstance(node.get("source"), dict) else {}
        return CrossReferencedEvent(
            source_type=source.get("__typename"),
            source_number=_number(source.get("number")),
            created_at=node.get("createdAt"),
        )
    return OtherEvent(typename=typename if isinstance(typename, str) else None)


def timeline_pr_numbers(nodes: Optional[Iterable[Any]]) -> Tuple[List[int], List[int]]:
    """Split timeline nodes into (closing PR numbers, cross-referencing PR numbers), each sorted."""
    closing: List[int] = []
    cross_referenced: List[int] = []
    for node in nodes or []:
        event = parse_timeline_event(node)
        if isinstance(event, ClosedEvent):
            if event.closer_type == "PullRequest" and event.closer_number is not None:
                if event.closer_number not in closing:
                    closing.append(event.closer_number)
        elif isinstance(event, CrossReferencedEvent):
            if event.source_type == "PullRequest" and event.source_number is not None:
                if event.source_number not in cross_referenced:
                    cross_referenced.append(event.source_number)
    return sorted(closing), sorted(cross_referenced)


__all__ = [
    "ClosedEvent",
    "CrossReferencedEvent",
    "OtherEvent",
    "TimelineEvent",
    "parse_timeline_event",
    "timeline_pr_numbers",
]
