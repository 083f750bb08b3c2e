"""Graph nodes, edges, budgets, and traversal statistics for the reference crawl."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

NodeKind = Literal["issue", "pr"]
EdgeType = Literal["references", "closed_by", "cross_referenced_by"]

METADATA_FIELDS = ("title", "url", "merged_at", "closed_at", "state")


def node_key(kind: NodeKind, owner: str, repo: str, number: int) -> str:
    return f"{kind}:{owner}/{repo}#{number}"


@dataclass
class GraphNode:
    kind: NodeKind
    owner: str
    repo: str
    number: int
    title: Optional[str] = None
    url: Optional[str] = None
    merged_at: Optional[str] = None
    closed_at: Optional[str] = None
    state: Optional[str] = None
    hydrated: bool = False

    @property
    def key(self) -> str:
        return node_key(self.kind, self.owner, self.repo, self.number)

    def upgrade(self, **metadata: Optional[str]) -> None:
        """Fill metadata from a fetched payload; None never replaces a known value."""
        for name in METADATA_FIELDS:
            value = metadata.get(name)
            if value is not None:
                setattr(self, name, value)
        self.hydrated = True

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.key,
            "type": self.kind,
            "owner": self.owner,
            "repo": self.repo,
            "number": self.number,
        }
        if self.hydrated:
            out.update(
                {
                    "title": self.title,
                    "url": self.url,
                    "mergedAt": self.merged_at,
                    "closedAt": self.closed_at,
                    "state": self.state,
                }
            )
        return out


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    type: EdgeType

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.source, "to": self.target, "type": self.type}


@dataclass(frozen=True)
class Budgets:
    max_layer1_references: int = 10
    max_closing_prs_per_issue: int = 5
    max_layer2_references_per_pr: int = 10
    max_layer2_closing_prs_per_issue: int = 5

    _CAMEL = {
        "maxLayer1References": "max_layer1_references",
        "maxClosingPrsPerIssue": "max_closing_prs_per_issue",
        "maxLayer2ReferencesPerPr": "max_layer2_references_per_pr",
        "maxLayer2ClosingPrsPerIssue": "max_layer2_closing_prs_per_issue",
    }

    def __post_init__(self) -> None:
        # negative caps behave as 0; frozen, so bypass __setattr__
        for name in self.__dataclass_fields__:
            object.__setattr__(self, name, max(0, int(getattr(self, name))))

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]] = None, **defaults: int) -> "Budgets":
        """Build budgets from camelCase or snake_case keys; missing keys use defaults."""
        merged: Dict[str, int] = dict(defaults)
        for raw_key, value in (values or {}).items():
            name = cls._CAMEL.get(raw_key, raw_key)
            if name in cls.__dataclass_fields__ and value is not None:
                merged[name] = int(value)
        return cls(**merged)

    def to_dict(self) -> Dict[str, int]:
        return {camel: getattr(self, snake) for camel, snake in self._CAMEL.items()}


@dataclass
class ApiCallStats:
    get_pr: int = 0
    get_issue: int = 0
    list_pr_comments: int = 0
    get_issue_timeline: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "getPR": self.get_pr,
            "getIssue": self.get_issue,
            "listPRComments": self.list_pr_comments,
            "getIssueTimeline": self.get_issue_timeline,
        }


@dataclass
class TruncationStats:
    layer1_refs: bool = False
    closing_prs: int = 0
    layer2_refs: int = 0
    layer2_closing_prs: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer1Refs": self.layer1_refs,
            "closingPrs": self.closing_prs,
            "layer2Refs": self.layer2_refs,
            "layer2ClosingPrs": self.layer2_closing_prs,
        }


@dataclass
class GraphStats:
    api_calls: ApiCallStats = field(default_factory=ApiCallStats)
    truncated: TruncationStats = field(default_factory=TruncationStats)

    def to_dict(self) -> Dict[str, Any]:
        return {"apiCalls": self.api_calls.to_dict(), "truncated": self.truncated.to_dict()}


@dataclass
class ReferenceGraph:
    """Nodes keyed by node id plus an ordered edge list.

    Edges are not deduplicated: the crawl can reach one relationship from
    several paths, and edge multiplicity is kept for downstream consumers.
    """

    root_id: str
    budgets: Budgets
    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: List[GraphEdge] = field(default_factory=list)
    stats: GraphStats = field(default_factory=GraphStats)
    # PR payloads and comments fetched by the crawl, keyed by number; not serialized
    fetched_prs: Dict[int, Tuple[Any, Any]] = field(default_factory=dict, repr=False, compare=False)

    def ensure_node(self, kind: NodeKind, owner: str, repo: str, number: int) -> GraphNode:
        """Return the node for this identity, creating a stub only if it is absent."""
        key = node_key(kind, owner, repo, number)
        node = self.nodes.get(key)
        if node is None:
            node = GraphNode(kind=kind, owner=owner, repo=repo, number=number)
            self.nodes[key] = node
        return node

    def add_edge(self, source: str, target: str, type: EdgeType) -> GraphEdge:
        edge = GraphEdge(source=source, target=target, type=type)
        self.edges.append(edge)
        return edge

    def edge_set(self) -> set:
        """Distinct (from, to, type) triples, for callers that need deduplicated edges."""
        return {(e.source, e.target, e.type) for e in self.edges}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rootId": self.root_id,
            "nodes": {key: node.to_dict() for key, node in self.nodes.items()},
            "edges": [edge.to_dict() for edge in self.edges],
            "budgets": self.budgets.to_dict(),
            "stats": self.stats.to_dict(),
        }


__all__ = [
    "NodeKind",
    "EdgeType",
    "node_key",
    "GraphNode",
    "GraphEdge",
    "Budgets",
    "ApiCallStats",
    "TruncationStats",
    "GraphStats",
    "ReferenceGraph",
]
