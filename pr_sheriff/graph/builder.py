"""Bounded two-layer reference crawl rooted at a pull request.

Traversal:
  root PR --references--> numbers mentioned in its body/comments (layer 1)
  layer-1 issue --closed_by|cross_referenced_by--> PRs from the issue timeline
  each such PR --references--> numbers in its body/comments (layer 2)
  layer-2 issue --closed_by|cross_referenced_by--> PRs (left as stubs)

Every candidate list is sorted ascending and cut to its budget before any
further I/O is issued for it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .classifier import NodeClassifier
from .linkers import extract_referenced_numbers_from_pr_and_comments
from .models import Budgets, GraphNode, ReferenceGraph, node_key
from .timeline import timeline_pr_numbers


def _metadata_from_pr(pr: Any) -> Dict[str, Optional[str]]:
    pr = pr if isinstance(pr, dict) else {}
    return {
        "title": pr.get("title"),
        "url": pr.get("html_url") or pr.get("url"),
        "merged_at": pr.get("merged_at"),
        "closed_at": pr.get("closed_at"),
        "state": pr.get("state"),
    }


class _Crawl:
    """State for one `build_reference_graph` call; discarded when it returns."""

    def __init__(self,
                 client: Any,
                 owner: str,
                 repo: str,
                 graph: ReferenceGraph,
                 classifier: NodeClassifier,
                 use_cache: bool) -> None:
        self.client = client
        self.owner = owner
        self.repo = repo
        self.graph = graph
        self.classifier = classifier
        self.use_cache = use_cache

    @property
    def calls(self):
        return self.graph.stats.api_calls

    def issue_node(self, number: int) -> GraphNode:
        return self.graph.ensure_node("issue", self.owner, self.repo, number)

    def pr_node(self, number: int) -> GraphNode:
        return self.graph.ensure_node("pr", self.owner, self.repo, number)

    def fetch_pr_with_comments(self, number: int) -> Tuple[Any, List[Dict[str, Any]]]:
        """Fetch a PR payload and its merged comments once per crawl, upgrading its node."""
        if number in self.graph.fetched_prs:
            pr, comments = self.graph.fetched_prs[number]
            return pr, comments.all
        self.calls.get_pr += 1
        pr = self.client.get_pr(number, use_cache=self.use_cache)
        self.calls.list_pr_comments += 1
        comments = self.client.list_pr_comments(number, use_cache=self.use_cache)
        self.pr_node(number).upgrade(**_metadata_from_pr(pr))
        self.graph.fetched_prs[number] = (pr, comments)
        return pr, comments.all

    def add_timeline_edges(self, issue_number: int, max_prs: int, layer: int) -> List[int]:
        """Add closed_by / cross_referenced_by edges for an issue; return the PR numbers kept."""
        self.calls.get_issue_timeline += 1
        timeline = self.client.get_issue_timeline(issue_number, use_cache=self.use_cache)
        closing_all, cross_all = timeline_pr_numbers(timeline)

        closing = closing_all[:max_prs]
        cross = cross_all[:max(0, max_prs - len(closing))]

        truncated = self.graph.stats.truncated
        for full, kept in ((closing_all, closing), (cross_all, cross)):
            if len(full) > len(kept):
                if layer == 1:
                    truncated.closing_prs += 1
                else:
                    truncated.layer2_closing_prs += 1

        issue_id = self.issue_node(issue_number).key
        for edge_type, numbers in (("closed_by", closing), ("cross_referenced_by", cross)):
            for number in numbers:
                self.graph.add_edge(issue_id, self.pr_node(number).key, edge_type)
        return [*closing, *cross]


def build_reference_graph(client: Any,
                          owner: str,
                          repo: str,
                          pr_number: int,
                          budgets: Optional[Union[Budgets, Mapping[str, Any]]] = None,
                          *,
                          use_cache: bool = True,
                          classifier: Optional[NodeClassifier] = None) -> ReferenceGraph:
    """Crawl references around `pr_number` two layers deep within `budgets`.

    Any fetch failure other than a failed classification aborts the crawl;
    no partial graph is returned.
    """
    caps = budgets if isinstance(budgets, Budgets) else Budgets.from_mapping(budgets)
    graph = ReferenceGraph(root_id=node_key("pr", owner, repo, pr_number), budgets=caps)
    if classifier is None:
        classifier = NodeClassifier(client, use_cache=use_cache, stats=graph.stats.api_calls)
    else:
        classifier.stats = graph.stats.api_calls
    crawl = _Crawl(client, owner, repo, graph, classifier, use_cache)
    truncated = graph.stats.truncated

    # Root PR and layer-1 references.
    root = crawl.pr_node(pr_number)
    root_pr, root_comments = crawl.fetch_pr_with_comments(pr_number)

    layer1_all = extract_referenced_numbers_from_pr_and_comments(root_pr, root_comments, owner, repo)
    layer1 = layer1_all[:caps.max_layer1_references]
    if len(layer1_all) > len(layer1):
        truncated.layer1_refs = True

    layer1_issues: List[int] = []
    layer1_prs: List[int] = []
    for number in layer1:
        kind = classifier.classify(number)
        if kind == "issue":
            layer1_issues.append(number)
        elif kind == "pr":
            layer1_prs.append(number)

    for number in layer1_issues:
        graph.add_edge(root.key, crawl.issue_node(number).key, "references")
    for number in layer1_prs:
        graph.add_edge(root.key, crawl.pr_node(number).key, "references")

    # Layer-1 issues: PRs that closed or cross-referenced them.
    related_prs: List[int] = []
    for issue_number in layer1_issues:
        for number in crawl.add_timeline_edges(issue_number, caps.max_closing_prs_per_issue, layer=1):
            if number not in related_prs:
                related_prs.append(number)

    # Those PRs' own references (layer 2).
    layer2_issues: List[int] = []
    layer2_prs: List[int] = []
    for pr_num in related_prs:
        pr, comments = crawl.fetch_pr_with_comments(pr_num)
        pr_id = crawl.pr_node(pr_num).key

        refs_all = extract_referenced_numbers_from_pr_and_comments(pr, comments, owner, repo)
        refs = refs_all[:caps.max_layer2_references_per_pr]
        if len(refs_all) > len(refs):
            truncated.layer2_refs += 1

        for number in refs:
            kind = classifier.classify(number)
            if kind == "issue":
                if number not in layer2_issues:
                    layer2_issues.append(number)
                graph.add_edge(pr_id, crawl.issue_node(number).key, "references")
            elif kind == "pr":
                if number not in layer2_prs:
                    layer2_prs.append(number)
                graph.add_edge(pr_id, crawl.pr_node(number).key, "references")

    # Layer-2 issues get timeline edges but their PRs are not expanded.
    for issue_number in layer2_issues:
        crawl.add_timeline_edges(issue_number, caps.max_layer2_closing_prs_per_issue, layer=2)

    for pr_num in layer2_prs:
        crawl.pr_node(pr_num)

    return graph


__all__ = ["build_reference_graph"]
