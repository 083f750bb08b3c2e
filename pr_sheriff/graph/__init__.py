"""Reference extraction, node classification, and the bounded reference-graph crawl."""

from .builder import build_reference_graph
from .classifier import NodeClassifier
from .linkers import extract_referenced_numbers, extract_referenced_numbers_from_pr_and_comments
from .models import Budgets, GraphEdge, GraphNode, ReferenceGraph, node_key

__all__ = [
    "build_reference_graph",
    "NodeClassifier",
    "extract_referenced_numbers",
    "extract_referenced_numbers_from_pr_and_comments",
    "Budgets",
    "GraphEdge",
    "GraphNode",
    "ReferenceGraph",
    "node_key",
]
