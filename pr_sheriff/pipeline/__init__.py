"""Analyze-pr pipeline: reference graph plus merged-PR candidates for one target PR."""

from .runner import analyze_pr, main

__all__ = ["analyze_pr", "main"]
