"""Configuration for the analyze-pr pipeline: crawl budgets and output location."""

from __future__ import annotations

import os

OUTPUT_DIR = os.getenv("PR_SHERIFF_OUTPUT_DIR", "./output")
MAX_LAYER1_REFERENCES = int(os.getenv("PR_SHERIFF_MAX_LAYER1_REFERENCES", "10"))
MAX_CLOSING_PRS_PER_ISSUE = int(os.getenv("PR_SHERIFF_MAX_CLOSING_PRS_PER_ISSUE", "5"))
MAX_LAYER2_REFERENCES_PER_PR = int(os.getenv("PR_SHERIFF_MAX_LAYER2_REFERENCES_PER_PR", "10"))
MAX_LAYER2_CLOSING_PRS_PER_ISSUE = int(os.getenv("PR_SHERIFF_MAX_LAYER2_CLOSING_PRS_PER_ISSUE", "5"))
MAX_SEARCH_CANDIDATES = int(os.getenv("PR_SHERIFF_MAX_SEARCH_CANDIDATES", "50"))
FIXTURES_DIR = os.getenv("PR_SHERIFF_FIXTURES_DIR") or None
NO_CACHE = os.getenv("PR_SHERIFF_NO_CACHE", "") not in ("", "0", "false")

TARGETS = [
    # "octo/hello#123",
]

__all__ = [
    "OUTPUT_DIR",
    "MAX_LAYER1_REFERENCES",
    "MAX_CLOSING_PRS_PER_ISSUE",
    "MAX_LAYER2_REFERENCES_PER_PR",
    "MAX_LAYER2_CLOSING_PRS_PER_ISSUE",
    "MAX_SEARCH_CANDIDATES",
    "FIXTURES_DIR",
    "NO_CACHE",
    "TARGETS",
]
