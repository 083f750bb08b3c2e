"""Central configuration constants for the GitHub retrieval layer."""

from __future__ import annotations

import os
from typing import Optional

from pr_sheriff.secrets import github_token_from_secrets, load_local_secrets

_SECRETS = load_local_secrets()
GITHUB_TOKEN: Optional[str] = (
    os.getenv("PR_SHERIFF_GITHUB_TOKEN") or github_token_from_secrets(_SECRETS)
)
USER_AGENT = "pr-sheriff/0.1"
BASE_URL = os.getenv("PR_SHERIFF_GITHUB_API_URL", "https://api.github.com").rstrip("/")
API_VERSION = "2022-11-28"
PER_PAGE = 100
MAX_PAGES = 200  # hard cap against pathological Link/cursor cycles
TRANSPORT = os.getenv("PR_SHERIFF_TRANSPORT", "gh")  # "gh" or "requests"
GH_BINARY = os.getenv("PR_SHERIFF_GH_BINARY", "gh")
GH_TIMEOUT_SEC = float(os.getenv("PR_SHERIFF_GH_TIMEOUT_SEC", "30"))
GH_MAX_OUTPUT_BYTES = int(os.getenv("PR_SHERIFF_GH_MAX_OUTPUT_BYTES", str(20 * 1024 * 1024)))
CACHE_DIR = os.getenv("PR_SHERIFF_CACHE_DIR", os.path.join(".cache", "pr-sheriff", "github"))
CACHE_TTL_SEC = int(os.getenv("PR_SHERIFF_CACHE_TTL_SEC", "300"))
MAX_BACKOFF_SEC = float(os.getenv("PR_SHERIFF_MAX_BACKOFF_SEC", "10"))

__all__ = [
    "GITHUB_TOKEN",
    "USER_AGENT",
    "BASE_URL",
    "API_VERSION",
    "PER_PAGE",
    "MAX_PAGES",
    "TRANSPORT",
    "GH_BINARY",
    "GH_TIMEOUT_SEC",
    "GH_MAX_OUTPUT_BYTES",
    "CACHE_DIR",
    "CACHE_TTL_SEC",
    "MAX_BACKOFF_SEC",
]
