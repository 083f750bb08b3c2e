"""Convenience shim to analyze one or more `owner/repo#N` pull requests."""

from __future__ import annotations

import sys

from pr_sheriff.pipeline.runner import main as analysis_main


if __name__ == "__main__":
    args = sys.argv[1:]
    targets = [arg for arg in args if "#" in arg or "/pull/" in arg] if args else None
    analysis_main(targets)
