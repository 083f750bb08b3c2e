"""Shared helpers for the pr-sheriff test suite: fixture files and stub runners."""

import os
from typing import List

import pytest

from pr_sheriff.retrieval.http_client import CommandResult

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def read_fixture(name: str) -> str:
    with open(os.path.join(FIXTURES_DIR, name), "r", encoding="utf-8", newline="") as f:
        return f.read()


class StubRunner:
    """Answers each call with the next canned stdout; records the args it saw."""

    def __init__(self, responses: List[object]):
        self.responses = list(responses)
        self.calls: List[List[str]] = []

    def __call__(self, args):
        self.calls.append(list(args))
        if not self.responses:
            raise AssertionError(f"stub runner out of responses after {len(self.calls) - 1} calls")
        nxt = self.responses.pop(0)
        if isinstance(nxt, CommandResult):
            return nxt
        return CommandResult(exit_code=0, stdout=nxt, stderr="")


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def cache_dir(tmp_path):
    return str(tmp_path / "cache")
