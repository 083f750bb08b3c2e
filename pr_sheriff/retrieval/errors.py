"""Exception types raised by the GitHub retrieval layer."""

from __future__ import annotations

from typing import Any, List, Optional


class GitHubError(RuntimeError):
    """Base class for every failure surfaced by the retrieval layer."""


class TransportError(GitHubError):
    """The underlying `gh` invocation (or its substitute) did not yield a usable response."""


class TransportTimeout(TransportError):
    """The child process ran past its wall-clock budget and was killed."""


class TransportOutputOverflow(TransportError):
    """The child process produced more output than allowed and was killed."""


class TransportProcessFailure(TransportError):
    def __init__(self, message: str, *, exit_code: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class ResponseDecodeError(TransportError):
    """The response body was present but was not valid JSON."""


class HttpStatusError(GitHubError):
    def __init__(self, operation: str, endpoint: str, status: int):
        super().__init__(f"{operation} failed: GitHub API error {status} for {endpoint}")
        self.operation = operation
        self.endpoint = endpoint
        self.status = status


class GraphQLError(GitHubError):
    def __init__(self, operation: str, errors: List[Any]):
        messages = ", ".join(
            str(err.get("message")) for err in errors if isinstance(err, dict) and err.get("message")
        )
        super().__init__(f"{operation} failed: GitHub GraphQL errors: {messages or errors}")
        self.operation = operation
        self.errors = errors


class UnexpectedPayloadError(GitHubError):
    """A response decoded fine but did not have the shape the operation expects."""


__all__ = [
    "GitHubError",
    "TransportError",
    "TransportTimeout",
    "TransportOutputOverflow",
    "TransportProcessFailure",
    "ResponseDecodeError",
    "HttpStatusError",
    "GraphQLError",
    "UnexpectedPayloadError",
]
