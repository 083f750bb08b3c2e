"""GitHub access layer: gh-backed transport, JSON file cache, and typed fetchers."""

from .client import GitHubClient, PullRequestComments
from .errors import (
    GitHubError,
    GraphQLError,
    HttpStatusError,
    ResponseDecodeError,
    TransportError,
    TransportOutputOverflow,
    TransportProcessFailure,
    TransportTimeout,
    UnexpectedPayloadError,
)

__all__ = [
    "GitHubClient",
    "PullRequestComments",
    "GitHubError",
    "GraphQLError",
    "HttpStatusError",
    "ResponseDecodeError",
    "TransportError",
    "TransportOutputOverflow",
    "TransportProcessFailure",
    "TransportTimeout",
    "UnexpectedPayloadError",
]
