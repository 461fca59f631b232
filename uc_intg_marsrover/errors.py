"""
Error types for the Mars Rover Explorer core.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""


class MarsRoverError(Exception):
    """Base class for explorer errors."""


class ExhaustedCandidates(MarsRoverError):
    """Every rover or every camera is banned, nothing left to query."""


class TransportFailure(MarsRoverError):
    """Network error or non-success HTTP status from the photos API."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class MalformedResponse(MarsRoverError):
    """Photos API answered with a body that does not match the expected shape."""


class EmptyFilterResult(MarsRoverError):
    """All photos of a response were removed by the ban list."""


class NoResultFound(MarsRoverError):
    """The attempt limit was reached without finding an unbanned photo."""
