"""Exceptions raised by the S3 cleaner."""

from __future__ import annotations

from dataclasses import dataclass


class CleanerError(Exception):
    """Base class for all cleaner errors."""


class ConfigurationError(CleanerError):
    """The bucket configuration is missing or malformed."""


class DeploymentBucketError(CleanerError):
    """The deployment bucket name could not be resolved."""


@dataclass(frozen=True)
class DeleteFailure:
    """A single object that a delete call reported as not deleted."""

    key: str
    version_id: str | None
    code: str
    message: str


class BatchDeleteError(CleanerError):
    """
    One or more objects could not be deleted.

    All failures from every chunk are kept, in listing order, but the
    message only names the first one.

    Attributes:
        failures: Every failed object reported by the delete calls.
    """

    def __init__(self, failures: list[DeleteFailure]) -> None:
        if not failures:
            raise ValueError("BatchDeleteError requires at least one failure")
        self.failures = failures
        first = failures[0]
        message = f"Error: {first.key} - {first.message}"
        if len(failures) > 1:
            message += f" (and {len(failures) - 1} more)"
        super().__init__(message)
