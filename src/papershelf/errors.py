"""Exception hierarchy for PaperShelf."""

from __future__ import annotations


class PaperShelfError(Exception):
    """Base class for all PaperShelf errors."""


class NotFoundError(PaperShelfError):
    """A paper or smart group id does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class StorageError(PaperShelfError):
    """The underlying SQLite database failed."""


class ExtractionError(PaperShelfError):
    """A PDF is missing or could not be parsed."""

    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"Failed to extract PDF text from {path}: {reason}")
        self.path = path
        self.reason = reason


class ValidationError(PaperShelfError):
    """Input could not be parsed into a valid request."""
