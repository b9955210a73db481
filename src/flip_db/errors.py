"""Exceptions raised while applying the schema or touching feature rows."""

from __future__ import annotations

from collections.abc import Sequence


class FlipDbError(Exception):
    """Base class for feature-flag store errors."""


class StoreUnavailable(FlipDbError):
    """Raised when the target store cannot be reached."""

    def __init__(self, url: str, *, reason: str | None = None) -> None:
        message = f"store unavailable: {url}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.url = url
        self.reason = reason


class SchemaConflict(FlipDbError):
    """Raised when the feature table already exists, or has the wrong shape."""

    def __init__(
        self,
        table: str,
        message: str,
        *,
        differences: Sequence[str] = (),
    ) -> None:
        detail = message
        if differences:
            detail = f"{message}: {'; '.join(differences)}"
        super().__init__(detail)
        self.table = table
        self.differences = list(differences)


class FeatureFlagNotFoundError(LookupError):
    """Raised when a feature flag key has no stored row."""

    def __init__(self, key: str) -> None:
        super().__init__(f"feature flag not found: {key}")
        self.key = key


__all__ = [
    "FeatureFlagNotFoundError",
    "FlipDbError",
    "SchemaConflict",
    "StoreUnavailable",
]
