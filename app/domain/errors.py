"""Domain error hierarchy for clean exception handling."""
from __future__ import annotations

from typing import Any, Iterable, List


class DomainError(Exception):
    """Base for all domain errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class ConflictError(DomainError):
    """Resource conflict (e.g., duplicate on create)."""


class ValidationError(DomainError):
    """Invalid input or state.

    When raised by a repository, carries the attributes the backend rejected
    (``invalid_attributes``) and/or the attributes it accepts for the entity
    type (``valid_attributes``) so callers can strip and retry once.
    """

    def __init__(
        self,
        message: str,
        invalid_attributes: Iterable[str] | None = None,
        valid_attributes: Iterable[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.invalid_attributes: List[str] = list(invalid_attributes or [])
        self.valid_attributes: List[str] = list(valid_attributes or [])


class FatalError(DomainError):
    """Aborts the whole operation (root tree unreadable, bundle without tree)."""


class PartialBatchFailure(DomainError):
    """Aggregate of independent per-item errors in a multi-entity operation.

    ``partial`` holds whatever the operation materialized before and despite
    the failures.
    """

    def __init__(self, message: str, errors: List[Any], partial: Any = None) -> None:
        self.message = message
        self.errors = list(errors)
        self.partial = partial
        lines = [message] + [f"  - {error}" for error in self.errors]
        super().__init__("\n".join(lines))


class UnresolvedDependencyError(DomainError):
    """A journey in an import batch references journeys that are unavailable."""

    def __init__(self, tree_id: str, missing: List[str]) -> None:
        self.tree_id = tree_id
        self.missing = list(missing)
        super().__init__(f"Journey {tree_id} requires {', '.join(self.missing)}")
