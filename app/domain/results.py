"""Partial-failure result collection used by export, import and delete loops."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, List, TypeVar

from app.domain.errors import PartialBatchFailure

T = TypeVar("T")


@dataclass
class ErrorRecord:
    """One failed item of a batch: what was attempted and why it failed."""
    entity_type: str
    entity_id: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.entity_type} {self.entity_id}: {self.error}"


@dataclass
class Result(Generic[T]):
    """Value that was materialized plus the errors met while building it."""
    value: T
    errors: List[ErrorRecord] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, entity_type: str, entity_id: str, error: Exception) -> None:
        self.errors.append(ErrorRecord(entity_type, entity_id, error))

    def unwrap(self, message: str = "Operation completed with errors") -> T:
        """Return the value, or raise one aggregated error carrying it."""
        if self.errors:
            raise PartialBatchFailure(message, self.errors, partial=self.value)
        return self.value
