"""Options and cancellation for export/import operations."""
from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class ExportOptions:
    include_dependencies: bool = True
    multiline_scripts_as_arrays: bool = True


@dataclass(frozen=True)
class ImportOptions:
    regenerate_ids: bool = False
    include_dependencies: bool = True


class CancellationToken:
    """Cooperative cancellation checked between trees of multi-tree loops."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
