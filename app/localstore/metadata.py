from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict


class MetadataStore:
    """Simple JSON-backed metadata store for a local realm directory."""

    def __init__(self, metadata_file: Path, realm: str = "") -> None:
        self.metadata_file = metadata_file
        self.metadata_file.parent.mkdir(parents=True, exist_ok=True)
        self.data: Dict[str, Any] = self._load()
        if realm and not self.data.get("realm"):
            self.data["realm"] = realm

    def _load(self) -> Dict[str, Any]:
        if self.metadata_file.exists():
            try:
                with self.metadata_file.open("r", encoding="utf-8") as handle:
                    raw = json.load(handle)
                if isinstance(raw, dict):
                    # Ensure expected top-level keys exist
                    raw.setdefault("realm", "")
                    raw.setdefault("nodeTypes", {})
                    return raw
            except json.JSONDecodeError:
                pass
        return {"realm": "", "nodeTypes": {}}

    def register_node_type(self, node_type: str) -> None:
        if node_type not in self.data["nodeTypes"]:
            self.data["nodeTypes"][node_type] = {"_id": node_type, "name": node_type}
            self.save()

    def save(self) -> None:
        with self.metadata_file.open("w", encoding="utf-8") as handle:
            json.dump(self.data, handle, indent=2)
