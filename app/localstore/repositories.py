from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote


class DocumentRepository:
    """One directory of JSON documents, one file per entity id.

    Every write bumps ``_rev`` the way the platform does, so a re-import
    is an update of the same document rather than a second copy.
    """

    def __init__(self, base_path: Path, name: str) -> None:
        self.path = base_path / name
        self.path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _file(self, entity_id: str) -> Path:
        return self.path / f"{quote(entity_id, safe='')}.json"

    def exists(self, entity_id: str) -> bool:
        return self._file(entity_id).exists()

    def get(self, entity_id: str) -> Optional[Dict[str, Any]]:
        document_file = self._file(entity_id)
        if not document_file.exists():
            return None
        with document_file.open('r', encoding='utf-8') as f:
            return json.load(f)

    def put(self, entity_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            previous = self.get(entity_id)
            document = dict(data)
            document['_id'] = entity_id
            document['_rev'] = str(int(previous.get('_rev', '0')) + 1) if previous else '1'
            with self._file(entity_id).open('w', encoding='utf-8') as f:
                json.dump(document, f, indent=2)
            return document

    def delete(self, entity_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self.get(entity_id)
            if document is None:
                return None
            self._file(entity_id).unlink()
            return document

    def ids(self) -> List[str]:
        return sorted(unquote(f.stem) for f in self.path.glob('*.json'))

    def all(self) -> List[Dict[str, Any]]:
        items = []
        for entity_id in self.ids():
            document = self.get(entity_id)
            if document is not None:
                items.append(document)
        return items


class TypedDocumentRepository:
    """Documents partitioned by a type key (node types, provider types, SAML2 locations)."""

    def __init__(self, base_path: Path, name: str) -> None:
        self.path = base_path / name
        self.path.mkdir(parents=True, exist_ok=True)
        self._partitions: Dict[str, DocumentRepository] = {}
        self._lock = threading.Lock()

    def partition(self, type_key: str) -> DocumentRepository:
        with self._lock:
            if type_key not in self._partitions:
                self._partitions[type_key] = DocumentRepository(self.path, quote(type_key, safe=''))
            return self._partitions[type_key]

    def type_keys(self) -> List[str]:
        return sorted(unquote(d.name) for d in self.path.iterdir() if d.is_dir())

    def all(self) -> List[Dict[str, Any]]:
        items = []
        for type_key in self.type_keys():
            items.extend(self.partition(type_key).all())
        return items


class ThemesRepository:
    """All themes of the realm live in one document, as on the platform."""

    def __init__(self, base_path: Path) -> None:
        self.themes_file = base_path / "themes.json"
        self._lock = threading.Lock()

    def all(self) -> List[Dict[str, Any]]:
        if not self.themes_file.exists():
            return []
        with self.themes_file.open('r', encoding='utf-8') as f:
            return json.load(f)

    def save_all(self, themes: List[Dict[str, Any]]) -> None:
        with self.themes_file.open('w', encoding='utf-8') as f:
            json.dump(themes, f, indent=2)

    def put_many(self, themes: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        with self._lock:
            merged = {theme['_id']: theme for theme in self.all()}
            for theme_id, theme in themes.items():
                merged[theme_id] = dict(theme, _id=theme_id)
            self.save_all(list(merged.values()))
            return [merged[theme_id] for theme_id in themes]

    def delete(self, theme_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            themes = self.all()
            remaining = [theme for theme in themes if theme['_id'] != theme_id]
            if len(remaining) == len(themes):
                return None
            self.save_all(remaining)
            return next(theme for theme in themes if theme['_id'] == theme_id)
