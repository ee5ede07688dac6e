"""JSON-backed registries of template and job markdown files.

Each registry indexes files the user keeps in ``~/Downfolio/Templates`` or
``~/Downfolio/Jobs``. Only the resolved path is stored; files are never
copied, moved, or deleted.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generic, Hashable, TypeVar

from pydantic import BaseModel, ValidationError

from downfolio.errors import (
    DocumentEncodingError,
    DocumentFileNotFoundError,
    DuplicateEntryError,
    EntryNotFoundError,
)
from downfolio.models.document import DocumentType
from downfolio.models.registry import Job, Template
from downfolio.paths import REGISTRY_FILE
from downfolio.utils.parse_result import ParseResult

logger = logging.getLogger(__name__)

EntryT = TypeVar("EntryT", Template, Job)


class _JsonRegistry(ABC, Generic[EntryT]):
    entry_model: type[BaseModel]
    kind: str

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.storage_path = self.directory / REGISTRY_FILE

    # --- persistence ---

    def load_result(self) -> ParseResult[list[EntryT]]:
        """Read storage.json, falling back to [] when it is absent or corrupt."""
        self.directory.mkdir(parents=True, exist_ok=True)
        if not self.storage_path.exists():
            return ParseResult.ok([])

        try:
            raw = json.loads(self.storage_path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError(f"expected a JSON array, got {type(raw).__name__}")
            entries = [self.entry_model.model_validate(item) for item in raw]
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Ignoring unreadable %s registry %s: %s", self.kind, self.storage_path, e)
            return ParseResult.fallback([], str(e))
        return ParseResult.ok(entries)

    def _save(self, entries: list[EntryT]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = [entry.model_dump(mode="json", by_alias=True) for entry in entries]
        self.storage_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # --- generic operations keyed by identity ---

    def list(self) -> list[EntryT]:
        return self.load_result().value

    def _find(self, key: Hashable) -> EntryT | None:
        for entry in self.list():
            if entry.key == key:
                return entry
        return None

    def _add(self, entry: EntryT, source_file_path: str | Path) -> EntryT:
        entries = self.list()
        if any(e.key == entry.key for e in entries):
            raise DuplicateEntryError(f"{self._describe(entry.key)} already exists")

        source = Path(source_file_path)
        if not source.exists():
            raise DocumentFileNotFoundError(self.kind.capitalize(), source)

        stored = entry.model_copy(update={"file_path": str(source.resolve())})
        entries.append(stored)
        self._save(entries)
        logger.debug("Registered %s -> %s", self._describe(stored.key), stored.file_path)
        return stored

    def _remove(self, key: Hashable) -> EntryT:
        entries = self.list()
        match = next((e for e in entries if e.key == key), None)
        if match is None:
            raise EntryNotFoundError(f"{self._describe(key)} not found")
        self._save([e for e in entries if e.key != key])
        return match

    def _read_content(self, key: Hashable) -> str:
        entry = self._find(key)
        if entry is None:
            raise EntryNotFoundError(f"{self._describe(key)} not found")
        path = Path(entry.file_path)
        if not path.exists():
            raise DocumentFileNotFoundError(self.kind.capitalize(), path)
        # Decoded without newline translation so content matches the file exactly.
        try:
            return path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise DocumentEncodingError(path, str(e)) from e

    def files_in_directory(self) -> list[Path]:
        """Markdown files in the registry directory that could be registered."""
        if not self.directory.exists():
            return []
        return sorted(p for p in self.directory.iterdir() if p.is_file() and p.suffix == ".md")

    @abstractmethod
    def _describe(self, key: Hashable) -> str:
        """Human-readable identity used in error messages."""


class TemplateRegistry(_JsonRegistry[Template]):
    entry_model = Template
    kind = "template"

    def add(self, template: Template, source_file_path: str | Path) -> Template:
        return self._add(template, source_file_path)

    def get(self, name: str, doc_type: DocumentType | str) -> Template | None:
        return self._find((name, DocumentType(doc_type)))

    def by_type(self, doc_type: DocumentType | str) -> list[Template]:
        doc_type = DocumentType(doc_type)
        return [t for t in self.list() if t.type is doc_type]

    def remove(self, name: str, doc_type: DocumentType | str) -> Template:
        return self._remove((name, DocumentType(doc_type)))

    def read_content(self, name: str, doc_type: DocumentType | str) -> str:
        return self._read_content((name, DocumentType(doc_type)))

    def _describe(self, key: Hashable) -> str:
        name, doc_type = key
        return f'Template "{name}" of type "{DocumentType(doc_type).value}"'


class JobRegistry(_JsonRegistry[Job]):
    entry_model = Job
    kind = "job"

    def add(self, job: Job, source_file_path: str | Path) -> Job:
        return self._add(job, source_file_path)

    def get(self, name: str) -> Job | None:
        return self._find(name)

    def remove(self, name: str) -> Job:
        return self._remove(name)

    def read_content(self, name: str) -> str:
        return self._read_content(name)

    def _describe(self, key: Hashable) -> str:
        return f'Job "{key}"'
