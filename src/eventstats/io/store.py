from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import yaml

LOGGER = logging.getLogger(__name__)

CHART_CONFIGURATIONS = "chart-configurations"
PROJECT_STATISTICS = "project-statistics"
REPORT_LAYOUT = "report-layout"

DOCUMENT_SUFFIXES = (".json", ".yaml", ".yml")


class DocumentNotFoundError(FileNotFoundError):
    """Raised when a store holds no document for a collection/key pair."""


class DocumentStore(Protocol):
    def get(self, collection: str, key: str | None = None) -> Any: ...


class FileDocumentStore:
    """Documents laid out as ``<root>/<collection>/<key>.json`` (or ``.yaml``).

    A collection read without a key maps to ``<root>/<collection>.json``.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, collection: str, key: str | None = None) -> Path:
        stem = self.root / collection if key is None else self.root / collection / key
        for suffix in DOCUMENT_SUFFIXES:
            candidate = stem.with_name(stem.name + suffix)
            if candidate.exists():
                return candidate
        raise DocumentNotFoundError(f"No document for {collection}/{key or ''} under {self.root}")

    def get(self, collection: str, key: str | None = None) -> Any:
        path = self.path_for(collection, key)
        LOGGER.debug("Reading %s", path)
        text = path.read_text(encoding="utf-8")
        if path.suffix == ".json":
            try:
                return json.loads(text)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Malformed JSON document {path}: {exc}") from exc
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Malformed YAML document {path}: {exc}") from exc


class InMemoryDocumentStore:
    def __init__(self, documents: dict[tuple[str, str | None], Any] | None = None) -> None:
        self.documents: dict[tuple[str, str | None], Any] = dict(documents or {})

    def put(self, collection: str, key: str | None, document: Any) -> None:
        self.documents[(collection, key)] = document

    def get(self, collection: str, key: str | None = None) -> Any:
        try:
            return self.documents[(collection, key)]
        except KeyError:
            raise DocumentNotFoundError(f"No document for {collection}/{key or ''}") from None
