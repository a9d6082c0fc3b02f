"""Per-entity JSON document directories.

Layout::

    <data_dir>/<host>/<entity>/<code>.json

One document per region or zipcode. Documents are plain dicts so that
fields this package does not know about survive a rewrite untouched.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

COMMUNITIES = "communities"
AREAS = "areas"
ZIPCODE_ASSIGNMENTS = "mkp-community-zipcodes"


class MissingDirectoryError(Exception):
    """A required input directory does not exist."""

    def __init__(self, path: Path, hint: str | None = None):
        self.path = path
        self.hint = hint
        message = f"Directory not found: {path}"
        if hint:
            message = f"{message}\n{hint}"
        super().__init__(message)


@dataclass
class StoredDocument:
    path: Path
    data: dict[str, Any]

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass
class DocumentError:
    path: Path
    message: str


@dataclass
class DocumentBatch:
    """Documents read from one directory, plus the files that failed to parse."""

    documents: list[StoredDocument] = field(default_factory=list)
    errors: list[DocumentError] = field(default_factory=list)


def dump_document(data: dict[str, Any], pretty: bool = False) -> str:
    """Serialize a document; compact unless ``pretty``."""
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False)
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


class DocumentStore:
    """Reads and writes entity documents for one host namespace."""

    def __init__(self, data_dir: Path, host: str):
        self.data_dir = Path(data_dir)
        self.host = host

    @property
    def root(self) -> Path:
        return self.data_dir / self.host

    def directory(self, entity: str) -> Path:
        return self.root / entity

    def path_for(self, entity: str, key: str) -> Path:
        return self.directory(entity) / f"{key}.json"

    def read_all(self, entity: str, required: bool = True, hint: str | None = None) -> DocumentBatch:
        """Load every ``*.json`` document of an entity, in filename order.

        Unparseable files are reported in ``errors`` and skipped. A missing
        directory raises MissingDirectoryError when ``required``, otherwise
        yields an empty batch.
        """
        directory = self.directory(entity)
        if not directory.is_dir():
            if required:
                raise MissingDirectoryError(directory, hint)
            return DocumentBatch()

        batch = DocumentBatch()
        for path in sorted(directory.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error parsing {path.name}: {e}")
                batch.errors.append(DocumentError(path=path, message=str(e)))
                continue
            if not isinstance(data, dict):
                logger.error(f"Error parsing {path.name}: expected a JSON object")
                batch.errors.append(DocumentError(path=path, message="expected a JSON object"))
                continue
            batch.documents.append(StoredDocument(path=path, data=data))
        return batch

    def write(self, path: Path, data: dict[str, Any], pretty: bool = False) -> None:
        """Replace ``path`` with the serialized document in one rename."""
        path.parent.mkdir(parents=True, exist_ok=True)
        staging = path.with_name(f".{path.name}.tmp")
        staging.write_text(dump_document(data, pretty), encoding="utf-8")
        staging.replace(path)
