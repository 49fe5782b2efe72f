"""
Rune Persistence

Backends that store a finished rune document and its original media.

- FilesystemBackend: <workspace>/rune/<id>.json (ids are rune_<ms>_<rand>) and
  <workspace>/media/media_<id>_<i><ext>
- ExportBackend: hands (filename, payload) to a sink, the headless
  counterpart of a download
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence, TYPE_CHECKING

from ..common.config import StorageConfig
from ..common.errors import PersistenceError
from ..common.schemas import Rune, rune_from_document, rune_to_document

if TYPE_CHECKING:
    from .extractor import InputFile

logger = logging.getLogger("runeforge.forge.persistence")

RUNE_DIR = "rune"
MEDIA_DIR = "media"

ExportSink = Callable[[str, bytes], None]


@dataclass
class SaveResult:
    success: bool
    id: str = ""
    path: str = ""
    error: Optional[str] = None


def document_filename(rune: Rune) -> str:
    return f"{rune.id}.json"


def encode_document(rune: Rune, files: Sequence["InputFile"] = ()) -> bytes:
    document = rune_to_document(rune, [f.name for f in files])
    return json.dumps(document, ensure_ascii=False, indent=2).encode("utf-8")


class PersistenceBackend(ABC):
    """Stores a rune. Implementations must not mutate the rune."""

    name = "abstract"

    @abstractmethod
    async def save(self, rune: Rune, files: Sequence["InputFile"] = ()) -> SaveResult:
        """Persist the rune; raise PersistenceError on failure."""
        pass


class FilesystemBackend(PersistenceBackend):
    """Writes documents and media under a workspace directory."""

    name = "filesystem"

    def __init__(self, workspace):
        self.workspace = Path(workspace).expanduser()
        self.rune_dir = self.workspace / RUNE_DIR
        self.media_dir = self.workspace / MEDIA_DIR

    def _prepare(self) -> None:
        self.rune_dir.mkdir(parents=True, exist_ok=True)
        self.media_dir.mkdir(parents=True, exist_ok=True)

    def _write_media(self, rune_id: str, files: Sequence["InputFile"]) -> None:
        for index, file in enumerate(files):
            target = self.media_dir / f"media_{rune_id}_{index}{file.suffix}"
            try:
                target.write_bytes(file.data)
            except OSError as e:
                logger.warning("Failed to write media %s: %s", target, e)

    def _write(self, rune: Rune, files: Sequence["InputFile"]) -> Path:
        self._prepare()
        path = self.rune_dir / document_filename(rune)
        path.write_bytes(encode_document(rune, files))
        self._write_media(rune.id, files)
        return path

    async def save(self, rune: Rune, files: Sequence["InputFile"] = ()) -> SaveResult:
        try:
            path = await asyncio.to_thread(self._write, rune, files)
        except OSError as e:
            raise PersistenceError(f"Failed to write rune {rune.id}: {e}") from e
        logger.info("Saved rune %s to %s", rune.id, path)
        return SaveResult(success=True, id=rune.id, path=str(path))


class ExportBackend(PersistenceBackend):
    """Serialises the document and hands it to a sink (default: kept in memory)."""

    name = "export"

    def __init__(self, sink: Optional[ExportSink] = None):
        self.exports: Dict[str, bytes] = {}
        self._sink = sink or self.exports.__setitem__

    async def save(self, rune: Rune, files: Sequence["InputFile"] = ()) -> SaveResult:
        filename = document_filename(rune)
        try:
            self._sink(filename, encode_document(rune, files))
        except Exception as e:
            raise PersistenceError(f"Export of rune {rune.id} failed: {e}") from e
        logger.info("Exported rune %s as %s", rune.id, filename)
        return SaveResult(success=True, id=rune.id, path=filename)


def select_backend(config: StorageConfig) -> PersistenceBackend:
    """Pick the backend named in config; "auto" prefers the filesystem."""
    choice = (config.backend or "auto").lower()
    if choice == "filesystem":
        return FilesystemBackend(config.workspace_path)
    if choice == "export":
        return ExportBackend()
    if choice != "auto":
        logger.warning("Unknown storage backend %r, using auto", config.backend)

    backend = FilesystemBackend(config.workspace_path)
    try:
        backend._prepare()
    except OSError as e:
        logger.warning("Workspace %s unavailable (%s), falling back to export", backend.workspace, e)
        return ExportBackend()
    return backend


def load_rune(path) -> Rune:
    """Load a rune from a persisted JSON document."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Cannot load rune document {path}: {e}") from e
    return rune_from_document(document)
