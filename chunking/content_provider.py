"""Source content providers: where the orchestrator gets file text from."""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class SourceNotFoundError(FileNotFoundError):
    """A provider had no content for a snapshot file."""

    def __init__(self, snapshot_id: str, file_path: str):
        super().__init__(f"No content for {file_path} in snapshot {snapshot_id}")
        self.snapshot_id = snapshot_id
        self.file_path = file_path


class ContentProvider(ABC):
    """Returns raw text for a ``(snapshot_id, file_path)`` pair."""

    @abstractmethod
    async def get_content(self, snapshot_id: str, file_path: str) -> Optional[str]:
        """Fetch file content.

        Args:
            snapshot_id: Snapshot identifier
            file_path: File path relative to the snapshot root

        Returns:
            The text, or ``None`` when the snapshot has no such file
        """
        pass

    async def require_content(self, snapshot_id: str, file_path: str) -> str:
        """Like ``get_content`` but raises ``SourceNotFoundError`` on ``None``."""
        content = await self.get_content(snapshot_id, file_path)
        if content is None:
            raise SourceNotFoundError(snapshot_id, file_path)
        return content


class InMemoryContentProvider(ContentProvider):
    """Dictionary-backed provider."""

    def __init__(self, files: Optional[Dict[Tuple[str, str], str]] = None):
        self._files: Dict[Tuple[str, str], str] = dict(files or {})

    def add(self, snapshot_id: str, file_path: str, content: str):
        self._files[(snapshot_id, file_path)] = content

    async def get_content(self, snapshot_id: str, file_path: str) -> Optional[str]:
        return self._files.get((snapshot_id, file_path))


class DirectoryContentProvider(ContentProvider):
    """Reads snapshots stored as ``<storage_dir>/<snapshot_id>/<file path>``."""

    def __init__(self, storage_dir: Optional[Path] = None, encoding: str = 'utf-8'):
        """Initialize the provider.

        Args:
            storage_dir: Snapshot root (default: ``CODE_CHUNKER_STORAGE`` or
                ~/.code_chunker/snapshots)
            encoding: Text encoding of stored files
        """
        if storage_dir is None:
            storage_dir = os.getenv('CODE_CHUNKER_STORAGE', str(Path.home() / '.code_chunker' / 'snapshots'))
        self.storage_dir = Path(storage_dir)
        self.encoding = encoding

    def resolve(self, snapshot_id: str, file_path: str) -> Optional[Path]:
        """Location of a snapshot file, ``None`` if it would escape the snapshot or the storage directory."""
        storage_root = self.storage_dir.resolve()
        snapshot_root = (storage_root / snapshot_id).resolve()
        if storage_root not in snapshot_root.parents:
            logger.warning(f"Refusing snapshot outside storage directory: {snapshot_id}")
            return None
        candidate = (snapshot_root / file_path.lstrip('/\\')).resolve()
        if snapshot_root != candidate and snapshot_root not in candidate.parents:
            logger.warning(f"Refusing path outside snapshot {snapshot_id}: {file_path}")
            return None
        return candidate

    def _read(self, path: Path) -> Optional[str]:
        if not path.is_file():
            return None
        return path.read_text(encoding=self.encoding, errors='replace')

    async def get_content(self, snapshot_id: str, file_path: str) -> Optional[str]:
        path = self.resolve(snapshot_id, file_path)
        if path is None:
            return None
        content = await asyncio.to_thread(self._read, path)
        if content is None:
            logger.debug(f"{file_path} not found in snapshot {snapshot_id}")
        return content
