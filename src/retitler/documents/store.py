"""Document storage used by the retitling orchestrator."""

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from retitler.utils.errors import DocumentError, ValidationError

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Read, write and rename documents addressed by relative path."""

    async def read_content(self, path: str) -> str: ...

    async def write_content(self, path: str, content: str) -> None: ...

    async def rename(self, path: str, new_path: str) -> None:
        """Rename a document. Fails if new_path already exists."""
        ...

    async def exists(self, path: str) -> bool: ...


class FileSystemDocumentStore:
    """DocumentStore over a directory tree.

    Paths are relative to root_dir and may not escape it. When extensions
    is given, only files with one of those suffixes are accepted.
    """

    def __init__(
        self,
        root_dir: Path | str,
        extensions: Iterable[str] | None = None,
        encoding: str = "utf-8",
    ):
        self.root_dir = Path(root_dir).resolve()
        self.extensions = {e.lower() for e in extensions} if extensions else None
        self.encoding = encoding

    def resolve(self, path: str) -> Path:
        """Absolute path for a relative document path.

        Raises:
            ValidationError: If the path points outside root_dir or has an
                unsupported extension.
        """
        resolved = (self.root_dir / path).resolve()
        if not resolved.is_relative_to(self.root_dir):
            raise ValidationError(f"Path escapes the document root: {path}")
        if self.extensions is not None and resolved.suffix.lower() not in self.extensions:
            raise ValidationError(f"Unsupported document type: {path}")
        return resolved

    async def read_content(self, path: str) -> str:
        resolved = self.resolve(path)
        try:
            return await asyncio.to_thread(resolved.read_text, encoding=self.encoding)
        except UnicodeDecodeError as e:
            raise DocumentError(f"{path} is not valid {self.encoding} text") from e
        except FileNotFoundError as e:
            raise DocumentError(f"Document not found: {path}") from e
        except OSError as e:
            raise DocumentError(f"Could not read {path}: {e.strerror}") from e

    async def write_content(self, path: str, content: str) -> None:
        resolved = self.resolve(path)
        try:
            await asyncio.to_thread(resolved.write_text, content, encoding=self.encoding)
        except UnicodeEncodeError as e:
            raise DocumentError(f"Content of {path} cannot be encoded as {self.encoding}") from e
        except OSError as e:
            raise DocumentError(f"Could not write {path}: {e.strerror}") from e

    async def rename(self, path: str, new_path: str) -> None:
        source = self.resolve(path)
        target = self.resolve(new_path)
        await asyncio.to_thread(self._rename, source, target, path, new_path)
        logger.debug(f"Renamed {path} -> {new_path}")

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self.resolve(path).exists)

    def _rename(self, source: Path, target: Path, path: str, new_path: str) -> None:
        if target.exists():
            raise DocumentError(f"Rename failed, target already exists: {new_path}")
        try:
            source.rename(target)
        except OSError as e:
            raise DocumentError(f"Rename failed for {path}: {e.strerror}") from e
