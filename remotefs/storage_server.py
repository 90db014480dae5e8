"""Server-side storage orchestration layer."""

from __future__ import annotations

from pathlib import Path
from typing import AsyncGenerator, Iterable, List, Optional, Tuple
import logging

from fastapi import UploadFile

from .fs import (
    list_directory,
    open_file_for_download,
    create_directory,
    save_uploaded_files,
    delete_file,
    delete_directory,
    FileSystemError,
)
from .models import Entry, StorageConfig

logger = logging.getLogger(__name__)


class StorageServer:
    """Encapsulates all storage operations under one fixed root."""

    def __init__(self, storage: StorageConfig):
        self._storage = storage

    @property
    def root(self) -> Path:
        return self._storage.root

    async def list_files(self, rel_path: Optional[str]) -> List[Entry]:
        logger.debug("Listing files", extra={"path": rel_path})
        return await list_directory(self.root, rel_path)

    async def open_for_download(
        self,
        rel_path: Optional[str],
        filename: Optional[str],
    ) -> Tuple[AsyncGenerator[bytes, None], int, float, str]:
        logger.debug(
            "Opening file for download",
            extra={"path": rel_path, "filename": filename},
        )
        return await open_file_for_download(self.root, rel_path, filename)

    async def make_directory(self, rel_path: Optional[str]) -> None:
        logger.debug("Creating directory", extra={"path": rel_path})
        await create_directory(self.root, rel_path)

    async def upload_files(
        self,
        rel_path: Optional[str],
        uploads: Iterable[UploadFile],
    ) -> List[str]:
        logger.debug("Uploading files", extra={"path": rel_path})
        return await save_uploaded_files(self.root, rel_path, uploads)

    async def delete_file(self, rel_path: Optional[str], filename: Optional[str]) -> None:
        logger.debug(
            "Deleting file",
            extra={"path": rel_path, "filename": filename},
        )
        await delete_file(self.root, rel_path, filename)

    async def delete_directory(self, rel_path: Optional[str]) -> None:
        logger.debug("Deleting directory", extra={"path": rel_path})
        await delete_directory(self.root, rel_path)


__all__ = ["StorageServer", "FileSystemError"]
