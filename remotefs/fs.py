"""
Safe filesystem operations for remotefs
"""

import asyncio
import os
import shutil
import stat
import logging
from pathlib import Path
from typing import AsyncGenerator, Iterable, List, Optional, Tuple
import aiofiles
import aiofiles.os
from fastapi import UploadFile

from .models import Entry, CHUNK_SIZE
from .utils import format_size, join_segments, normalize_path, upload_filename

logger = logging.getLogger(__name__)


class FileSystemError(Exception):
    """Generic filesystem error"""
    status_code = 500


class PathTraversalError(FileSystemError):
    """Raised when path traversal attack is detected"""
    status_code = 404


class EntryNotFoundError(FileSystemError):
    """Raised when the requested file or directory does not exist"""
    status_code = 404


class EntryExistsError(FileSystemError):
    """Raised when creating a directory that already exists"""
    status_code = 409


class UploadTargetMissingError(FileSystemError):
    """Raised when uploading into a directory that does not exist"""
    status_code = 400


def safe_join(root_path: Path, *segments: Optional[str]) -> Path:
    """
    Safely join root path with relative path segments, preventing directory traversal

    Args:
        root_path: Root directory path
        segments: Relative path pieces (directory path, filename); empty or
            None pieces are skipped

    Returns:
        Resolved absolute path within root

    Raises:
        PathTraversalError: If path would escape root directory
    """

    rel_path = join_segments(*segments)

    # Split the path into components and validate each part
    parts = []
    for part in rel_path.split('/'):
        if not part or part == '.':
            # Skip empty or current-directory segments caused by // or ./
            continue
        if part == '..':
            raise PathTraversalError(f"Path traversal detected: {rel_path}")
        parts.append(part)

    base_path = root_path.resolve()
    full_path = base_path.joinpath(*parts) if parts else base_path

    # Resolve symlinks without requiring the target to exist
    try:
        resolved_path = full_path.resolve(strict=False)
    except OSError as e:
        raise FileSystemError(f"Failed to resolve path: {e}")

    # Ensure resolved path is within root
    try:
        resolved_path.relative_to(base_path)
    except ValueError:
        raise PathTraversalError(f"Path traversal detected: {rel_path}")

    return resolved_path


async def list_directory(root_path: Path, rel_path: Optional[str]) -> List[Entry]:
    """
    List the immediate children of a directory

    Args:
        root_path: Storage root
        rel_path: Directory path relative to the root

    Returns:
        Entries sorted by name; directory names end with '/'

    Raises:
        EntryNotFoundError: If the path is not an existing directory
        FileSystemError: If the directory cannot be read
    """

    dir_path = safe_join(root_path, rel_path)

    if not await aiofiles.os.path.isdir(dir_path):
        raise EntryNotFoundError(f"Directory not found: {rel_path or '/'}")

    try:
        names = await aiofiles.os.listdir(dir_path)
    except OSError as e:
        raise FileSystemError(f"Failed to list directory: {e}")

    entries = []
    for name in names:
        entry_path = dir_path / name

        try:
            st = await aiofiles.os.stat(entry_path)
        except OSError as e:
            logger.warning(f"Failed to stat {entry_path}: {e}")
            continue

        if stat.S_ISDIR(st.st_mode):
            entries.append(Entry(name=f"{name}/", is_file=False))
        else:
            entries.append(Entry(name=name, is_file=True, size=format_size(st.st_size)))

    entries.sort(key=lambda e: e.name)
    return entries


async def open_file_for_download(
    root_path: Path,
    rel_path: Optional[str],
    filename: Optional[str] = None,
) -> Tuple[AsyncGenerator[bytes, None], int, float, str]:
    """
    Open a file for streaming

    Args:
        root_path: Storage root
        rel_path: Directory path relative to the root
        filename: Name of the file inside that directory

    Returns:
        (chunk generator, size, mtime, download name) tuple

    Raises:
        EntryNotFoundError: If the path is not an existing regular file
    """

    file_path = safe_join(root_path, rel_path, filename)

    if not await aiofiles.os.path.isfile(file_path):
        raise EntryNotFoundError(f"File not found: {join_segments(rel_path, filename)}")

    try:
        st = await aiofiles.os.stat(file_path)
    except OSError as e:
        raise FileSystemError(f"Failed to open file: {e}")

    async def file_generator():
        async with aiofiles.open(file_path, 'rb') as f:
            while True:
                chunk = await f.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    return file_generator(), st.st_size, st.st_mtime, file_path.name


async def create_directory(root_path: Path, rel_path: Optional[str]) -> Path:
    """
    Create a directory and any missing parents

    Raises:
        EntryExistsError: If the directory already exists
        FileSystemError: If creation fails
    """

    dir_path = safe_join(root_path, rel_path)

    if await aiofiles.os.path.isdir(dir_path):
        raise EntryExistsError(f"Directory already exists: {rel_path or '/'}")

    try:
        await aiofiles.os.makedirs(dir_path, exist_ok=False)
    except FileExistsError:
        raise EntryExistsError(f"A file already exists at: {rel_path}")
    except OSError as e:
        raise FileSystemError(f"Failed to create directory: {e}")

    logger.info(f"Created directory: {dir_path}")
    return dir_path


async def save_uploaded_files(
    root_path: Path,
    rel_path: Optional[str],
    uploads: Iterable[UploadFile],
) -> List[str]:
    """
    Save uploaded files into an existing directory

    Args:
        root_path: Storage root
        rel_path: Target directory relative to the root
        uploads: Uploaded files in request order

    Returns:
        ``"{path}/{filename}"`` for every saved file, in upload order

    Raises:
        UploadTargetMissingError: If the target directory does not exist
        FileSystemError: If writing fails
    """

    dir_path = safe_join(root_path, rel_path)
    if not await aiofiles.os.path.isdir(dir_path):
        raise UploadTargetMissingError(f"Directory {rel_path or ''} not found.")

    saved = []
    for upload in uploads:
        filename = upload_filename(upload.filename)
        file_path = safe_join(root_path, rel_path, filename)

        try:
            bytes_written = 0
            async with aiofiles.open(file_path, 'wb') as f:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    bytes_written += len(chunk)
                    await f.write(chunk)
        except OSError as e:
            raise FileSystemError(f"Failed to save file {filename}: {e}")

        logger.info(f"Uploaded file: {file_path} ({bytes_written} bytes)")
        saved.append(f"{rel_path or ''}/{filename}")

    return saved


async def delete_file(root_path: Path, rel_path: Optional[str], filename: Optional[str]) -> None:
    """
    Delete a single regular file

    Raises:
        EntryNotFoundError: If no filename is given or the file does not exist
        FileSystemError: If removal fails
    """

    if not filename:
        raise EntryNotFoundError("No file given")

    file_path = safe_join(root_path, rel_path, filename)

    if not await aiofiles.os.path.isfile(file_path):
        raise EntryNotFoundError(f"File not found: {join_segments(rel_path, filename)}")

    try:
        await aiofiles.os.remove(file_path)
    except OSError as e:
        raise FileSystemError(f"Failed to delete: {e}")

    logger.info(f"Deleted file: {file_path}")


def clear_readonly_attributes(dir_path: Path) -> None:
    """
    Make a directory tree writable, depth first

    Directories get owner rwx so they can be entered and emptied, files get
    owner rw. Symlinks are left alone.
    """
    os.chmod(dir_path, stat.S_IMODE(os.lstat(dir_path).st_mode) | stat.S_IRWXU)

    with os.scandir(dir_path) as it:
        children = list(it)

    for child in children:
        if child.is_symlink():
            continue
        if child.is_dir(follow_symlinks=False):
            clear_readonly_attributes(Path(child.path))
        else:
            mode = stat.S_IMODE(child.stat(follow_symlinks=False).st_mode)
            os.chmod(child.path, mode | stat.S_IREAD | stat.S_IWRITE)


def _remove_tree(dir_path: Path) -> None:
    clear_readonly_attributes(dir_path)
    shutil.rmtree(dir_path)


async def delete_directory(root_path: Path, rel_path: Optional[str]) -> None:
    """
    Delete a directory and everything below it

    Read-only bits are cleared across the whole tree first, then the tree
    is removed.

    Raises:
        EntryNotFoundError: If the path is not an existing directory or is
            the storage root itself
        FileSystemError: If removal fails
    """

    dir_path = safe_join(root_path, rel_path)

    if dir_path == root_path.resolve():
        raise EntryNotFoundError("Refusing to delete the storage root")

    if not await aiofiles.os.path.isdir(dir_path):
        raise EntryNotFoundError(f"Directory not found: {normalize_path(rel_path or '')}")

    try:
        await asyncio.to_thread(_remove_tree, dir_path)
    except OSError as e:
        raise FileSystemError(f"Failed to delete: {e}")

    logger.info(f"Deleted directory: {dir_path}")
