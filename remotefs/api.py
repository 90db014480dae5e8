"""
API routes for remotefs
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Request, HTTPException, UploadFile, File, Depends, Response
from fastapi.responses import JSONResponse, StreamingResponse

from .models import ApiResponse, ResponseCode
from .fs import EntryNotFoundError
from .storage_server import StorageServer, FileSystemError
from .utils import content_disposition, create_response_headers
from .metrics import metrics_manager

logger = logging.getLogger(__name__)

# API router
values_router = APIRouter(prefix="/api/values", tags=["values"])


def get_storage(request: Request) -> StorageServer:
    """Storage server bound to the application at startup"""
    return request.app.state.storage


def _storage_http_exception(exc: FileSystemError) -> HTTPException:
    """Convert a FileSystemError into a HTTPException."""

    status_code = getattr(exc, "status_code", 500) or 500
    if status_code == 404:
        code = ResponseCode.NOT_FOUND.value
    elif status_code == 409:
        code = ResponseCode.CONFLICT.value
    elif status_code == 400:
        code = ResponseCode.BAD_REQUEST.value
    else:
        code = ResponseCode.INTERNAL_ERROR.value
        logger.error("Storage operation failed: %s", exc)
        metrics_manager.increment_errors()

    return HTTPException(
        status_code=status_code,
        detail=ApiResponse(
            code=code,
            msg=str(exc),
            data=None,
        ).to_dict(),
    )


async def _get_content(storage: StorageServer, path: Optional[str], file: Optional[str]):
    """List a directory, or stream a file when one is named"""

    try:
        if not file:
            entries = await storage.list_files(path)
            return [entry.to_dict() for entry in entries]

        file_generator, size, modified, filename = await storage.open_for_download(path, file)

    except FileSystemError as e:
        raise _storage_http_exception(e)

    headers = create_response_headers(
        content_length=size,
        last_modified=modified,
    )
    headers["Content-Disposition"] = content_disposition(filename)

    async def counted_generator():
        async for chunk in file_generator:
            metrics_manager.add_download_bytes(len(chunk))
            yield chunk

    return StreamingResponse(
        counted_generator(),
        headers=headers,
        media_type="application/octet-stream"
    )


async def _has_uploads(request: Request) -> bool:
    """True when the multipart body carries a file under any field"""
    form = await request.form()
    return any(not isinstance(value, str) for _, value in form.multi_items())


async def _create_content(
    request: Request,
    storage: StorageServer,
    path: Optional[str],
    files: Optional[List[UploadFile]],
):
    """Save uploaded files, or create the directory when nothing was uploaded"""

    try:
        if await _has_uploads(request):
            # Only the "files" field is saved; other file fields are ignored
            if not files:
                return JSONResponse(content=[], status_code=201)

            saved = await storage.upload_files(path, files)
            metrics_manager.add_upload_bytes(sum(f.size or 0 for f in files))
            return JSONResponse(content=saved, status_code=201)

        await storage.make_directory(path)
        return Response(status_code=201)

    except FileSystemError as e:
        raise _storage_http_exception(e)


@values_router.get("")
async def get_root_content(
    file: Optional[str] = None,
    storage: StorageServer = Depends(get_storage),
):
    """List the storage root, or download a file directly under it"""
    return await _get_content(storage, None, file)


@values_router.get("/{path:path}")
async def get_content(
    path: str,
    file: Optional[str] = None,
    storage: StorageServer = Depends(get_storage),
):
    """List a directory, or download ``file`` from it"""
    return await _get_content(storage, path, file)


@values_router.delete("")
async def delete_root_file(
    file: Optional[str] = None,
    storage: StorageServer = Depends(get_storage),
):
    """Delete a file directly under the storage root"""

    # Without a filename there is nothing to delete at this level
    try:
        await storage.delete_file(None, file)
    except FileSystemError as e:
        raise _storage_http_exception(e)

    return Response(status_code=200)


@values_router.delete("/{path:path}")
async def delete_nested_content(
    path: str,
    file: Optional[str] = None,
    storage: StorageServer = Depends(get_storage),
):
    """Delete ``file`` inside path, or the whole directory when no file is given"""

    try:
        if not file:
            await storage.delete_directory(path)
        elif not path.strip('/'):
            # A file with no directory segment never falls back to the root
            raise EntryNotFoundError("No directory path given for file delete")
        else:
            await storage.delete_file(path, file)
    except FileSystemError as e:
        raise _storage_http_exception(e)

    return Response(status_code=200)


@values_router.post("")
async def create_root_content(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    storage: StorageServer = Depends(get_storage),
):
    """Upload files into the storage root"""
    return await _create_content(request, storage, None, files)


@values_router.post("/{path:path}")
async def create_nested_content(
    request: Request,
    path: str,
    files: Optional[List[UploadFile]] = File(None),
    storage: StorageServer = Depends(get_storage),
):
    """Upload files into path, or create the directory if none were sent"""
    return await _create_content(request, storage, path, files)


def setup_api_routes(app):
    """Setup API routes"""
    app.include_router(values_router)
    logger.info("API routes setup complete")
