"""File transfer API routes."""

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from common.types import FileStatus
from transfer.exceptions import InputError
from transfer.schemas.files import (
    ChunkResponse,
    UploadResponse,
    FileStatusResponse,
    FileInfoResponse,
    ListFilesResponse,
    DeleteFileResponse
)
from transfer.service_locator import get_download_service, get_file_service, get_upload_service
from transfer.services import DownloadService, FileService, UploadService

router = APIRouter(tags=["Files"])


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    upload_service: UploadService = Depends(get_upload_service)
):
    """
    Upload a file as a sequence of checksummed chunks.

    Parameters:
        - file: File to upload (multipart/form-data)

    Returns:
        - file_id, filename, size, chunk_count, status
        - chunks: metadata of every stored chunk in index order

    Raises:
        - 400: No file provided
        - 500: Object store or ledger failure
    """
    if file is None or not file.filename:
        raise InputError("No file provided")

    result = await upload_service.upload(file.filename, file)

    return UploadResponse(
        file_id=result.file.file_id,
        filename=result.file.file_name,
        size=result.file.file_size,
        chunk_count=result.file.chunk_count,
        status=result.file.status.value,
        chunks=[ChunkResponse.from_record(chunk) for chunk in result.chunks],
    )


def _content_disposition(file_name: str) -> str:
    """
    Build an attachment header that survives any file name.

    Starlette encodes header values as latin-1, so the plain filename is an
    ASCII fallback and the real name travels percent-encoded in filename*.
    """
    fallback = "".join(
        c if 32 <= ord(c) < 127 and c not in '"\\' else "_" for c in file_name
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


async def _download_response(file_id: str, download_service: DownloadService) -> StreamingResponse:
    record, stream = await download_service.open_download(file_id)

    return StreamingResponse(
        stream,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": _content_disposition(record.file_name),
            "Content-Length": str(record.file_size),
        }
    )


@router.get("/download/{file_id}")
async def download_file(
    file_id: str,
    download_service: DownloadService = Depends(get_download_service)
):
    """
    Download a completed file.

    Raises:
        - 404: File unknown or not completed
        - 500: Chunk metadata inconsistent or chunk missing from the store
    """
    return await _download_response(file_id, download_service)


@router.get("/stream/{file_id}")
async def stream_file(
    file_id: str,
    request: Request,
    download_service: DownloadService = Depends(get_download_service)
):
    """
    Stream a completed file. Range requests are not supported.

    Raises:
        - 404: File unknown or not completed
        - 501: Range header present
    """
    if request.headers.get("range"):
        raise NotImplementedError("Range requests are not supported")
    return await _download_response(file_id, download_service)


@router.get("/status/{file_id}", response_model=FileStatusResponse)
async def file_status(
    file_id: str,
    file_service: FileService = Depends(get_file_service)
):
    """
    Return the ledger record of a file.

    Raises:
        - 404: File not found
    """
    record = await file_service.get_file(file_id)
    return FileStatusResponse.from_record(record)


@router.get("/info/{file_id}", response_model=FileInfoResponse)
async def file_info(
    file_id: str,
    file_service: FileService = Depends(get_file_service)
):
    record = await file_service.get_file(file_id)
    return FileInfoResponse(
        file_id=record.file_id,
        file_name=record.file_name,
        file_size=record.file_size,
        chunk_count=record.chunk_count,
        status=record.status.value,
        created_at=record.created_at.isoformat(),
        download_url=f"/download/{record.file_id}",
    )


@router.get("/files", response_model=ListFilesResponse)
async def list_files(
    status: Optional[FileStatus] = Query(None, description="Only files in this status"),
    limit: int = Query(100, ge=1, le=1000),
    file_service: FileService = Depends(get_file_service)
):
    files = await file_service.list_files(status=status, limit=limit)
    return ListFilesResponse(
        files=[FileStatusResponse.from_record(record) for record in files],
        count=len(files),
    )


@router.delete("/files/{file_id}", response_model=DeleteFileResponse)
async def delete_file(
    file_id: str,
    file_service: FileService = Depends(get_file_service)
):
    """
    Delete a file and its chunks.

    Raises:
        - 404: File not found
    """
    failed = await file_service.delete_file(file_id)
    message = "File deleted"
    if failed:
        message = f"File deleted, {len(failed)} chunk objects left for cleanup"
    return DeleteFileResponse(file_id=file_id, message=message)
