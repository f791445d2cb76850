"""File storage API routes."""

import io

from fastapi import APIRouter, File, Query, UploadFile
from fastapi.responses import StreamingResponse

from common.constants import HASH_PIECE_SIZE_BYTES
from filesync.schemas.common import MessageResponse
from filesync.schemas.files import (
    ArchiveChanges,
    ArchiveUpdateData,
    ArchiveUpdateResponse,
    ChecksumData,
    ChecksumResponse,
    FileMetadataResponse,
    IngestedFileResponse,
    ListFilesResponse,
    Pagination,
    UploadArchiveResponse,
    UploadFileResponse,
)
from filesync.services.file_service import FileService

router = APIRouter(prefix="/storage", tags=["Files"])


@router.post("/upload/file", response_model=UploadFileResponse)
async def upload_file(
    file: UploadFile = File(...),
    owner_id: str = Query(..., min_length=1),
):
    """
    Upload a single non-archive file.

    Raises:
        - 400: Empty upload or zip file
        - 413: File too large
    """
    content = await file.read()

    record = (await FileService().upload_file(
        owner_id=owner_id,
        file_name=file.filename,
        data=content,
        content_type=file.content_type if file.content_type != "application/octet-stream" else None,
    )).unwrap()

    return UploadFileResponse(
        message="File uploaded successfully",
        data=FileMetadataResponse.from_record(record),
    )


@router.post("/upload/archive", response_model=UploadArchiveResponse)
async def upload_archive(
    archive: UploadFile = File(...),
    owner_id: str = Query(..., min_length=1),
):
    """
    Store every file inside a zip archive as a separate file.

    Returns:
        - data: file_id, file_name and checksum of each stored file

    Raises:
        - 400: Not a zip archive
        - 413: Archive too large
    """
    content = await archive.read()

    ingested = (await FileService().ingest_archive(
        owner_id=owner_id,
        archive_name=archive.filename,
        archive_stream=io.BytesIO(content),
        archive_size=len(content),
    )).unwrap()

    return UploadArchiveResponse(
        message="Archive processed successfully",
        data=[
            IngestedFileResponse(file_id=item.file_id, file_name=item.file_name, checksum=item.checksum)
            for item in ingested
        ],
    )


@router.get("/list", response_model=ListFilesResponse)
async def list_files(
    owner_id: str = Query(..., min_length=1),
    page: int = Query(1),
    page_size: int = Query(10),
):
    file_page = (await FileService().list_files(owner_id, page, page_size)).unwrap()

    return ListFilesResponse(
        data=[FileMetadataResponse.from_record(record) for record in file_page.files],
        pagination=Pagination(
            page=file_page.page,
            page_size=file_page.page_size,
            total_files=file_page.total_files,
            total_pages=file_page.total_pages,
        ),
    )


@router.get("/files/{file_id}", response_model=FileMetadataResponse)
async def get_file_metadata(file_id: str, owner_id: str = Query(..., min_length=1)):
    record = (await FileService().get_file(owner_id, file_id)).unwrap()
    return FileMetadataResponse.from_record(record)


@router.get("/files/{file_id}/download")
async def download_file(file_id: str, owner_id: str = Query(..., min_length=1)):
    """
    Download the stored content of a file.

    Raises:
        - 404: Unknown file or missing content
    """
    record, stream = (await FileService().open_download(owner_id, file_id)).unwrap()

    def content():
        with stream:
            for piece in iter(lambda: stream.read(HASH_PIECE_SIZE_BYTES), b""):
                yield piece

    return StreamingResponse(
        content(),
        media_type=record.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{record.file_name}"',
            "Content-Length": str(record.size),
        }
    )


@router.get("/files/{file_id}/checksum", response_model=ChecksumResponse)
async def get_checksum(file_id: str, owner_id: str = Query(..., min_length=1)):
    stored_id, checksum = (await FileService().get_checksum(owner_id, file_id)).unwrap()
    return ChecksumResponse(data=ChecksumData(file_id=stored_id, checksum=checksum))


@router.post("/update/file", response_model=UploadFileResponse)
async def update_file(
    file: UploadFile = File(...),
    file_id: str = Query(...),
    owner_id: str = Query(..., min_length=1),
):
    """
    Replace the content of an existing non-archive file.

    Raises:
        - 400: Missing file id, empty upload or zip file
        - 404: Unknown file
    """
    content = await file.read()

    record = (await FileService().update_file(
        owner_id=owner_id,
        file_id=file_id,
        file_name=file.filename,
        data=content,
    )).unwrap()

    return UploadFileResponse(
        message="File updated successfully",
        data=FileMetadataResponse.from_record(record),
    )


@router.post("/update/archive/{file_id}", response_model=ArchiveUpdateResponse)
async def update_archive(
    file_id: str,
    archive: UploadFile = File(...),
    owner_id: str = Query(..., min_length=1),
):
    """
    Replace a stored archive, reporting which contained files changed.

    Unknown ids are stored as a new archive under the given id.

    Returns:
        - changed: False when both archives hold identical files
        - changes: added, deleted and modified relative paths
        - metadata: updated file metadata when changed
    """
    content = await archive.read()

    outcome = (await FileService().update_archive(
        owner_id=owner_id,
        file_id=file_id,
        archive_name=archive.filename,
        archive_data=content,
    )).unwrap()

    message = "File updated successfully." if outcome.changed else "No changes detected."
    return ArchiveUpdateResponse(
        message=message,
        data=ArchiveUpdateData(
            changed=outcome.changed,
            changes=ArchiveChanges(
                added=outcome.diff.added,
                deleted=outcome.diff.deleted,
                modified=outcome.diff.modified,
            ),
            metadata=FileMetadataResponse.from_record(outcome.record) if outcome.record else None,
        ),
    )


@router.delete("/delete/{file_id}", response_model=MessageResponse)
async def delete_file(file_id: str, owner_id: str = Query(..., min_length=1)):
    (await FileService().delete_file(owner_id, file_id)).unwrap()
    return MessageResponse(message="File deleted successfully.")
