"""Synchronization API routes."""

import io
from typing import List

from fastapi import APIRouter, Body, File, Query, UploadFile

from filesync.schemas.sync import (
    FileSyncRequest,
    FileToUploadResponse,
    IncompleteSyncListResponse,
    IncompleteSyncResponse,
    SyncEvaluationData,
    SyncFulfillmentData,
    SynchronizeResponse,
    UploadSyncResponse,
)
from filesync.services.sync_service import SyncService
from filesync.utils import validate_upload

router = APIRouter(prefix="/storage", tags=["Synchronization"])


@router.post("/synchronize", response_model=SynchronizeResponse)
async def synchronize(
    files: List[FileSyncRequest] = Body(...),
    owner_id: str = Query(..., min_length=1),
):
    """
    Find which of the client's files must be uploaded again.

    Parameters:
        - body: list of {file_id, last_updated, checksum?} as last seen by the client

    Returns:
        - data: None when the client is up to date, otherwise the
          synchronization_id and the files to upload

    Raises:
        - 400: Empty file list
    """
    evaluation = (await SyncService().evaluate_sync_request(
        owner_id,
        [item.to_report() for item in files],
    )).unwrap()

    if evaluation.up_to_date:
        return SynchronizeResponse(message="No files need to be uploaded.")

    return SynchronizeResponse(
        message="Files to upload.",
        data=SyncEvaluationData(
            synchronization_id=evaluation.session_id,
            files_to_upload=[
                FileToUploadResponse(file_id=item.file_id, file_name=item.file_name)
                for item in evaluation.files_to_upload
            ],
        ),
    )


@router.get("/sync/incomplete", response_model=IncompleteSyncListResponse)
async def get_incomplete_synchronizations(owner_id: str = Query(..., min_length=1)):
    sessions = (await SyncService().list_incomplete_sessions(owner_id)).unwrap()

    message = (
        "Incomplete synchronizations retrieved successfully."
        if sessions else "No incomplete synchronizations found."
    )
    return IncompleteSyncListResponse(
        message=message,
        data=[
            IncompleteSyncResponse(
                synchronization_id=session.session_id,
                files_to_update=session.pending,
                created_at=session.created_at,
                last_updated=session.last_updated,
            )
            for session in sessions
        ],
    )


@router.post("/upload/sync", response_model=UploadSyncResponse)
async def upload_sync(
    archive: UploadFile = File(...),
    synchronization_id: str = Query(..., min_length=1),
    owner_id: str = Query(..., min_length=1),
):
    """
    Upload a zip archive holding files owed to a synchronization session.

    Returns:
        - completed: True once every pending file has been received
        - synchronized_files: names applied by this upload
        - pending_files: files still owed

    Raises:
        - 400: Not a zip archive
        - 404: Unknown or already completed synchronization
        - 409: Concurrent uploads kept conflicting
    """
    content = await archive.read()
    validate_upload(archive.filename, len(content), archive=True)

    fulfillment = (await SyncService().fulfill_sync(
        synchronization_id,
        owner_id,
        io.BytesIO(content),
    )).unwrap()

    if fulfillment.completed:
        message = "File synchronization completed."
    else:
        message = "File synchronization incomplete."

    return UploadSyncResponse(
        message=message,
        data=SyncFulfillmentData(
            completed=fulfillment.completed,
            synchronized_files=fulfillment.synchronized_files,
            pending_files=[
                FileToUploadResponse(file_id=item.file_id, file_name=item.file_name)
                for item in fulfillment.pending_files
            ],
        ),
    )
