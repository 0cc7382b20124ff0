"""
ReDPlAD — Uploads API

Profile photos and identity verification documents, stored in GCS.
"""

from __future__ import annotations

import asyncio
import uuid

import structlog
from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.auth import get_current_profile
from redplad.config import get_settings
from redplad.database import after_commit, get_db
from redplad.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PayloadTooLargeError,
    PermissionDeniedError,
)
from redplad.models.activity import DOCUMENT_TYPES, VerificationDocument
from redplad.models.profile import Profile
from redplad.schemas.admin import UploadResponse, VerificationDocumentResponse
from redplad.services.verification_service import document_response
from redplad.utils.storage import (
    DOCUMENT_CONTENT_TYPES,
    IMAGE_CONTENT_TYPES,
    delete_file,
    object_path,
    path_from_url,
    upload_file,
)

logger = structlog.get_logger("redplad.api.uploads")

router = APIRouter()


def _delete_after_commit(db: AsyncSession, path: str) -> None:
    """Remove ``path`` from the bucket once the row change is committed."""

    async def _delete() -> None:
        try:
            await asyncio.to_thread(delete_file, path)
        except Exception as exc:
            logger.warning("gcs_delete_failed", gcs_path=path, error=str(exc))

    after_commit(db, _delete)


async def _read_upload(upload: UploadFile, allowed_types: frozenset[str]) -> tuple[bytes, str]:
    """Validate type and size; return the file bytes and content type."""
    content_type = (upload.content_type or "").lower()
    if content_type not in allowed_types:
        raise BadRequestError(
            "Unsupported file type",
            "INVALID_FILE_TYPE",
            {"allowed": sorted(allowed_types)},
        )

    max_bytes = get_settings().MAX_UPLOAD_BYTES
    file_bytes = await upload.read()
    if not file_bytes:
        raise BadRequestError("Uploaded file is empty", "EMPTY_FILE")
    if len(file_bytes) > max_bytes:
        raise PayloadTooLargeError(
            "File exceeds the upload size limit",
            "FILE_TOO_LARGE",
            {"max_bytes": max_bytes},
        )
    return file_bytes, content_type


# ──────────────────────────────────────────────────────────────────────────────
# POST /profile-photo
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/profile-photo", response_model=UploadResponse, summary="Upload profile photo")
async def upload_profile_photo(
    file: UploadFile = File(..., description="JPEG, PNG, WebP or GIF image"),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> UploadResponse:
    """Store the image and point ``profile_photo_url`` at it.

    If the profile update fails the stored object is removed again.
    """
    log = logger.bind(user_id=str(profile.id))
    file_bytes, content_type = await _read_upload(file, IMAGE_CONTENT_TYPES)

    path = object_path("profile-photos", profile.id, content_type)
    url = upload_file(path, file_bytes, content_type=content_type)
    log.info("photo_uploaded", gcs_path=path, size=len(file_bytes))

    previous_path = path_from_url(profile.profile_photo_url or "")
    try:
        profile.profile_photo_url = url
        await db.flush()
    except SQLAlchemyError:
        log.error("photo_db_update_failed", gcs_path=path)
        delete_file(path)
        raise

    if previous_path:
        _delete_after_commit(db, previous_path)

    return UploadResponse(message="Profile photo uploaded successfully", url=url)


# ──────────────────────────────────────────────────────────────────────────────
# Verification documents
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/documents",
    response_model=VerificationDocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a verification document",
)
async def upload_document(
    document_type: str = Form(..., pattern="^(" + "|".join(DOCUMENT_TYPES) + ")$"),
    file: UploadFile = File(...),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> VerificationDocumentResponse:
    log = logger.bind(user_id=str(profile.id), document_type=document_type)
    file_bytes, content_type = await _read_upload(file, DOCUMENT_CONTENT_TYPES)

    path = object_path(f"verification/{document_type}", profile.id, content_type)
    upload_file(path, file_bytes, content_type=content_type)

    document = VerificationDocument(
        user_id=profile.id,
        document_type=document_type,
        storage_path=path,
        verification_status="pending",
    )
    db.add(document)
    try:
        await db.flush()
    except SQLAlchemyError:
        log.error("document_db_insert_failed", gcs_path=path)
        delete_file(path)
        raise
    await db.refresh(document, attribute_names=["created_at"])

    log.info("document_uploaded", document_id=str(document.id))
    return document_response(document)


@router.get(
    "/documents",
    response_model=list[VerificationDocumentResponse],
    summary="List own verification documents",
)
async def list_documents(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> list[VerificationDocumentResponse]:
    stmt = (
        select(VerificationDocument)
        .where(VerificationDocument.user_id == profile.id)
        .order_by(VerificationDocument.created_at.desc())
    )
    documents = (await db.execute(stmt)).scalars().all()
    return [document_response(document) for document in documents]


@router.delete(
    "/documents/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Withdraw a pending document",
)
async def delete_document(
    document_id: uuid.UUID,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> Response:
    document = (
        await db.execute(
            select(VerificationDocument).where(VerificationDocument.id == document_id)
        )
    ).scalar_one_or_none()
    if document is None:
        raise NotFoundError("Document not found", "DOCUMENT_NOT_FOUND")
    if document.user_id != profile.id:
        raise PermissionDeniedError("Access denied", "ACCESS_DENIED")
    if document.verification_status != "pending":
        raise ConflictError(
            "Only pending documents can be deleted", "DOCUMENT_ALREADY_REVIEWED"
        )

    await db.delete(document)
    await db.flush()
    _delete_after_commit(db, document.storage_path)

    logger.info(
        "document_deleted",
        user_id=str(profile.id),
        document_id=str(document_id),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
