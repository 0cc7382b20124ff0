"""
ReDPlAD — Identity verification documents

Documents live in a private bucket.  Only the object path is stored; every
response carries a short-lived signed URL instead.  A member becomes
verified once both a government ID and a profile photo are approved.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.config import get_settings
from redplad.errors import ConflictError, NotFoundError
from redplad.models.activity import REQUIRED_DOCUMENT_TYPES, VerificationDocument
from redplad.schemas.admin import VerificationDocumentResponse
from redplad.utils.storage import generate_signed_url

logger = structlog.get_logger("redplad.verification_service")


def document_response(document: VerificationDocument) -> VerificationDocumentResponse:
    return VerificationDocumentResponse(
        id=document.id,
        user_id=document.user_id,
        document_type=document.document_type,
        file_url=generate_signed_url(
            document.storage_path, get_settings().DOCUMENT_URL_EXPIRY_MINUTES
        ),
        verification_status=document.verification_status,
        verification_notes=document.verification_notes,
        verified_by=document.verified_by,
        verified_at=document.verified_at,
        created_at=document.created_at,
    )


@dataclass
class ReviewOutcome:
    document: VerificationDocument
    profile_verified: bool


async def review_document(
    admin_id: uuid.UUID,
    document_id: uuid.UUID,
    status: str,
    notes: str | None,
    db: AsyncSession,
) -> ReviewOutcome:
    """Record an admin decision on a pending document.

    The row is locked for the duration of the transaction so two admins
    cannot review the same document.
    """
    log = logger.bind(admin_id=str(admin_id), document_id=str(document_id))

    document = (
        await db.execute(
            select(VerificationDocument)
            .where(VerificationDocument.id == document_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if document is None:
        raise NotFoundError("Document not found", "DOCUMENT_NOT_FOUND")
    if document.verification_status != "pending":
        raise ConflictError(
            "Document has already been reviewed",
            "ALREADY_REVIEWED",
            {"verification_status": document.verification_status},
        )

    document.verification_status = status
    document.verification_notes = notes
    document.verified_by = admin_id
    document.verified_at = datetime.now(timezone.utc)
    await db.flush()

    owner = document.owner
    if status == "approved" and not owner.is_verified:
        approved_types = set(
            (
                await db.execute(
                    select(VerificationDocument.document_type).where(
                        VerificationDocument.user_id == owner.id,
                        VerificationDocument.verification_status == "approved",
                    )
                )
            ).scalars()
        )
        if REQUIRED_DOCUMENT_TYPES <= approved_types:
            owner.is_verified = True
            await db.flush()
            log.info("profile_verified_by_documents", user_id=str(owner.id))

    log.info("verification_reviewed", status=status)
    return ReviewOutcome(document=document, profile_verified=owner.is_verified)
