"""Unit tests for document review and signed document responses."""
import pytest
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch, MagicMock, AsyncMock

from redplad.errors import ConflictError, NotFoundError
from redplad.services.verification_service import document_response, review_document


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _types(*document_types):
    result = MagicMock()
    result.scalars.return_value = list(document_types)
    return result


def _document(**overrides):
    data = {
        "id": uuid.uuid4(),
        "user_id": uuid.uuid4(),
        "document_type": "government_id",
        "storage_path": "verification/government_id/u/a.pdf",
        "verification_status": "pending",
        "verification_notes": None,
        "verified_by": None,
        "verified_at": None,
        "created_at": datetime(2025, 6, 1, tzinfo=timezone.utc),
        "owner": SimpleNamespace(id=uuid.uuid4(), is_verified=False),
    }
    data.update(overrides)
    return SimpleNamespace(**data)


@pytest.fixture
def db():
    session = AsyncMock()
    session.info = {}
    return session


class TestReviewDocument:
    """Approval flow and the verified flag."""

    @pytest.mark.asyncio
    async def test_both_required_types_verify_member(self, db):
        admin_id = uuid.uuid4()
        document = _document(document_type="profile_photo")
        db.execute.side_effect = [
            _result(document),
            _types("government_id", "profile_photo"),
        ]

        outcome = await review_document(admin_id, document.id, "approved", "Looks good", db)

        assert outcome.profile_verified is True
        assert document.owner.is_verified is True
        assert document.verification_status == "approved"
        assert document.verified_by == admin_id
        assert document.verified_at is not None
        assert document.verification_notes == "Looks good"

    @pytest.mark.asyncio
    async def test_one_type_is_not_enough(self, db):
        document = _document()
        db.execute.side_effect = [_result(document), _types("government_id", "video_selfie")]

        outcome = await review_document(uuid.uuid4(), document.id, "approved", None, db)

        assert outcome.profile_verified is False
        assert document.owner.is_verified is False

    @pytest.mark.asyncio
    async def test_rejection_skips_type_check(self, db):
        document = _document()
        db.execute.side_effect = [_result(document)]

        outcome = await review_document(uuid.uuid4(), document.id, "rejected", "Blurry", db)

        assert outcome.profile_verified is False
        assert document.verification_status == "rejected"
        assert db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_already_reviewed(self, db):
        document = _document(verification_status="approved")
        db.execute.side_effect = [_result(document)]

        with pytest.raises(ConflictError) as exc_info:
            await review_document(uuid.uuid4(), document.id, "rejected", None, db)

        assert exc_info.value.code == "ALREADY_REVIEWED"
        assert exc_info.value.status_code == 409
        assert exc_info.value.details == {"verification_status": "approved"}
        assert document.verification_status == "approved"

    @pytest.mark.asyncio
    async def test_missing_document(self, db):
        db.execute.side_effect = [_result(None)]
        with pytest.raises(NotFoundError) as exc_info:
            await review_document(uuid.uuid4(), uuid.uuid4(), "approved", None, db)
        assert exc_info.value.code == "DOCUMENT_NOT_FOUND"


class TestDocumentResponse:
    """Responses carry a signed URL built from the stored object path."""

    def test_signed_url(self):
        document = _document()
        with patch(
            "redplad.services.verification_service.generate_signed_url",
            return_value="https://storage.googleapis.com/signed?X-Goog-Signature=abc",
        ) as signer:
            response = document_response(document)

        signer.assert_called_once_with("verification/government_id/u/a.pdf", 15)
        assert response.file_url.endswith("X-Goog-Signature=abc")
        assert response.id == document.id
        assert response.verification_status == "pending"
