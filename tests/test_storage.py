"""Tests for the GCS object store helpers."""
import uuid
import pytest
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch, MagicMock

from google.api_core import exceptions as gcs_exceptions

from redplad.utils.storage import (
    delete_file,
    generate_signed_url,
    object_path,
    path_from_url,
    upload_file,
)


@pytest.fixture
def bucket():
    mock_bucket = MagicMock()
    settings = SimpleNamespace(GCS_BUCKET_NAME="redplad-media", GCP_PROJECT_ID="")
    with patch("redplad.utils.storage.get_bucket", return_value=mock_bucket), \
         patch("redplad.utils.storage.get_settings", return_value=settings):
        yield mock_bucket


class TestStorage:
    """Upload, delete and URL mapping."""

    def test_object_path_layout(self):
        user_id = uuid.uuid4()
        path = object_path("profile-photos", user_id, "image/png")
        folder, owner, name = path.split("/")
        assert folder == "profile-photos"
        assert owner == str(user_id)
        assert name.endswith(".png")

    def test_upload_returns_public_url(self, bucket):
        url = upload_file("profile-photos/u/a.jpg", b"\xff\xd8", "image/jpeg")
        assert url == "https://storage.googleapis.com/redplad-media/profile-photos/u/a.jpg"
        bucket.blob.return_value.upload_from_string.assert_called_once_with(
            b"\xff\xd8", content_type="image/jpeg"
        )

    def test_upload_retries_transient_errors(self, bucket):
        blob = bucket.blob.return_value
        blob.upload_from_string.side_effect = [
            gcs_exceptions.ServiceUnavailable("busy"),
            None,
        ]
        upload_file("documents/u/b.pdf", b"%PDF", "application/pdf")
        assert blob.upload_from_string.call_count == 2

    def test_upload_does_not_retry_client_errors(self, bucket):
        blob = bucket.blob.return_value
        blob.upload_from_string.side_effect = gcs_exceptions.Forbidden("no")
        with pytest.raises(gcs_exceptions.Forbidden):
            upload_file("documents/u/b.pdf", b"%PDF", "application/pdf")
        assert blob.upload_from_string.call_count == 1

    def test_delete_missing_object_is_ok(self, bucket):
        bucket.blob.return_value.delete.side_effect = gcs_exceptions.NotFound("gone")
        delete_file("documents/u/c.pdf")

    def test_path_from_url(self, bucket):
        assert path_from_url(
            "https://storage.googleapis.com/redplad-media/profile-photos/u/a.jpg"
        ) == "profile-photos/u/a.jpg"
        assert path_from_url("https://cdn.example.com/a.jpg") is None
        assert path_from_url("") is None

    def test_signed_url_is_v4_get(self, bucket):
        bucket.blob.return_value.generate_signed_url.return_value = "https://signed.example/a"
        url = generate_signed_url("verification/government_id/u/a.pdf", 15)
        assert url == "https://signed.example/a"
        bucket.blob.assert_called_with("verification/government_id/u/a.pdf")
        bucket.blob.return_value.generate_signed_url.assert_called_once_with(
            version="v4", expiration=timedelta(minutes=15), method="GET"
        )
