"""Object storage for profile photos and verification documents (GCS)."""

import datetime
import uuid

import structlog
from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage as gcs_storage
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from redplad.config import get_settings

logger = structlog.get_logger("redplad.storage")

PUBLIC_URL_BASE = "https://storage.googleapis.com"

IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})
DOCUMENT_CONTENT_TYPES = IMAGE_CONTENT_TYPES | {"application/pdf", "video/mp4", "video/webm"}

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "application/pdf": "pdf",
    "video/mp4": "mp4",
    "video/webm": "webm",
}

# 429 and 5xx responses from the bucket.
TRANSIENT_ERRORS = (
    gcs_exceptions.TooManyRequests,
    gcs_exceptions.InternalServerError,
    gcs_exceptions.ServiceUnavailable,
    gcs_exceptions.GatewayTimeout,
)
MAX_ATTEMPTS = 3


def get_storage_client():
    return gcs_storage.Client(project=get_settings().GCP_PROJECT_ID or None)


def get_bucket():
    client = get_storage_client()
    return client.bucket(get_settings().GCS_BUCKET_NAME)


def object_path(folder: str, user_id: uuid.UUID, content_type: str) -> str:
    """Build ``{folder}/{user_id}/{uuid}.{ext}`` for a new object."""
    extension = _EXTENSIONS.get(content_type, "bin")
    return f"{folder}/{user_id}/{uuid.uuid4().hex}.{extension}"


def public_url(path: str) -> str:
    return f"{PUBLIC_URL_BASE}/{get_settings().GCS_BUCKET_NAME}/{path}"


def _retrying() -> Retrying:
    return Retrying(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )


def upload_file(path: str, file_bytes: bytes, content_type: str = "application/octet-stream") -> str:
    """Upload file to GCS bucket. Returns the object's https URL."""
    blob = get_bucket().blob(path)
    for attempt in _retrying():
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                logger.warning("gcs_upload_retry", path=path, attempt=attempt.retry_state.attempt_number)
            blob.upload_from_string(file_bytes, content_type=content_type)
    logger.info("gcs_uploaded", path=path, size=len(file_bytes), content_type=content_type)
    return public_url(path)


def delete_file(path: str) -> None:
    """Delete a file from GCS bucket. A missing object counts as deleted."""
    blob = get_bucket().blob(path)
    try:
        for attempt in _retrying():
            with attempt:
                blob.delete()
    except gcs_exceptions.NotFound:
        logger.info("gcs_delete_missing", path=path)
        return
    logger.info("gcs_deleted", path=path)


def generate_signed_url(path: str, expiry_minutes: int = 60) -> str:
    """Generate a signed URL for temporary access to a GCS object."""
    blob = get_bucket().blob(path)
    return blob.generate_signed_url(
        version="v4",
        expiration=datetime.timedelta(minutes=expiry_minutes),
        method="GET",
    )


def path_from_url(url: str) -> str | None:
    """Inverse of ``public_url``; ``None`` for URLs outside the bucket."""
    prefix = f"{PUBLIC_URL_BASE}/{get_settings().GCS_BUCKET_NAME}/"
    if url and url.startswith(prefix):
        return url[len(prefix):]
    return None
