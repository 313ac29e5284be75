"""Out-of-band attachment upload and download over HTTP."""

import re
from typing import Protocol

import httpx
from pydantic import ValidationError

from ..api.schemas import WireUploadResponse
from ..errors import AttachmentNotFoundError, TransferNetworkError
from ..logging_config import get_logger
from ..models import AttachmentRef, BinaryBlob

logger = get_logger(__name__)

UPLOAD_PATH = "/uploadAttachment"
DOWNLOAD_PATH = "/downloads/attachment"

_FILENAME_RE = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


class IAttachmentTransfer(Protocol):
    """Binary payloads kept off the socket channel."""

    async def upload(self, file: BinaryBlob, correlate: str) -> AttachmentRef:
        """Multipart upload; returns the reference to embed in the send."""
        ...

    async def download(self, attachment_id: str) -> BinaryBlob:
        """Fetch attachment content. Never cached."""
        ...


class AttachmentTransfer:
    """Uploads and downloads attachments. No retries, no store access."""

    def __init__(self, http_client: httpx.AsyncClient):
        self._http = http_client

    async def upload(self, file: BinaryBlob, correlate: str) -> AttachmentRef:
        """Multipart upload; returns the reference to embed in the send."""
        logger.debug(
            "Uploading %s (%d bytes) for %s", file.file_name, file.size_bytes, correlate
        )
        try:
            response = await self._http.post(
                UPLOAD_PATH,
                files={"file": (file.file_name, file.content, file.content_type)},
                data={"clientToken": correlate},
            )
            response.raise_for_status()
            ref = WireUploadResponse.model_validate(response.json()).attachment.to_ref()
        except httpx.HTTPStatusError as e:
            logger.warning("Upload of %s failed with status %s", file.file_name, e.response.status_code)
            raise TransferNetworkError(
                f"Upload failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Upload of %s failed: %s", file.file_name, e)
            raise TransferNetworkError(f"Upload failed: {e}") from e
        except (ValidationError, ValueError) as e:
            raise TransferNetworkError(f"Malformed upload response: {e}") from e

        logger.info("Uploaded attachment %s for %s", ref.id, correlate)
        return ref

    async def download(self, attachment_id: str) -> BinaryBlob:
        """Fetch attachment content. Never cached."""
        try:
            response = await self._http.get(DOWNLOAD_PATH, params={"attachment_id": attachment_id})
        except httpx.HTTPError as e:
            logger.warning("Download of %s failed: %s", attachment_id, e)
            raise TransferNetworkError(f"Download failed: {e}") from e

        if response.status_code == 404:
            raise AttachmentNotFoundError(attachment_id)
        if response.is_error:
            raise TransferNetworkError(f"Download failed with status {response.status_code}")

        return BinaryBlob(
            file_name=_file_name(response, attachment_id),
            content=response.content,
            content_type=response.headers.get("content-type", "application/octet-stream"),
        )


def _file_name(response: httpx.Response, fallback: str) -> str:
    disposition = response.headers.get("content-disposition", "")
    match = _FILENAME_RE.search(disposition)
    return match.group(1) if match else fallback
