"""Upload of large media to object storage (Cloudinary unsigned upload)."""

import logging
import os
from typing import BinaryIO, Callable, Optional

import httpx
from pydantic import ValidationError

from app.errors import TransportFailure
from app.models.media import PendingUpload, RemoteMedia

logger = logging.getLogger(__name__)

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_UPLOAD_PRESET = os.getenv("CLOUDINARY_UPLOAD_PRESET", "")
UPLOAD_TIMEOUT_SECONDS = float(os.getenv("UPLOAD_TIMEOUT_SECONDS", "300"))

ProgressCallback = Callable[[int], None]


class ProgressReader:
    """File wrapper reporting how much of the body has been handed to the transport.

    Percentages are integers, never decrease, and stop at 99 until the
    server has confirmed the upload.
    """

    def __init__(self, fileobj: BinaryIO, total: int, on_progress: Optional[ProgressCallback]) -> None:
        self._file = fileobj
        self._total = max(total, 1)
        self._read = 0
        self._on_progress = on_progress
        self.percent = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size)
        if chunk:
            self._read += len(chunk)
            self._advance(min(99, self._read * 100 // self._total))
        return chunk

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._file.seek(offset, whence)

    def tell(self) -> int:
        return self._file.tell()

    def fileno(self) -> int:
        return self._file.fileno()

    def finish(self) -> None:
        self._advance(100)

    def _advance(self, percent: int) -> None:
        if percent <= self.percent:
            return
        self.percent = percent
        if self._on_progress is not None:
            self._on_progress(percent)


class CloudinaryUploader:
    """Sends one file, returns its durable URL. Network calls are never retried."""

    def __init__(
        self,
        cloud_name: str = CLOUDINARY_CLOUD_NAME,
        upload_preset: str = CLOUDINARY_UPLOAD_PRESET,
        timeout: float = UPLOAD_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.upload_preset = upload_preset
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.upload_preset)

    @property
    def endpoint(self) -> str:
        return f"https://api.cloudinary.com/v1_1/{self.cloud_name}/auto/upload"

    async def upload(
        self,
        pending: PendingUpload,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RemoteMedia:
        """Upload ``pending`` and return a ``RemoteMedia`` reference.

        Raises:
            TransportFailure: network error (``reason="network"``), non-success
                status (``"status"``), or success without a URL (``"missing_url"``).
        """
        if not self.configured:
            raise TransportFailure("Upload backend is not configured", reason="network")

        with open(pending.path, "rb") as fh:
            reader = ProgressReader(fh, pending.size, on_progress)
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.post(
                        self.endpoint,
                        data={"upload_preset": self.upload_preset},
                        files={"file": (pending.filename, reader, pending.mime_type)},
                    )
            except httpx.HTTPError as exc:
                logger.warning("Upload of %s failed: %s", pending.filename, exc)
                raise TransportFailure(f"Network error during upload: {exc}", reason="network") from exc

        if resp.status_code // 100 != 2:
            logger.warning("Upload of %s rejected with HTTP %d", pending.filename, resp.status_code)
            raise TransportFailure(
                f"An error occurred during upload: HTTP {resp.status_code}",
                reason="status",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError:
            body = None
        url = body.get("secure_url") if isinstance(body, dict) else None
        try:
            media = RemoteMedia(url=url, mime_type=pending.mime_type)
        except ValidationError as exc:
            raise TransportFailure(f"Could not get the media URL (got {url!r})", reason="missing_url",
                                   status_code=resp.status_code) from exc

        reader.finish()
        logger.info("Uploaded %s (%d bytes) to %s", pending.filename, pending.size, url)
        return media
