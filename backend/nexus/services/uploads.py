"""
File upload endpoint client: POST multipart to {UPLOAD_BASE_URL}/api/upload-file.

Endpoint reply: {"success": bool, "fileUrl": str}. A failing file is logged and skipped;
the rest still upload.
"""
import logging
from typing import Any, Iterable

import httpx

from nexus.config import settings

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/api/upload-file"


class UploadFile:
    """One file to upload (name, raw bytes, MIME type)."""

    __slots__ = ("name", "content", "content_type")

    def __init__(self, name: str, content: bytes, content_type: str = "application/octet-stream"):
        self.name = name
        self.content = content
        self.content_type = content_type


class FileUploadClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.upload_base_url).rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def upload(self, file: UploadFile) -> str | None:
        """Upload one file. Returns its URL, or None if the endpoint refused it or the request failed."""
        url = f"{self.base_url}{UPLOAD_PATH}"
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as c:
                r = c.post(url, files={"file": (file.name, file.content, file.content_type)})
            if not r.is_success:
                logger.warning("Upload of %s returned %s: %s", file.name, r.status_code, r.text[:200])
                return None
            data: dict[str, Any] = r.json() if r.content else {}
        except Exception as e:
            logger.warning("Upload of %s failed: %s", file.name, e)
            return None
        if not data.get("success") or not data.get("fileUrl"):
            logger.warning("Upload of %s rejected: %s", file.name, data)
            return None
        return data["fileUrl"]

    def upload_all(self, files: Iterable[UploadFile]) -> list[dict[str, str]]:
        """Upload each file; keep going past failures. Returns attachments {name, url, type} that succeeded."""
        attachments = []
        for file in files:
            file_url = self.upload(file)
            if file_url:
                attachments.append({"name": file.name, "url": file_url, "type": file.content_type})
        return attachments
