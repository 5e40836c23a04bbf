from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

import httpx

from contribforms.config import Settings
from contribforms.errors import StoreError, UploadFailedError, UploadRejectedError
from contribforms.file_formats import is_file_allowed_by_type, upload_types_label
from contribforms.protocols import FileRepository
from contribforms.utils import new_ulid, now_utc

logger = logging.getLogger(__name__)

IMAGEKIT_UPLOAD_URL = "https://upload.imagekit.io/api/v1/files/upload"
LOCAL_URL_PREFIX = "/files/"


def check_upload(field: dict[str, Any], filename: str, size: int, max_bytes: int) -> None:
    """Reject a file locally, before anything is sent to the media host."""
    if field.get("type") != "upload":
        raise UploadRejectedError(f"Field '{field.get('id')}' does not accept files")
    if not filename:
        raise UploadRejectedError("Choose a file to upload")
    accepted = field.get("accepted_file_types")
    if not is_file_allowed_by_type(filename, accepted):
        raise UploadRejectedError(
            f"Unsupported file type. Allowed: {upload_types_label(accepted)}."
        )
    if size > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise UploadRejectedError(f"File size must be under {limit_mb}MB.")


class UploadHost(Protocol):
    async def upload(
        self, form_slug: str, filename: str, content: bytes, content_type: str = ""
    ) -> dict[str, str]: ...

    async def owns(self, form_slug: str, value: dict[str, Any]) -> bool: ...


class LocalUploadHost:
    """Keeps uploads in ``UPLOAD_DIR`` and serves them from ``/files/{id}``."""

    def __init__(self, upload_dir: Path, files: FileRepository) -> None:
        self._upload_dir = upload_dir
        self._files = files

    async def upload(
        self, form_slug: str, filename: str, content: bytes, content_type: str = ""
    ) -> dict[str, str]:
        file_id = new_ulid()
        destination = self._upload_dir / file_id
        try:
            destination.write_bytes(content)
        except OSError as exc:
            logger.exception("Could not store upload %s", filename)
            raise UploadFailedError("Upload failed. Please try again.") from exc
        try:
            self._files.create_file(
                {
                    "id": file_id,
                    "form_slug": form_slug,
                    "name": filename,
                    "path": str(destination),
                    "content_type": content_type,
                    "size": len(content),
                    "uploaded_at": now_utc(),
                }
            )
        except StoreError as exc:
            destination.unlink(missing_ok=True)
            raise UploadFailedError("Upload failed. Please try again.") from exc
        return {"url": f"{LOCAL_URL_PREFIX}{file_id}", "name": filename}

    async def owns(self, form_slug: str, value: dict[str, Any]) -> bool:
        url = str(value.get("url") or "")
        if not url.startswith(LOCAL_URL_PREFIX):
            return False
        stored = self._files.get_file(url[len(LOCAL_URL_PREFIX):])
        return (
            stored is not None
            and stored["form_slug"] == form_slug
            and stored["name"] == value.get("name")
        )


class ImageKitUploadHost:
    def __init__(
        self,
        private_key: str,
        folder: str,
        url_endpoint: str = "https://ik.imagekit.io/",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._private_key = private_key
        self._folder = folder
        self._url_endpoint = url_endpoint.rstrip("/") + "/"
        self._timeout = timeout
        self._transport = transport

    async def upload(
        self, form_slug: str, filename: str, content: bytes, content_type: str = ""
    ) -> dict[str, str]:
        if not self._private_key:
            raise UploadFailedError("The media host is not configured.")
        data = {
            "fileName": filename,
            "folder": f"{self._folder}/{form_slug}",
            "useUniqueFileName": "true",
        }
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    IMAGEKIT_UPLOAD_URL,
                    data=data,
                    files=files,
                    auth=(self._private_key, ""),
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Media host upload failed: %s", filename)
            raise UploadFailedError("Upload failed. Please try again.") from exc
        url = payload.get("url")
        if not url:
            raise UploadFailedError("Upload failed. Please try again.")
        return {"url": url, "name": filename}

    async def owns(self, form_slug: str, value: dict[str, Any]) -> bool:
        url = str(value.get("url") or "")
        if not url.startswith(self._url_endpoint):
            return False
        # objects are uploaded under {folder}/{form_slug}/
        folder = f"/{self._folder.strip('/')}/{form_slug}/"
        return folder in httpx.URL(url).path


async def foreign_uploads(
    host: UploadHost, form: dict[str, Any], responses: dict[str, Any]
) -> dict[str, str]:
    """Map each upload answer the host did not store for this form to an error."""
    errors: dict[str, str] = {}
    for field in form["fields"]:
        value = responses.get(field["id"])
        if field["type"] != "upload" or not isinstance(value, dict) or not value.get("url"):
            continue
        if not await host.owns(form["slug"], value):
            errors[field["id"]] = "Upload the file again"
    return errors

def get_upload_host(settings: Settings, files: FileRepository) -> UploadHost:
    if settings.upload_backend == "imagekit":
        return ImageKitUploadHost(
            settings.imagekit_private_key,
            settings.imagekit_folder,
            settings.imagekit_url_endpoint,
        )
    return LocalUploadHost(settings.upload_dir, files)
