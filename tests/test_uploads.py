from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from contribforms.errors import UploadFailedError, UploadRejectedError
from contribforms.uploads import (
    IMAGEKIT_UPLOAD_URL,
    ImageKitUploadHost,
    LocalUploadHost,
    check_upload,
)

MB = 1024 * 1024
AVATAR = {"id": "avatar", "type": "upload", "label": "Avatar", "accepted_file_types": ["image"]}
ANY_FILE = {"id": "doc", "type": "upload", "label": "Anything"}


def test_type_is_checked_before_size():
    with pytest.raises(UploadRejectedError) as excinfo:
        check_upload(AVATAR, "huge.pdf", 50 * MB, 10 * MB)
    assert excinfo.value.message == "Unsupported file type. Allowed: Images."


def test_size_limit():
    check_upload(AVATAR, "me.PNG", 10 * MB, 10 * MB)
    with pytest.raises(UploadRejectedError) as excinfo:
        check_upload(AVATAR, "me.png", 10 * MB + 1, 10 * MB)
    assert excinfo.value.message == "File size must be under 10MB."


def test_no_declared_types_accepts_every_known_category():
    check_upload(ANY_FILE, "slides.pptx", 10, MB)
    check_upload(ANY_FILE, "notes.md", 10, MB)
    with pytest.raises(UploadRejectedError):
        check_upload(ANY_FILE, "setup.exe", 10, MB)
    with pytest.raises(UploadRejectedError):
        check_upload(ANY_FILE, "README", 10, MB)


def test_non_upload_field_rejects_files():
    with pytest.raises(UploadRejectedError):
        check_upload({"id": "f1", "type": "text"}, "me.png", 10, MB)


def test_local_host_stores_file_and_metadata(storage, settings):
    host = LocalUploadHost(settings.upload_dir, storage.files)
    value = asyncio.run(host.upload("beta", "cv.pdf", b"%PDF-1.7", "application/pdf"))

    assert value["name"] == "cv.pdf"
    file_id = value["url"].rsplit("/", 1)[-1]
    meta = storage.files.get_file(file_id)
    assert meta["form_slug"] == "beta"
    assert Path(meta["path"]).read_bytes() == b"%PDF-1.7"


def test_imagekit_host_returns_hosted_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization", "")
        return httpx.Response(200, json={"url": "https://ik.imagekit.io/x/me_1.png", "name": "me_1.png"})

    host = ImageKitUploadHost("private_key", "/forms", transport=httpx.MockTransport(handler))
    value = asyncio.run(host.upload("beta", "me.png", b"png", "image/png"))

    assert value == {"url": "https://ik.imagekit.io/x/me_1.png", "name": "me.png"}
    assert seen["url"] == IMAGEKIT_UPLOAD_URL
    assert seen["auth"].startswith("Basic ")


def test_imagekit_failure_is_reported():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"message": "boom"}))
    host = ImageKitUploadHost("private_key", "/forms", transport=transport)
    with pytest.raises(UploadFailedError):
        asyncio.run(host.upload("beta", "me.png", b"png"))


def test_imagekit_requires_a_key():
    with pytest.raises(UploadFailedError):
        asyncio.run(ImageKitUploadHost("", "/forms").upload("beta", "me.png", b"png"))


def test_local_host_owns_only_its_files_for_the_form(storage, settings):
    host = LocalUploadHost(settings.upload_dir, storage.files)
    value = asyncio.run(host.upload("beta", "me.png", b"png"))

    assert asyncio.run(host.owns("beta", value))
    assert not asyncio.run(host.owns("gamma", value))
    assert not asyncio.run(host.owns("beta", {**value, "name": "x.exe"}))
    assert not asyncio.run(host.owns("beta", {"url": "/files/unknown", "name": "me.png"}))
    assert not asyncio.run(host.owns("beta", {"url": "https://evil.example/me.png", "name": "me.png"}))


def test_imagekit_host_owns_urls_under_its_form_folder():
    host = ImageKitUploadHost("private_key", "/contribforms/forms", "https://ik.imagekit.io/acme")

    assert asyncio.run(
        host.owns("beta", {"url": "https://ik.imagekit.io/acme/contribforms/forms/beta/me_1.png"})
    )
    assert not asyncio.run(
        host.owns("gamma", {"url": "https://ik.imagekit.io/acme/contribforms/forms/beta/me_1.png"})
    )
    assert not asyncio.run(host.owns("beta", {"url": "https://evil.example/contribforms/forms/beta/x"}))
