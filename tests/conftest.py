from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from contribforms.app import create_app
from contribforms.auth import Identity
from contribforms.config import Settings
from contribforms.storage import init_storage
from contribforms.utils import now_utc


@pytest.fixture(params=["sqlite", "json"])
def settings(request, tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("STORAGE_BACKEND", request.param)
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "app.db"))
    monkeypatch.setenv("JSON_PATH", str(tmp_path / "store.json"))
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("UPLOAD_BACKEND", "local")
    monkeypatch.setenv("AUTH_MODE", "header")
    monkeypatch.setenv("ADMIN_EMAILS", "admin@x.com")
    return Settings()


@pytest.fixture()
def storage(settings):
    return init_storage(settings)


@pytest.fixture()
def client(settings) -> TestClient:
    return TestClient(create_app(settings))


@pytest.fixture()
def ada() -> Identity:
    return Identity(uid="uid-ada", email="ada@x.com", display_name="Ada Lovelace")


def _make_form(slug: str = "beta", fields: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    now = now_utc()
    return {
        "slug": slug,
        "title": "Beta Registration",
        "description": "",
        "fields": fields
        if fields is not None
        else [{"id": "f1", "type": "text", "label": "Name", "required": True}],
        "created_by": "admin@x.com",
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture()
def make_form():
    return _make_form
