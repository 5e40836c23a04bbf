from __future__ import annotations

import logging
import os
import re
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

FIELD_TYPES = ("text", "paragraph", "radio", "checkbox", "select", "upload")
CHOICE_TYPES = frozenset({"radio", "checkbox", "select"})
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SLUG_MAX_LENGTH = 64
FIELD_ID_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

DEFAULT_UPLOAD_MAX_BYTES = 10 * 1024 * 1024


def _split_csv(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


class Settings:
    def __init__(self) -> None:
        self.storage_backend = os.getenv("STORAGE_BACKEND", "sqlite").lower()
        self.sqlite_path = Path(os.getenv("SQLITE_PATH", "./data/app.db"))
        self.json_path = Path(os.getenv("JSON_PATH", "./data/jsonstore.json"))
        self.upload_backend = os.getenv("UPLOAD_BACKEND", "local").lower()
        self.upload_dir = Path(os.getenv("UPLOAD_DIR", "./data/uploads"))
        max_bytes = os.getenv("UPLOAD_MAX_BYTES")
        self.upload_max_bytes = int(max_bytes) if max_bytes else DEFAULT_UPLOAD_MAX_BYTES
        self.imagekit_private_key = os.getenv("IMAGEKIT_PRIVATE_KEY", "")
        self.imagekit_folder = os.getenv("IMAGEKIT_FOLDER", "/contribforms/forms")
        self.imagekit_url_endpoint = os.getenv("IMAGEKIT_URL_ENDPOINT", "https://ik.imagekit.io/")
        self.auth_mode = os.getenv("AUTH_MODE", "header").lower()
        self.dev_user_uid = os.getenv("DEV_USER_UID", "dev-user")
        self.dev_user_email = os.getenv("DEV_USER_EMAIL", "dev@example.com")
        self.dev_user_name = os.getenv("DEV_USER_NAME", "")
        self.admin_emails = _split_csv(os.getenv("ADMIN_EMAILS", ""))
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.host = os.getenv("HOST", "0.0.0.0")
        port_value = os.getenv("PORT", "8000")
        try:
            self.port = int(port_value)
        except ValueError:
            self.port = 8000


def ensure_dirs(settings: Settings) -> None:
    settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    settings.json_path.parent.mkdir(parents=True, exist_ok=True)
    settings.upload_dir.mkdir(parents=True, exist_ok=True)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
