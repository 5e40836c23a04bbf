from __future__ import annotations

from pathlib import PurePath
from typing import Any

UPLOAD_FILE_TYPE_OPTIONS: list[dict[str, Any]] = [
    {
        "key": "image",
        "label": "Images",
        "extensions": [".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"],
    },
    {"key": "pdf", "label": "PDF", "extensions": [".pdf"]},
    {
        "key": "document",
        "label": "Documents",
        "extensions": [".doc", ".docx", ".odt", ".rtf"],
    },
    {
        "key": "spreadsheet",
        "label": "Spreadsheets",
        "extensions": [".xls", ".xlsx", ".ods", ".csv"],
    },
    {
        "key": "presentation",
        "label": "Presentations",
        "extensions": [".ppt", ".pptx", ".odp"],
    },
    {"key": "archive", "label": "Archives", "extensions": [".zip", ".tar", ".gz", ".7z"]},
    {"key": "text", "label": "Text", "extensions": [".txt", ".md"]},
]

FILE_TYPE_EXTENSIONS: dict[str, list[str]] = {
    option["key"]: option["extensions"] for option in UPLOAD_FILE_TYPE_OPTIONS
}
FILE_TYPE_KEYS = tuple(FILE_TYPE_EXTENSIONS)


def parse_file_type_keys(value: Any) -> tuple[list[str], list[str]]:
    """Split a raw category list into (known keys, unknown keys), de-duplicated."""
    if value is None:
        return [], []
    if isinstance(value, str):
        raw_items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        raw_items = list(value)
    else:
        return [], [str(value)]
    known: list[str] = []
    invalid: list[str] = []
    for item in raw_items:
        key = str(item).strip().lower()
        if not key:
            continue
        if key in FILE_TYPE_EXTENSIONS:
            if key not in known:
                known.append(key)
        elif key not in invalid:
            invalid.append(key)
    return known, invalid


def allowed_extensions(file_type_keys: list[str] | None) -> list[str]:
    keys = file_type_keys or list(FILE_TYPE_KEYS)
    extensions: list[str] = []
    for key in keys:
        for ext in FILE_TYPE_EXTENSIONS.get(key, []):
            if ext not in extensions:
                extensions.append(ext)
    return extensions


def upload_accept_list(file_type_keys: list[str] | None) -> str:
    return ",".join(allowed_extensions(file_type_keys))


def upload_types_label(file_type_keys: list[str] | None) -> str:
    keys = file_type_keys or list(FILE_TYPE_KEYS)
    return ", ".join(
        option["label"] for option in UPLOAD_FILE_TYPE_OPTIONS if option["key"] in keys
    )


def is_file_allowed_by_type(filename: str, file_type_keys: list[str] | None) -> bool:
    suffix = PurePath(filename or "").suffix.lower()
    if not suffix:
        return False
    return suffix in allowed_extensions(file_type_keys)
