from __future__ import annotations

from typing import Any, Callable, Iterable

from contribforms.config import CHOICE_TYPES, FIELD_TYPES
from contribforms.file_formats import parse_file_type_keys
from contribforms.utils import new_field_id


def new_field(field_type: str, existing_ids: Iterable[str] = ()) -> dict[str, Any]:
    """Return a fresh field definition with the builder defaults for its type."""
    if field_type not in FIELD_TYPES:
        raise ValueError(f"unknown field type: {field_type}")
    field: dict[str, Any] = {
        "id": new_field_id(existing_ids),
        "type": field_type,
        "label": "",
        "required": False,
    }
    if field_type in CHOICE_TYPES:
        field["options"] = [""]
    if field_type == "upload":
        field["accepted_file_types"] = []
    return field


def normalize_options(options: Any) -> list[str]:
    if not isinstance(options, (list, tuple)):
        return []
    return [str(option).strip() for option in options if str(option or "").strip()]


def normalize_field(field: dict[str, Any]) -> dict[str, Any]:
    """Return the persisted shape of a field definition.

    Options are kept only for choice types and accepted file types only for
    uploads; either key is left out when nothing remains after trimming, so
    a stored record never carries empty auxiliary values. Applying this to an
    already normalized field returns an equal dict.
    """
    field_type = str(field.get("type") or "").strip()
    cleaned: dict[str, Any] = {
        "id": str(field.get("id") or "").strip(),
        "type": field_type,
        "label": str(field.get("label") or ""),
        "required": bool(field.get("required")),
    }
    if field_type in CHOICE_TYPES:
        options = normalize_options(field.get("options"))
        if options:
            cleaned["options"] = options
    elif field_type == "upload":
        file_types, _ = parse_file_type_keys(field.get("accepted_file_types"))
        if file_types:
            cleaned["accepted_file_types"] = file_types
    return cleaned


def normalize_fields(fields: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return [normalize_field(field) for field in fields]


def field_map(fields: Iterable[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    return {field["id"]: field for field in fields}


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _has_choice(value: Any) -> bool:
    # "" is the select placeholder
    return isinstance(value, str) and value != ""


def _has_selections(value: Any) -> bool:
    return isinstance(value, list) and len(value) >= 1


def _has_upload(value: Any) -> bool:
    return isinstance(value, dict) and _has_text(value.get("url"))


VALUE_PRESENCE: dict[str, Callable[[Any], bool]] = {
    "text": _has_text,
    "paragraph": _has_text,
    "radio": _has_choice,
    "select": _has_choice,
    "checkbox": _has_selections,
    "upload": _has_upload,
}


def field_has_value(field: dict[str, Any], value: Any) -> bool:
    return VALUE_PRESENCE[field["type"]](value)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def completion_progress(fields: list[dict[str, Any]], responses: dict[str, Any]) -> int:
    if not fields:
        return 0
    filled = sum(1 for field in fields if field_has_value(field, responses.get(field["id"])))
    return round(filled / len(fields) * 100)
