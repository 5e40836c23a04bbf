from __future__ import annotations

from typing import Any

from contribforms.config import (
    CHOICE_TYPES,
    FIELD_ID_PATTERN,
    FIELD_TYPES,
    SLUG_MAX_LENGTH,
    SLUG_PATTERN,
)
from contribforms.fields import normalize_field
from contribforms.file_formats import parse_file_type_keys
from contribforms.utils import new_field_id, now_utc, to_iso


def validate_slug(slug: str) -> list[str]:
    if not slug:
        return ["A form slug is required"]
    if len(slug) > SLUG_MAX_LENGTH:
        return [f"The slug must be at most {SLUG_MAX_LENGTH} characters"]
    if not SLUG_PATTERN.match(slug):
        return ["The slug may only contain lowercase letters, digits and single hyphens"]
    return []


def parse_fields(raw_fields: Any) -> tuple[list[dict[str, Any]], list[str]]:
    errors: list[str] = []
    if not isinstance(raw_fields, list):
        return [], ["fields must be a list"]

    seen_ids: set[str] = set()
    fields: list[dict[str, Any]] = []
    for index, raw in enumerate(raw_fields, start=1):
        loc = f"Question {index}"
        if not isinstance(raw, dict):
            errors.append(f"{loc}: malformed field definition")
            continue

        field_id = str(raw.get("id", "")).strip()
        if not field_id:
            field_id = new_field_id(seen_ids)
        if not FIELD_ID_PATTERN.match(field_id):
            errors.append(f"{loc}: field ids start with a letter and use letters, digits or _")
        if field_id in seen_ids:
            errors.append(f"{loc}: duplicate field id ({field_id})")
        seen_ids.add(field_id)

        field_type = str(raw.get("type", "")).strip()
        if field_type not in FIELD_TYPES:
            errors.append(f"{loc}: unknown field type ({field_type})")
            continue

        field = normalize_field({**raw, "id": field_id})
        if not field["label"].strip():
            errors.append(f"{loc}: question text is required")
        if field_type in CHOICE_TYPES and not field.get("options"):
            errors.append(f"{loc}: add at least one option")
        if field_type == "upload":
            _, invalid = parse_file_type_keys(raw.get("accepted_file_types"))
            if invalid:
                errors.append(f"{loc}: unknown file types ({', '.join(invalid[:3])})")
        fields.append(field)

    if not fields and not errors:
        errors.append("Add at least one question")
    return fields, errors


def parse_form_payload(
    payload: dict[str, Any], existing: dict[str, Any] | None = None
) -> tuple[dict[str, Any], list[str]]:
    """Validate a builder payload and return the normalized form data.

    With ``existing`` the payload is an edit: the slug is taken from the
    stored form and any attempt to change it is reported as an error.
    """
    errors: list[str] = []
    title = str(payload.get("title", "")).strip()
    description = str(payload.get("description") or "").strip()

    if existing is not None:
        slug = existing["slug"]
        requested = payload.get("slug")
        if requested is not None and str(requested).strip() != slug:
            errors.append("The slug of an existing form cannot be changed")
    else:
        slug = str(payload.get("slug", "")).strip()
        errors.extend(validate_slug(slug))

    if not title:
        errors.append("A form title is required")

    fields, field_errors = parse_fields(payload.get("fields"))
    errors.extend(field_errors)

    return {"slug": slug, "title": title, "description": description, "fields": fields}, errors


def _response_property(field: dict[str, Any]) -> dict[str, Any]:
    field_type = field["type"]
    if field_type in {"text", "paragraph"}:
        return {"type": "string"}
    if field_type in {"radio", "select"}:
        return {"type": "string", "enum": field.get("options", [])}
    if field_type == "checkbox":
        return {
            "type": "array",
            "items": {"type": "string", "enum": field.get("options", [])},
            "uniqueItems": True,
        }
    if field_type == "upload":
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string", "minLength": 1},
                "name": {"type": "string"},
            },
            "required": ["url", "name"],
        }
    raise ValueError(f"unknown field type: {field_type}")


def response_schema(form: dict[str, Any]) -> dict[str, Any]:
    """JSON Schema describing the shape of each present answer."""
    properties = {field["id"]: _response_property(field) for field in form["fields"]}
    return {"type": "object", "properties": properties}


def sanitize_form_output(form: dict[str, Any]) -> dict[str, Any]:
    return {
        "slug": form["slug"],
        "title": form.get("title", ""),
        "description": form.get("description", ""),
        "fields": form.get("fields", []),
        "created_by": form.get("created_by", ""),
        "created_at": to_iso(form.get("created_at") or now_utc()),
        "updated_at": to_iso(form.get("updated_at") or now_utc()),
    }


def sanitize_submission_output(submission: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": submission["id"],
        "form_slug": submission["form_slug"],
        "user_id": submission.get("user_id", ""),
        "user_email": submission.get("user_email", ""),
        "user_name": submission.get("user_name", ""),
        "responses": submission.get("responses", {}),
        "submitted_at": to_iso(submission["submitted_at"]),
    }
