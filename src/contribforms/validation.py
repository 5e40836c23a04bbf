from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator

from contribforms.errors import SubmissionValidationError
from contribforms.fields import field_has_value, is_blank
from contribforms.file_formats import is_file_allowed_by_type, upload_types_label
from contribforms.schema import response_schema

REQUIRED_MESSAGE = "This field is required"

_SHAPE_MESSAGES = {
    "text": "Enter a text answer",
    "paragraph": "Enter a text answer",
    "radio": "Choose one of the listed options",
    "select": "Choose one of the listed options",
    "checkbox": "Choose only listed options, each at most once",
    "upload": "Upload the file again",
}


def validate_responses(form: dict[str, Any], responses: dict[str, Any]) -> dict[str, Any]:
    """Check a Response Map against the form and return the cleaned answers.

    Keys that are not field ids and blank optional answers are dropped.
    Raises ``SubmissionValidationError`` with one message per failing field.
    """
    if not isinstance(responses, dict):
        raise SubmissionValidationError({"": "responses must be an object"})

    errors: dict[str, str] = {}
    cleaned: dict[str, Any] = {}
    fields = form["fields"]
    for field in fields:
        value = responses.get(field["id"])
        if is_blank(value):
            if field["required"]:
                errors[field["id"]] = REQUIRED_MESSAGE
            continue
        cleaned[field["id"]] = value

    validator = Draft7Validator(response_schema(form))
    types = {field["id"]: field["type"] for field in fields}
    for error in validator.iter_errors(cleaned):
        if not error.path:
            continue
        field_id = str(error.path[0])
        errors.setdefault(field_id, _SHAPE_MESSAGES[types[field_id]])

    for field in fields:
        field_id = field["id"]
        if field_id not in cleaned or field_id in errors:
            continue
        if field["required"] and not field_has_value(field, cleaned[field_id]):
            errors[field_id] = REQUIRED_MESSAGE
        elif field["type"] == "upload":
            accepted = field.get("accepted_file_types")
            if not is_file_allowed_by_type(cleaned[field_id]["name"], accepted):
                errors[field_id] = (
                    f"Unsupported file type. Allowed: {upload_types_label(accepted)}."
                )

    if errors:
        raise SubmissionValidationError(errors)
    return cleaned
