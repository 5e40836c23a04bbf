from __future__ import annotations

import logging
from typing import Any, Callable

from starlette.concurrency import run_in_threadpool

from contribforms.auth import Identity
from contribforms.config import DEFAULT_UPLOAD_MAX_BYTES
from contribforms.errors import (
    DuplicateSubmissionError,
    StoreError,
    SubmissionInProgressError,
    SubmissionValidationError,
    UploadFailedError,
    UploadRejectedError,
)
from contribforms.fields import completion_progress, field_has_value, field_map
from contribforms.uploads import UploadHost, check_upload
from contribforms.validation import REQUIRED_MESSAGE

logger = logging.getLogger(__name__)

SUBMIT_ERROR_MESSAGE = (
    "We couldn't submit your response. Please check your connection and try again."
)

EDITING = "editing"
SUBMITTED = "submitted"
ALREADY_SUBMITTED = "already_submitted"

Writer = Callable[[dict[str, Any]], dict[str, Any]]


class FormSession:
    """One user's pass through a form, from first answer to stored submission.

    The session holds the Response Map, the per-field errors and the submit
    state. Answers survive every failed submit so the user can retry without
    typing them again.
    """

    def __init__(
        self,
        form: dict[str, Any],
        identity: Identity,
        upload_max_bytes: int = DEFAULT_UPLOAD_MAX_BYTES,
    ) -> None:
        self.form = form
        self.identity = identity
        self.upload_max_bytes = upload_max_bytes
        self.responses: dict[str, Any] = {}
        self.errors: dict[str, str] = {}
        self.submit_error: str | None = None
        self.submitting = False
        self.state = EDITING
        self.submission: dict[str, Any] | None = None
        self._fields = field_map(form["fields"])

    @property
    def fields(self) -> list[dict[str, Any]]:
        return self.form["fields"]

    @property
    def progress(self) -> int:
        return completion_progress(self.fields, self.responses)

    def _field(self, field_id: str) -> dict[str, Any]:
        try:
            return self._fields[field_id]
        except KeyError:
            raise KeyError(f"unknown field: {field_id}") from None

    def set_value(self, field_id: str, value: Any) -> None:
        field = self._field(field_id)
        field_type = field["type"]
        if field_type == "upload":
            raise ValueError("upload fields are set through attach_upload")
        if field_type == "checkbox":
            selected = list(value or [])
            for option in selected:
                self._check_option(field, option)
            self.responses[field_id] = selected
        elif field_type in {"radio", "select"}:
            if value:
                self._check_option(field, value)
            self.responses[field_id] = value or ""
        else:
            self.responses[field_id] = "" if value is None else str(value)
        self.errors.pop(field_id, None)

    def toggle_option(self, field_id: str, option: str) -> list[str]:
        field = self._field(field_id)
        if field["type"] != "checkbox":
            raise ValueError(f"field {field_id} is not a checkbox field")
        self._check_option(field, option)
        selected = list(self.responses.get(field_id) or [])
        if option in selected:
            selected.remove(option)
        else:
            selected.append(option)
        self.responses[field_id] = selected
        self.errors.pop(field_id, None)
        return selected

    @staticmethod
    def _check_option(field: dict[str, Any], option: Any) -> None:
        if option not in field.get("options", []):
            raise ValueError(f"{option!r} is not an option of {field['id']}")

    async def attach_upload(
        self,
        field_id: str,
        filename: str,
        content: bytes,
        host: UploadHost,
        content_type: str = "",
    ) -> dict[str, str]:
        field = self._field(field_id)
        try:
            check_upload(field, filename, len(content), self.upload_max_bytes)
            value = await host.upload(self.form["slug"], filename, content, content_type)
        except (UploadRejectedError, UploadFailedError) as exc:
            self.errors[field_id] = exc.message
            raise
        self.responses[field_id] = value
        self.errors.pop(field_id, None)
        return value

    async def restore_upload(
        self, field_id: str, value: dict[str, Any], host: UploadHost
    ) -> dict[str, str]:
        """Accept an upload made earlier in this session, if the host stored it."""
        field = self._field(field_id)
        name = str(value.get("name") or "")
        try:
            check_upload(field, name, 0, self.upload_max_bytes)
            if not await host.owns(self.form["slug"], value):
                raise UploadRejectedError("Upload the file again")
        except UploadRejectedError as exc:
            self.errors[field_id] = exc.message
            raise
        restored = {"url": str(value["url"]), "name": name}
        self.responses[field_id] = restored
        self.errors.pop(field_id, None)
        return restored

    def clear_upload(self, field_id: str) -> None:
        self._field(field_id)
        self.responses.pop(field_id, None)
        self.errors.pop(field_id, None)

    def missing_required(self) -> list[str]:
        return [
            field["id"]
            for field in self.fields
            if field["required"] and not field_has_value(field, self.responses.get(field["id"]))
        ]

    async def submit(self, write: Writer) -> bool:
        """Hand the answers to ``write`` once every required field is filled.

        Returns True when a submission was stored. A second call while a
        write is in flight raises ``SubmissionInProgressError``.
        """
        if self.submitting:
            raise SubmissionInProgressError("A submission is already in progress")
        if self.state != EDITING:
            return self.state == SUBMITTED

        missing = self.missing_required()
        if missing:
            for field_id in missing:
                self.errors.setdefault(field_id, REQUIRED_MESSAGE)
            return False

        self.submitting = True
        self.submit_error = None
        try:
            self.submission = await run_in_threadpool(write, dict(self.responses))
        except SubmissionValidationError as exc:
            self.errors.update(exc.field_errors)
            return False
        except DuplicateSubmissionError:
            self.state = ALREADY_SUBMITTED
            return False
        except StoreError as exc:
            logger.warning("Submission for %s failed: %s", self.form["slug"], exc.message)
            self.submit_error = SUBMIT_ERROR_MESSAGE
            return False
        finally:
            self.submitting = False
        self.state = SUBMITTED
        return True
