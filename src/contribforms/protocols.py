from __future__ import annotations

from typing import Any, Protocol


class FormRepository(Protocol):
    def list_forms(self) -> list[dict[str, Any]]: ...

    def get_form(self, slug: str) -> dict[str, Any] | None: ...

    def create_form(self, form: dict[str, Any]) -> str: ...

    def update_form(self, slug: str, updates: dict[str, Any]) -> dict[str, Any]: ...

    def delete_form(self, slug: str) -> None: ...


class SubmissionRepository(Protocol):
    def list_submissions(self, form_slug: str) -> list[dict[str, Any]]: ...

    def list_all_submissions(self) -> list[dict[str, Any]]: ...

    def get_submission(self, submission_id: str) -> dict[str, Any] | None: ...

    def has_submission(self, user_email: str, form_slug: str) -> bool: ...

    def create_submission(self, submission: dict[str, Any]) -> None: ...

    def delete_submission(self, submission_id: str) -> None: ...


class FileRepository(Protocol):
    def create_file(self, file_meta: dict[str, Any]) -> None: ...

    def get_file(self, file_id: str) -> dict[str, Any] | None: ...


class Storage(Protocol):
    forms: FormRepository
    submissions: SubmissionRepository
    files: FileRepository
