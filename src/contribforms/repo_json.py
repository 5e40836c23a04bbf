from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock, Timeout
from tinydb import Query, TinyDB

from contribforms.errors import (
    DuplicateSubmissionError,
    FormExistsError,
    FormNotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
)
from contribforms.utils import now_utc, parse_dt, to_iso

logger = logging.getLogger(__name__)


class JSONRepoBase:
    def __init__(self, path: Path, lock: FileLock) -> None:
        self._path = path
        self._lock = lock

    @contextmanager
    def _db(self, operation: str) -> Iterator[TinyDB]:
        try:
            with self._lock:
                db = TinyDB(self._path)
                try:
                    yield db
                finally:
                    db.close()
        except PermissionError as exc:
            logger.warning("Store refused %s: %s", operation, exc)
            raise PermissionDeniedError(f"The store denied {operation}") from exc
        except (OSError, ValueError, Timeout) as exc:
            logger.exception("Store failure during %s", operation)
            raise StoreUnavailableError(f"The store is unavailable ({operation})") from exc


class JSONFormRepo(JSONRepoBase):
    def list_forms(self) -> list[dict[str, Any]]:
        with self._db("list forms") as db:
            items = db.table("forms").all()
        forms = [self._from_record(item) for item in items]
        return sorted(forms, key=lambda x: x["created_at"], reverse=True)

    def get_form(self, slug: str) -> dict[str, Any] | None:
        with self._db("read form") as db:
            item = db.table("forms").get(Query().slug == slug)
        return self._from_record(item) if item else None

    def create_form(self, form: dict[str, Any]) -> str:
        record = self._to_record(form)
        with self._db("create form") as db:
            table = db.table("forms")
            if table.contains(Query().slug == form["slug"]):
                raise FormExistsError(f"A form with slug '{form['slug']}' already exists")
            table.insert(record)
        return form["slug"]

    def update_form(self, slug: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._db("update form") as db:
            table = db.table("forms")
            item = table.get(Query().slug == slug)
            if not item:
                raise FormNotFoundError(f"Form '{slug}' does not exist")
            changes = {k: v for k, v in updates.items() if k != "slug"}
            changes.setdefault("updated_at", now_utc())
            item.update(self._to_record(changes, partial=True))
            table.update(item, Query().slug == slug)
        return self._from_record(item)

    def delete_form(self, slug: str) -> None:
        with self._db("delete form") as db:
            db.table("forms").remove(Query().slug == slug)

    @staticmethod
    def _to_record(form: dict[str, Any], partial: bool = False) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for key, value in form.items():
            if key in {"created_at", "updated_at"}:
                record[key] = to_iso(value) if isinstance(value, datetime) else value
            else:
                record[key] = value
        if not partial:
            record.setdefault("created_at", to_iso(now_utc()))
            record.setdefault("updated_at", to_iso(now_utc()))
        return record

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "slug": record["slug"],
            "title": record.get("title", ""),
            "description": record.get("description", ""),
            "fields": record.get("fields", []),
            "created_by": record.get("created_by", ""),
            "created_at": parse_dt(record.get("created_at")),
            "updated_at": parse_dt(record.get("updated_at")),
        }


class JSONSubmissionRepo(JSONRepoBase):
    def list_submissions(self, form_slug: str) -> list[dict[str, Any]]:
        with self._db("list submissions") as db:
            items = db.table("submissions").search(Query().form_slug == form_slug)
        submissions = [self._from_record(item) for item in items]
        return sorted(submissions, key=lambda x: x["submitted_at"], reverse=True)

    def list_all_submissions(self) -> list[dict[str, Any]]:
        with self._db("list submissions") as db:
            items = db.table("submissions").all()
        submissions = [self._from_record(item) for item in items]
        return sorted(submissions, key=lambda x: x["submitted_at"], reverse=True)

    def get_submission(self, submission_id: str) -> dict[str, Any] | None:
        with self._db("read submission") as db:
            item = db.table("submissions").get(Query().id == submission_id)
        return self._from_record(item) if item else None

    def has_submission(self, user_email: str, form_slug: str) -> bool:
        Submission = Query()
        with self._db("check submission") as db:
            return db.table("submissions").contains(
                (Submission.form_slug == form_slug) & (Submission.user_email == user_email)
            )

    def create_submission(self, submission: dict[str, Any]) -> None:
        record = self._to_record(submission)
        Submission = Query()
        with self._db("save submission") as db:
            table = db.table("submissions")
            # check and insert under the same file lock
            if table.contains(
                (Submission.form_slug == record["form_slug"])
                & (Submission.user_email == record["user_email"])
            ):
                raise DuplicateSubmissionError(
                    f"{record['user_email']} already submitted '{record['form_slug']}'"
                )
            table.insert(record)

    def delete_submission(self, submission_id: str) -> None:
        with self._db("delete submission") as db:
            db.table("submissions").remove(Query().id == submission_id)

    @staticmethod
    def _to_record(submission: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": submission["id"],
            "form_slug": submission["form_slug"],
            "user_id": submission["user_id"],
            "user_email": submission["user_email"],
            "user_name": submission["user_name"],
            "responses": submission["responses"],
            "submitted_at": to_iso(submission["submitted_at"]),
        }

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "form_slug": record["form_slug"],
            "user_id": record.get("user_id", ""),
            "user_email": record.get("user_email", ""),
            "user_name": record.get("user_name", ""),
            "responses": record.get("responses", {}),
            "submitted_at": parse_dt(record.get("submitted_at")),
        }


class JSONFileRepo(JSONRepoBase):
    def create_file(self, file_meta: dict[str, Any]) -> None:
        record = {**file_meta, "uploaded_at": to_iso(file_meta["uploaded_at"])}
        with self._db("save upload") as db:
            db.table("uploads").insert(record)

    def get_file(self, file_id: str) -> dict[str, Any] | None:
        with self._db("read upload") as db:
            item = db.table("uploads").get(Query().id == file_id)
        if not item:
            return None
        return {**item, "uploaded_at": parse_dt(item.get("uploaded_at"))}


class JSONStorage:
    def __init__(self, path: Path) -> None:
        self._lock = FileLock(f"{path}.lock", timeout=10)
        self.forms = JSONFormRepo(path, self._lock)
        self.submissions = JSONSubmissionRepo(path, self._lock)
        self.files = JSONFileRepo(path, self._lock)
