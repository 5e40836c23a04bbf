from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from contribforms.errors import (
    DuplicateSubmissionError,
    FormExistsError,
    FormNotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
)
from contribforms.models import Base, FormModel, StoredUploadModel, SubmissionModel
from contribforms.utils import dumps_json, loads_json, now_utc

logger = logging.getLogger(__name__)

_PERMISSION_MARKERS = ("readonly", "read-only", "permission", "access", "not authorized")


def _is_permission_error(exc: BaseException) -> bool:
    if isinstance(exc, PermissionError):
        return True
    if isinstance(exc, OperationalError):
        detail = str(exc.orig or exc).lower()
        return any(marker in detail for marker in _PERMISSION_MARKERS)
    return False


class SQLiteRepoBase:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with self._Session() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            if isinstance(exc, IntegrityError):
                raise
            if _is_permission_error(exc):
                logger.warning("Store refused %s: %s", operation, exc)
                raise PermissionDeniedError(f"The store denied {operation}") from exc
            logger.exception("Store failure during %s", operation)
            raise StoreUnavailableError(f"The store is unavailable ({operation})") from exc


class SQLiteFormRepo(SQLiteRepoBase):
    def list_forms(self) -> list[dict[str, Any]]:
        with self._session("list forms") as session:
            rows = session.scalars(
                select(FormModel).order_by(FormModel.created_at.desc())
            ).all()
            return [self._to_dict(row) for row in rows]

    def get_form(self, slug: str) -> dict[str, Any] | None:
        with self._session("read form") as session:
            row = session.get(FormModel, slug)
            return self._to_dict(row) if row else None

    def create_form(self, form: dict[str, Any]) -> str:
        with self._session("create form") as session:
            now = now_utc()
            row = FormModel(
                slug=form["slug"],
                title=form["title"],
                description=form.get("description", ""),
                fields_json=dumps_json(form["fields"]),
                created_by=form.get("created_by", ""),
                created_at=form.get("created_at") or now,
                updated_at=form.get("updated_at") or now,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise FormExistsError(f"A form with slug '{form['slug']}' already exists") from exc
            return row.slug

    def update_form(self, slug: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._session("update form") as session:
            row = session.get(FormModel, slug)
            if not row:
                raise FormNotFoundError(f"Form '{slug}' does not exist")
            for key, value in updates.items():
                if key == "slug":
                    continue
                if key == "fields":
                    row.fields_json = dumps_json(value)
                else:
                    setattr(row, key, value)
            row.updated_at = updates.get("updated_at") or now_utc()
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def delete_form(self, slug: str) -> None:
        with self._session("delete form") as session:
            row = session.get(FormModel, slug)
            if row:
                session.delete(row)
                session.commit()

    @staticmethod
    def _to_dict(row: FormModel) -> dict[str, Any]:
        return {
            "slug": row.slug,
            "title": row.title,
            "description": row.description or "",
            "fields": loads_json(row.fields_json) or [],
            "created_by": row.created_by or "",
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        }


class SQLiteSubmissionRepo(SQLiteRepoBase):
    def list_submissions(self, form_slug: str) -> list[dict[str, Any]]:
        with self._session("list submissions") as session:
            rows = session.scalars(
                select(SubmissionModel)
                .where(SubmissionModel.form_slug == form_slug)
                .order_by(SubmissionModel.submitted_at.desc())
            ).all()
            return [self._to_dict(row) for row in rows]

    def list_all_submissions(self) -> list[dict[str, Any]]:
        with self._session("list submissions") as session:
            rows = session.scalars(
                select(SubmissionModel).order_by(SubmissionModel.submitted_at.desc())
            ).all()
            return [self._to_dict(row) for row in rows]

    def get_submission(self, submission_id: str) -> dict[str, Any] | None:
        with self._session("read submission") as session:
            row = session.get(SubmissionModel, submission_id)
            return self._to_dict(row) if row else None

    def has_submission(self, user_email: str, form_slug: str) -> bool:
        with self._session("check submission") as session:
            row = session.scalars(
                select(SubmissionModel.id)
                .where(SubmissionModel.form_slug == form_slug)
                .where(SubmissionModel.user_email == user_email)
                .limit(1)
            ).first()
            return row is not None

    def create_submission(self, submission: dict[str, Any]) -> None:
        with self._session("save submission") as session:
            row = SubmissionModel(
                id=submission["id"],
                form_slug=submission["form_slug"],
                user_id=submission["user_id"],
                user_email=submission["user_email"],
                user_name=submission["user_name"],
                responses_json=dumps_json(submission["responses"]),
                submitted_at=submission["submitted_at"],
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateSubmissionError(
                    f"{submission['user_email']} already submitted '{submission['form_slug']}'"
                ) from exc

    def delete_submission(self, submission_id: str) -> None:
        with self._session("delete submission") as session:
            row = session.get(SubmissionModel, submission_id)
            if row:
                session.delete(row)
                session.commit()

    @staticmethod
    def _to_dict(row: SubmissionModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "form_slug": row.form_slug,
            "user_id": row.user_id or "",
            "user_email": row.user_email,
            "user_name": row.user_name or "",
            "responses": loads_json(row.responses_json) or {},
            "submitted_at": row.submitted_at,
        }


class SQLiteFileRepo(SQLiteRepoBase):
    columns = ("id", "form_slug", "name", "path", "content_type", "size", "uploaded_at")

    def create_file(self, file_meta: dict[str, Any]) -> None:
        with self._session("save upload") as session:
            session.add(StoredUploadModel(**{key: file_meta[key] for key in self.columns}))
            session.commit()

    def get_file(self, file_id: str) -> dict[str, Any] | None:
        with self._session("read upload") as session:
            row = session.get(StoredUploadModel, file_id)
            if not row:
                return None
            return {key: getattr(row, key) for key in self.columns}


class SQLiteStorage:
    def __init__(self, db_path: Path) -> None:
        self._engine = create_engine(f"sqlite:///{db_path}", future=True)
        self._Session = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        self.forms = SQLiteFormRepo(self._Session)
        self.submissions = SQLiteSubmissionRepo(self._Session)
        self.files = SQLiteFileRepo(self._Session)
