from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class FormModel(Base):
    __tablename__ = "forms"

    slug = Column(String, primary_key=True)
    title = Column(String)
    description = Column(Text)
    fields_json = Column(Text)
    created_by = Column(String)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class SubmissionModel(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("form_slug", "user_email", name="uq_submission_form_user"),
    )

    id = Column(String, primary_key=True)
    form_slug = Column(String, index=True)
    user_id = Column(String)
    user_email = Column(String, index=True)
    user_name = Column(String)
    responses_json = Column(Text)
    submitted_at = Column(DateTime)


class StoredUploadModel(Base):
    """A file kept by the local upload host, served from /files/{id}."""

    __tablename__ = "uploads"

    id = Column(String, primary_key=True)
    form_slug = Column(String, index=True)
    name = Column(String)
    path = Column(Text)
    content_type = Column(String)
    size = Column(Integer)
    uploaded_at = Column(DateTime)
