from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse

from contribforms.auth import Identity, current_identity, require_identity
from contribforms.errors import (
    FormNotFoundError,
    UploadFailedError,
    UploadRejectedError,
)
from contribforms.fields import field_map
from contribforms.gate import SHOW_FORM, UNAVAILABLE, FormView, resolve_form_view
from contribforms.renderer import ALREADY_SUBMITTED, SUBMITTED, FormSession
from contribforms.uploads import check_upload
from contribforms.writer import write_submission

logger = logging.getLogger(__name__)

router = APIRouter()

_VIEW_STATUS = {
    "not_found": 404,
    "auth_required": 401,
    "already_submitted": 200,
}


def render_view(request: Request, view: FormView, slug: str) -> HTMLResponse:
    templates = request.app.state.templates
    if view.state == UNAVAILABLE:
        status_code = 503 if view.retryable else 403
    else:
        status_code = _VIEW_STATUS.get(view.state, 200)
    return templates.TemplateResponse(
        request,
        "form_gate.html",
        {"view": view, "form": view.form, "slug": slug},
        status_code=status_code,
    )


def render_session(request: Request, session: FormSession, status_code: int = 200) -> HTMLResponse:
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "form_public.html",
        {
            "form": session.form,
            "fields": session.fields,
            "responses": session.responses,
            "errors": session.errors,
            "submit_error": session.submit_error,
            "progress": session.progress,
        },
        status_code=status_code,
    )


async def collect_responses(
    request: Request, session: FormSession, form_data: Any
) -> None:
    """Load posted answers into ``session``, uploading any attached files."""
    host = request.app.state.upload_host
    for field in session.fields:
        field_id = field["id"]
        field_type = field["type"]
        try:
            if field_type == "checkbox":
                session.set_value(field_id, form_data.getlist(field_id))
            elif field_type == "upload":
                upload = form_data.get(field_id)
                if upload is not None and getattr(upload, "filename", ""):
                    content = await upload.read()
                    await session.attach_upload(
                        field_id,
                        upload.filename,
                        content,
                        host,
                        upload.content_type or "",
                    )
                elif form_data.get(f"{field_id}__url"):
                    # a file uploaded by an earlier attempt of this session
                    await session.restore_upload(
                        field_id,
                        {
                            "url": str(form_data.get(f"{field_id}__url")),
                            "name": str(form_data.get(f"{field_id}__name") or ""),
                        },
                        host,
                    )
            else:
                session.set_value(field_id, form_data.get(field_id) or "")
        except ValueError:
            session.errors[field_id] = "Choose one of the listed options"
        except (UploadRejectedError, UploadFailedError):
            continue


@router.get("/forms/{slug}", response_class=HTMLResponse, tags=["public"])
async def public_form(request: Request, slug: str) -> HTMLResponse:
    storage = request.app.state.storage
    identity = current_identity(request)
    view = resolve_form_view(storage, slug, identity)
    if view.state != SHOW_FORM:
        return render_view(request, view, slug)
    session = FormSession(view.form, identity, request.app.state.settings.upload_max_bytes)
    return render_session(request, session)


@router.post("/forms/{slug}", response_class=HTMLResponse, tags=["public"])
async def submit_form(request: Request, slug: str) -> HTMLResponse:
    storage = request.app.state.storage
    templates = request.app.state.templates
    identity = current_identity(request)
    view = resolve_form_view(storage, slug, identity)
    if view.state != SHOW_FORM:
        return render_view(request, view, slug)

    form = view.form
    session = FormSession(form, identity, request.app.state.settings.upload_max_bytes)
    form_data = await request.form()
    await collect_responses(request, session, form_data)
    if session.errors:
        return render_session(request, session, status_code=422)

    await session.submit(lambda responses: write_submission(storage, form, identity, responses))
    if session.state == SUBMITTED:
        return templates.TemplateResponse(request, "submission_done.html", {"form": form})
    if session.state == ALREADY_SUBMITTED:
        return render_view(request, FormView(ALREADY_SUBMITTED, form=form), slug)
    status_code = 503 if session.submit_error else 422
    return render_session(request, session, status_code=status_code)


@router.post("/api/forms/{slug}/uploads/{field_id}", tags=["api/submissions"])
async def upload_file(
    request: Request, slug: str, field_id: str, file: UploadFile = File(...)
) -> JSONResponse:
    identity: Identity = require_identity(request)
    storage = request.app.state.storage
    settings = request.app.state.settings
    form = storage.forms.get_form(slug)
    if not form:
        raise FormNotFoundError(f"Form '{slug}' does not exist")
    field = field_map(form["fields"]).get(field_id)
    if not field:
        raise HTTPException(status_code=404, detail="Field not found")
    content = await file.read()
    check_upload(field, file.filename or "", len(content), settings.upload_max_bytes)
    value = await request.app.state.upload_host.upload(
        slug, file.filename or "", content, file.content_type or ""
    )
    logger.info("%s uploaded %s to %s/%s", identity.email, value["name"], slug, field_id)
    return JSONResponse(value, status_code=201)


@router.get("/files/{file_id}", tags=["public"])
async def download_file(request: Request, file_id: str) -> FileResponse:
    storage = request.app.state.storage
    settings = request.app.state.settings
    file_meta = storage.files.get_file(file_id)
    if not file_meta:
        raise HTTPException(status_code=404, detail="File not found")
    path = Path(file_meta["path"]).resolve()
    if settings.upload_dir.resolve() not in path.parents:
        raise HTTPException(status_code=400, detail="Invalid file path")
    return FileResponse(
        path,
        media_type=file_meta.get("content_type") or None,
        filename=file_meta.get("name") or file_id,
    )
