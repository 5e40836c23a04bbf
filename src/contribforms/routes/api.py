from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from contribforms.auth import Identity, require_admin, require_identity
from contribforms.config import FIELD_TYPES
from contribforms.errors import (
    DuplicateSubmissionError,
    FormNotFoundError,
    SubmissionNotFoundError,
    SubmissionValidationError,
)
from contribforms.fields import new_field
from contribforms.gate import has_submitted
from contribforms.schema import (
    parse_form_payload,
    sanitize_form_output,
    sanitize_submission_output,
)
from contribforms.uploads import foreign_uploads
from contribforms.utils import now_utc
from contribforms.writer import write_submission

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_form(request: Request, slug: str) -> dict[str, Any]:
    form = request.app.state.storage.forms.get_form(slug)
    if not form:
        raise FormNotFoundError(f"Form '{slug}' does not exist")
    return form


async def _json_object(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON") from None
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return payload


@router.get("/api/forms", tags=["api/forms"])
async def api_list_forms(
    request: Request, _: Identity = Depends(require_admin)
) -> JSONResponse:
    forms = request.app.state.storage.forms.list_forms()
    return JSONResponse([sanitize_form_output(form) for form in forms])


@router.post("/api/forms", tags=["api/forms"])
async def api_create_form(
    request: Request, admin: Identity = Depends(require_admin)
) -> JSONResponse:
    storage = request.app.state.storage
    payload = await _json_object(request)
    data, errors = parse_form_payload(payload)
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    now = now_utc()
    slug = storage.forms.create_form(
        {**data, "created_by": admin.email, "created_at": now, "updated_at": now}
    )
    logger.info("%s created form %s", admin.email, slug)
    return JSONResponse(sanitize_form_output(_load_form(request, slug)), status_code=201)


@router.get("/api/forms/{slug}", tags=["api/forms"])
async def api_get_form(request: Request, slug: str) -> JSONResponse:
    return JSONResponse(sanitize_form_output(_load_form(request, slug)))


@router.put("/api/forms/{slug}", tags=["api/forms"])
async def api_update_form(
    request: Request, slug: str, admin: Identity = Depends(require_admin)
) -> JSONResponse:
    storage = request.app.state.storage
    existing = _load_form(request, slug)
    payload = await _json_object(request)
    data, errors = parse_form_payload(payload, existing=existing)
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    updated = storage.forms.update_form(
        slug,
        {
            "title": data["title"],
            "description": data["description"],
            "fields": data["fields"],
            "updated_at": now_utc(),
        },
    )
    logger.info("%s updated form %s", admin.email, slug)
    return JSONResponse(sanitize_form_output(updated))


@router.delete("/api/forms/{slug}", tags=["api/forms"])
async def api_delete_form(
    request: Request, slug: str, admin: Identity = Depends(require_admin)
) -> JSONResponse:
    storage = request.app.state.storage
    _load_form(request, slug)
    # the store keeps no foreign keys, so dependent submissions go first
    submissions = storage.submissions.list_submissions(slug)
    for submission in submissions:
        storage.submissions.delete_submission(submission["id"])
    storage.forms.delete_form(slug)
    logger.info(
        "%s deleted form %s and %d submissions", admin.email, slug, len(submissions)
    )
    return JSONResponse({"deleted": slug, "submissions_deleted": len(submissions)})


@router.post("/api/fields", tags=["api/forms"])
async def api_new_field(
    request: Request, _: Identity = Depends(require_admin)
) -> JSONResponse:
    payload = await _json_object(request)
    field_type = str(payload.get("type", "")).strip()
    if field_type not in FIELD_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown field type: {field_type}")
    existing_ids = [str(item) for item in payload.get("existing_ids") or []]
    return JSONResponse(new_field(field_type, existing_ids), status_code=201)


@router.get("/api/forms/{slug}/status", tags=["api/submissions"])
async def api_submission_status(request: Request, slug: str) -> JSONResponse:
    identity = require_identity(request)
    _load_form(request, slug)
    submitted = has_submitted(request.app.state.storage, identity.email, slug)
    return JSONResponse({"slug": slug, "submitted": submitted})


@router.post("/api/forms/{slug}/submissions", tags=["api/submissions"])
async def api_submit_form(request: Request, slug: str) -> JSONResponse:
    identity = require_identity(request)
    storage = request.app.state.storage
    form = _load_form(request, slug)
    if has_submitted(storage, identity.email, slug):
        raise DuplicateSubmissionError("You have already submitted this form")
    payload = await _json_object(request)
    responses = payload.get("responses")
    if not isinstance(responses, dict):
        raise HTTPException(status_code=400, detail="responses must be a JSON object")
    upload_errors = await foreign_uploads(request.app.state.upload_host, form, responses)
    if upload_errors:
        raise SubmissionValidationError(upload_errors)
    submission = write_submission(storage, form, identity, responses)
    return JSONResponse(sanitize_submission_output(submission), status_code=201)


@router.get("/api/forms/{slug}/submissions", tags=["api/submissions"])
async def api_list_submissions(
    request: Request, slug: str, _: Identity = Depends(require_admin)
) -> JSONResponse:
    _load_form(request, slug)
    submissions = request.app.state.storage.submissions.list_submissions(slug)
    return JSONResponse([sanitize_submission_output(item) for item in submissions])


@router.get("/api/submissions", tags=["api/submissions"])
async def api_list_all_submissions(
    request: Request, _: Identity = Depends(require_admin)
) -> JSONResponse:
    submissions = request.app.state.storage.submissions.list_all_submissions()
    return JSONResponse([sanitize_submission_output(item) for item in submissions])


@router.delete("/api/submissions/{submission_id}", tags=["api/submissions"])
async def api_delete_submission(
    request: Request, submission_id: str, admin: Identity = Depends(require_admin)
) -> JSONResponse:
    storage = request.app.state.storage
    submission = storage.submissions.get_submission(submission_id)
    if not submission:
        raise SubmissionNotFoundError(f"Submission '{submission_id}' does not exist")
    storage.submissions.delete_submission(submission_id)
    logger.info(
        "%s deleted submission %s of form %s",
        admin.email,
        submission_id,
        submission["form_slug"],
    )
    return JSONResponse({"deleted": submission_id})
