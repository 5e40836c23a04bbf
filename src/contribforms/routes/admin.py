from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from contribforms.auth import require_admin
from contribforms.errors import FormNotFoundError
from contribforms.export import (
    EXPORT_FORMATS,
    export_headers_and_rows,
    render_delimited,
    render_xlsx,
)

router = APIRouter()


@router.get("/admin/forms/{slug}/export", tags=["admin"])
async def export_submissions(
    request: Request, slug: str, _: Any = Depends(require_admin)
) -> Response:
    storage = request.app.state.storage
    form = storage.forms.get_form(slug)
    if not form:
        raise FormNotFoundError(f"Form '{slug}' does not exist")

    fmt = request.query_params.get("format", "csv")
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported export format: {fmt}")

    submissions = storage.submissions.list_submissions(slug)
    headers, rows = export_headers_and_rows(submissions, form["fields"])
    if fmt == "xlsx":
        content: str | bytes = render_xlsx(headers, rows)
    else:
        content = render_delimited(headers, rows, delimiter="," if fmt == "csv" else "\t")

    filename = f"{slug}-responses.{fmt}"
    return Response(
        content,
        media_type=EXPORT_FORMATS[fmt],
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/healthz", tags=["system"])
async def healthz() -> dict[str, str]:
    return {"status": "ok"}
