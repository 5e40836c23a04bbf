from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates

from contribforms.auth import get_auth_provider
from contribforms.config import BASE_DIR, Settings, configure_logging
from contribforms.errors import ContribFormsError, SubmissionValidationError
from contribforms.file_formats import upload_accept_list, upload_types_label
from contribforms.routes.admin import router as admin_router
from contribforms.routes.api import router as api_router
from contribforms.routes.public import router as public_router
from contribforms.storage import init_storage
from contribforms.uploads import get_upload_host

logger = logging.getLogger(__name__)


def field_file_accept(field: dict[str, Any]) -> str:
    if field.get("type") != "upload":
        return ""
    return upload_accept_list(field.get("accepted_file_types"))


def field_file_types_label(field: dict[str, Any]) -> str:
    if field.get("type") != "upload":
        return ""
    return upload_types_label(field.get("accepted_file_types"))


async def handle_app_error(request: Request, exc: ContribFormsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body: dict[str, Any] = {"error": exc.code, "detail": exc.message}
    if isinstance(exc, SubmissionValidationError):
        body["fields"] = exc.field_errors
    return JSONResponse(body, status_code=exc.status_code)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings)
    storage = init_storage(settings)

    app = FastAPI(
        title="contribforms",
        openapi_tags=[
            {"name": "admin", "description": "Admin exports"},
            {"name": "public", "description": "Participant form pages (HTML)"},
            {"name": "api/forms", "description": "REST API: forms"},
            {"name": "api/submissions", "description": "REST API: submissions"},
            {"name": "system", "description": "System"},
        ],
    )

    app.state.settings = settings
    app.state.storage = storage
    app.state.auth_provider = get_auth_provider(settings)
    app.state.upload_host = get_upload_host(settings, storage.files)

    templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
    templates.env.globals["field_file_accept"] = field_file_accept
    templates.env.globals["field_file_types_label"] = field_file_types_label
    app.state.templates = templates

    app.add_exception_handler(ContribFormsError, handle_app_error)

    app.include_router(public_router)
    app.include_router(api_router)
    app.include_router(admin_router)

    return app
