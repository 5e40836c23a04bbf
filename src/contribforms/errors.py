"""Error taxonomy shared by the store, the submission pipeline and the routes.

Each error carries the HTTP status it maps to so the application can turn it
into a response at a single place (see ``app.create_app``).
"""

from __future__ import annotations


class ContribFormsError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class FormNotFoundError(ContribFormsError):
    status_code = 404
    code = "form_not_found"


class SubmissionNotFoundError(ContribFormsError):
    status_code = 404
    code = "submission_not_found"


class FormExistsError(ContribFormsError):
    status_code = 409
    code = "form_exists"


class StoreError(ContribFormsError):
    """Base for failures raised by the backing store."""


class PermissionDeniedError(StoreError):
    status_code = 403
    code = "permission_denied"


class StoreUnavailableError(StoreError):
    status_code = 503
    code = "store_unavailable"


class DuplicateSubmissionError(ContribFormsError):
    status_code = 409
    code = "already_submitted"


class SubmissionValidationError(ContribFormsError):
    status_code = 422
    code = "validation_failed"

    def __init__(self, field_errors: dict[str, str]) -> None:
        super().__init__("Some answers are missing or invalid")
        self.field_errors = field_errors


class SubmissionInProgressError(ContribFormsError):
    status_code = 409
    code = "submission_in_progress"


class UploadRejectedError(ContribFormsError):
    status_code = 400
    code = "upload_rejected"


class UploadFailedError(ContribFormsError):
    status_code = 502
    code = "upload_failed"
