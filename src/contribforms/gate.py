"""Decides what a visitor sees when opening a form.

The order of checks is fixed: the form must exist, the visitor must be
signed in, and a visitor who already has a submission for the form is
shown the terminal "already submitted" view instead of the inputs. A store
failure at any step yields the retryable ``unavailable`` state; it is never
read as "not submitted".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from contribforms.auth import Identity
from contribforms.errors import PermissionDeniedError, StoreError
from contribforms.protocols import Storage

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
UNAVAILABLE = "unavailable"
AUTH_REQUIRED = "auth_required"
ALREADY_SUBMITTED = "already_submitted"
SHOW_FORM = "form"


@dataclass
class FormView:
    state: str
    form: dict[str, Any] | None = None
    error: str = ""
    retryable: bool = False


def has_submitted(storage: Storage, email: str, slug: str) -> bool:
    return storage.submissions.has_submission(email, slug)


def resolve_form_view(storage: Storage, slug: str, identity: Identity | None) -> FormView:
    try:
        form = storage.forms.get_form(slug)
    except PermissionDeniedError as exc:
        return FormView(UNAVAILABLE, error=exc.message)
    except StoreError as exc:
        return FormView(UNAVAILABLE, error=exc.message, retryable=True)
    if form is None:
        return FormView(NOT_FOUND)
    if identity is None:
        return FormView(AUTH_REQUIRED, form=form)

    try:
        submitted = has_submitted(storage, identity.email, slug)
    except PermissionDeniedError as exc:
        return FormView(UNAVAILABLE, form=form, error=exc.message)
    except StoreError as exc:
        logger.warning("Submission check failed for %s on %s", identity.email, slug)
        return FormView(UNAVAILABLE, form=form, error=exc.message, retryable=True)
    if submitted:
        return FormView(ALREADY_SUBMITTED, form=form)
    return FormView(SHOW_FORM, form=form)
