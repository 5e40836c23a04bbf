from __future__ import annotations

import logging
from typing import Any

from contribforms.auth import Identity
from contribforms.protocols import Storage
from contribforms.utils import new_ulid, now_utc
from contribforms.validation import validate_responses

logger = logging.getLogger(__name__)


def build_submission(
    form: dict[str, Any], identity: Identity, responses: dict[str, Any]
) -> dict[str, Any]:
    return {
        "id": new_ulid(),
        "form_slug": form["slug"],
        "user_id": identity.uid,
        "user_email": identity.email,
        "user_name": identity.name,
        "responses": responses,
        "submitted_at": now_utc(),
    }


def write_submission(
    storage: Storage,
    form: dict[str, Any],
    identity: Identity,
    responses: dict[str, Any],
) -> dict[str, Any]:
    """Validate ``responses`` and persist them as a new submission.

    Validation failures raise before the store is touched. Uniqueness of
    (form, user) is left to the gate and the store; no lookup happens here.
    """
    cleaned = validate_responses(form, responses)
    submission = build_submission(form, identity, cleaned)
    storage.submissions.create_submission(submission)
    logger.info(
        "Stored submission %s for form %s by %s",
        submission["id"],
        form["slug"],
        identity.email,
    )
    return submission
