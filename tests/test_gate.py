from __future__ import annotations

from contribforms.errors import PermissionDeniedError, StoreUnavailableError
from contribforms.gate import (
    ALREADY_SUBMITTED,
    AUTH_REQUIRED,
    NOT_FOUND,
    SHOW_FORM,
    UNAVAILABLE,
    has_submitted,
    resolve_form_view,
)
from contribforms.utils import new_ulid, now_utc


class _BrokenSubmissions:
    def __init__(self, exc):
        self.exc = exc

    def has_submission(self, user_email, form_slug):
        raise self.exc


class _BrokenStorage:
    def __init__(self, storage, exc):
        self.forms = storage.forms
        self.files = storage.files
        self.submissions = _BrokenSubmissions(exc)


def _submit(storage, identity, slug="beta"):
    storage.submissions.create_submission(
        {
            "id": new_ulid(),
            "form_slug": slug,
            "user_id": identity.uid,
            "user_email": identity.email,
            "user_name": identity.name,
            "responses": {"f1": "Ada"},
            "submitted_at": now_utc(),
        }
    )


def test_unknown_form_is_not_found(storage, ada):
    view = resolve_form_view(storage, "nope", ada)
    assert view.state == NOT_FOUND
    assert view.form is None


def test_anonymous_visitor_must_sign_in(storage, make_form):
    storage.forms.create_form(make_form())
    view = resolve_form_view(storage, "beta", None)
    assert view.state == AUTH_REQUIRED
    assert view.form["title"] == "Beta Registration"


def test_fresh_user_sees_form(storage, make_form, ada):
    storage.forms.create_form(make_form())
    assert not has_submitted(storage, ada.email, "beta")
    assert resolve_form_view(storage, "beta", ada).state == SHOW_FORM


def test_existing_submission_blocks_form(storage, make_form, ada):
    storage.forms.create_form(make_form())
    _submit(storage, ada)
    assert has_submitted(storage, ada.email, "beta")
    view = resolve_form_view(storage, "beta", ada)
    assert view.state == ALREADY_SUBMITTED


def test_submission_on_other_form_does_not_block(storage, make_form, ada):
    storage.forms.create_form(make_form())
    _submit(storage, ada, slug="gamma")
    assert resolve_form_view(storage, "beta", ada).state == SHOW_FORM


def test_store_failure_never_shows_the_form(storage, make_form, ada):
    storage.forms.create_form(make_form())
    broken = _BrokenStorage(storage, StoreUnavailableError("down"))

    view = resolve_form_view(broken, "beta", ada)
    assert view.state == UNAVAILABLE
    assert view.retryable


def test_permission_failure_is_not_retryable(storage, make_form, ada):
    storage.forms.create_form(make_form())
    broken = _BrokenStorage(storage, PermissionDeniedError("denied"))

    view = resolve_form_view(broken, "beta", ada)
    assert view.state == UNAVAILABLE
    assert not view.retryable
    assert view.error == "denied"
