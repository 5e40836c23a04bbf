from __future__ import annotations

from datetime import timedelta

import pytest

from contribforms.errors import DuplicateSubmissionError, FormExistsError, FormNotFoundError
from contribforms.utils import new_ulid, now_utc


def _submission(email="ada@x.com", slug="beta", **overrides):
    submission = {
        "id": new_ulid(),
        "form_slug": slug,
        "user_id": f"uid-{email.split('@')[0]}",
        "user_email": email,
        "user_name": "",
        "responses": {"f1": "Ada"},
        "submitted_at": now_utc(),
    }
    submission.update(overrides)
    return submission


def test_form_round_trip_keeps_field_order(storage, make_form):
    fields = [
        {"id": "name", "type": "text", "label": "Name", "required": True},
        {"id": "track", "type": "radio", "label": "Track", "required": False,
         "options": ["Web", "ML"]},
        {"id": "cv", "type": "upload", "label": "Resume", "required": False,
         "accepted_file_types": ["pdf"]},
    ]
    storage.forms.create_form(make_form(fields=fields))

    form = storage.forms.get_form("beta")
    assert form["slug"] == "beta"
    assert form["title"] == "Beta Registration"
    assert form["fields"] == fields
    assert storage.forms.get_form("gamma") is None


def test_duplicate_slug_is_rejected(storage, make_form):
    storage.forms.create_form(make_form())
    with pytest.raises(FormExistsError):
        storage.forms.create_form(make_form())


def test_update_keeps_slug(storage, make_form):
    storage.forms.create_form(make_form())
    updated = storage.forms.update_form("beta", {"slug": "other", "title": "Beta 2"})
    assert updated["slug"] == "beta"
    assert updated["title"] == "Beta 2"
    assert storage.forms.get_form("other") is None

    with pytest.raises(FormNotFoundError):
        storage.forms.update_form("missing", {"title": "x"})


def test_list_and_delete_forms(storage, make_form):
    storage.forms.create_form(make_form("alpha"))
    storage.forms.create_form(make_form("beta"))
    assert sorted(form["slug"] for form in storage.forms.list_forms()) == ["alpha", "beta"]

    storage.forms.delete_form("alpha")
    assert [form["slug"] for form in storage.forms.list_forms()] == ["beta"]


def test_has_submission_matches_both_keys(storage):
    storage.submissions.create_submission(_submission())

    assert storage.submissions.has_submission("ada@x.com", "beta")
    assert not storage.submissions.has_submission("ada@x.com", "gamma")
    assert not storage.submissions.has_submission("bob@x.com", "beta")


def test_second_submission_for_same_user_and_form_is_rejected(storage):
    storage.submissions.create_submission(_submission())
    with pytest.raises(DuplicateSubmissionError):
        storage.submissions.create_submission(_submission(responses={"f1": "Again"}))

    assert len(storage.submissions.list_submissions("beta")) == 1
    storage.submissions.create_submission(_submission(slug="gamma"))
    storage.submissions.create_submission(_submission(email="bob@x.com"))


def test_submissions_listed_newest_first(storage):
    earlier = _submission(email="bob@x.com", submitted_at=now_utc() - timedelta(hours=1))
    later = _submission()
    other = _submission(slug="gamma")
    for submission in (earlier, later, other):
        storage.submissions.create_submission(submission)

    listed = storage.submissions.list_submissions("beta")
    assert [item["id"] for item in listed] == [later["id"], earlier["id"]]
    assert len(storage.submissions.list_all_submissions()) == 3


def test_get_and_delete_submission(storage):
    submission = _submission(responses={"f1": "Ada", "lang": ["A", "B"]})
    storage.submissions.create_submission(submission)

    stored = storage.submissions.get_submission(submission["id"])
    assert stored["responses"] == {"f1": "Ada", "lang": ["A", "B"]}
    assert stored["user_email"] == "ada@x.com"

    storage.submissions.delete_submission(submission["id"])
    assert storage.submissions.get_submission(submission["id"]) is None
    assert not storage.submissions.has_submission("ada@x.com", "beta")


def test_file_metadata_round_trip(storage, tmp_path):
    file_id = new_ulid()
    storage.files.create_file(
        {
            "id": file_id,
            "form_slug": "beta",
            "name": "cv.pdf",
            "path": str(tmp_path / file_id),
            "content_type": "application/pdf",
            "size": 12,
            "uploaded_at": now_utc(),
        }
    )
    stored = storage.files.get_file(file_id)
    assert stored["name"] == "cv.pdf"
    assert stored["content_type"] == "application/pdf"
    assert stored["size"] == 12
    assert storage.files.get_file("missing") is None
