"""Tests for SqlIdentityDirectory."""

from datetime import datetime, timezone

from app.models import User
from app.services.identity import SqlIdentityDirectory, normalize_email


def test_find_by_email_normalizes(db, user_id, clock):
    directory = SqlIdentityDirectory(db, clock=clock)
    assert directory.find_by_email(" A@EXAMPLE.com ").id == user_id
    assert directory.find_by_email("") is None
    assert directory.find_by_email("missing@example.com") is None


def test_set_email_confirmed_sets_timestamp_once(db, user_id, clock):
    directory = SqlIdentityDirectory(db, clock=clock)
    directory.set_email_confirmed(user_id)
    db.commit()
    first = db.get(User, user_id).email_confirmed_at
    assert first is not None

    clock.advance(hours=1)
    directory.set_email_confirmed(user_id)
    db.commit()
    assert db.get(User, user_id).email_confirmed_at == first


def test_new_user_is_unconfirmed(db, user_id):
    assert db.get(User, user_id).email_confirmed is False


def test_normalize_email():
    assert normalize_email("  Bob@Example.ORG") == "bob@example.org"
    assert normalize_email(None) == ""
