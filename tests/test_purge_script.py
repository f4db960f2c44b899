from __future__ import annotations

import datetime as dt

from herit_auth.services.session_store import SessionStore
from scripts.purge_refresh_tokens import parse_args, purge


def _ago(days: float) -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc) - dt.timedelta(days=days)


def test_purge_respects_grace_period(db, user) -> None:
    store = SessionStore(db)
    old = store.create_record(user_id=user.id, family_id="fam-a", token_hash="h-old", expires_at=_ago(10))
    recent = store.create_record(user_id=user.id, family_id="fam-b", token_hash="h-recent", expires_at=_ago(1))
    store.deactivate_record(old)
    store.deactivate_record(recent)

    assert purge(db, older_than_days=7) == 1
    assert store.find_any_by_hash("h-old") is None
    assert store.find_any_by_hash("h-recent") is not None

    assert purge(db, older_than_days=0) == 1
    assert store.find_any_by_hash("h-recent") is None


def test_purge_keeps_active_records(db, user) -> None:
    store = SessionStore(db)
    store.create_record(user_id=user.id, family_id="fam-a", token_hash="h1", expires_at=_ago(30))

    assert purge(db, older_than_days=7) == 0
    assert store.find_any_by_hash("h1") is not None


def test_parse_args_defaults() -> None:
    assert parse_args([]).older_than_days == 7
    assert parse_args(["--older-than-days", "30"]).older_than_days == 30
