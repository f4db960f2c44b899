from __future__ import annotations

import datetime as dt
import threading
from uuid import uuid4

from herit_auth.core.exceptions import TransientStoreError
from herit_auth.core.security import hash_refresh_token
from herit_auth.models.enums import AuthEventKind, AuthFailureReason, ContextSource
from herit_auth.models.refresh_token import RefreshToken
from herit_auth.services.auth import begin_session
from herit_auth.services.context import RotationFailure, RotationSuccess
from herit_auth.services.rotation import RotationEngine
from herit_auth.services.session_store import SessionStore
from herit_auth.services.users import UserDirectory


def _engine(db, codec) -> RotationEngine:
    return RotationEngine(SessionStore(db), codec, UserDirectory(db))


def test_rotation_keeps_family_and_retires_presented_token(db, codec, user) -> None:
    tokens = begin_session(db, user, codec=codec)
    store = SessionStore(db)

    outcome = _engine(db, codec).rotate(tokens.refresh_token)

    assert isinstance(outcome, RotationSuccess)
    assert outcome.tokens.family_id == tokens.family_id
    assert outcome.tokens.refresh_token != tokens.refresh_token
    assert outcome.context.user_id == user.id
    assert outcome.context.source == ContextSource.rotation
    assert outcome.context.family_id == tokens.family_id

    access = codec.verify_access_token(outcome.tokens.access_token)
    assert access.sub == str(user.id)
    assert access.session_version == user.session_version

    old = store.find_any_by_hash(hash_refresh_token(tokens.refresh_token))
    new = store.find_active_by_hash(hash_refresh_token(outcome.tokens.refresh_token))
    assert old is not None and not old.is_active
    assert new is not None and old.replaced_by_id == new.id
    assert codec.verify_refresh_token(outcome.tokens.refresh_token).family_id == tokens.family_id


def test_unknown_token_is_rejected(db, codec, user) -> None:
    token = codec.sign_refresh_token(sub=str(user.id), family_id=str(uuid4()), jti=str(uuid4()))

    outcome = _engine(db, codec).rotate(token)

    assert outcome == RotationFailure(AuthFailureReason.unknown_refresh_token)


def test_garbage_and_expired_tokens_are_rejected(db, codec, user) -> None:
    expired = codec.sign_refresh_token(
        sub=str(user.id),
        family_id=str(uuid4()),
        jti=str(uuid4()),
        expires_delta=dt.timedelta(minutes=-5),
    )
    engine = _engine(db, codec)

    assert engine.rotate("not-a-token").reason == AuthFailureReason.invalid_refresh_token
    assert engine.rotate(expired).reason == AuthFailureReason.expired_refresh_token


def test_expired_record_is_rejected_even_with_live_token(db, codec, user) -> None:
    family_id = str(uuid4())
    token = codec.sign_refresh_token(sub=str(user.id), family_id=family_id, jti=str(uuid4()))
    SessionStore(db).create_record(
        user_id=user.id,
        family_id=family_id,
        token_hash=hash_refresh_token(token),
        expires_at=dt.datetime.now(dt.timezone.utc) - dt.timedelta(hours=1),
    )

    outcome = _engine(db, codec).rotate(token)

    assert outcome.reason == AuthFailureReason.expired_refresh_token


def test_record_from_another_family_is_rejected(db, codec, user) -> None:
    token = codec.sign_refresh_token(sub=str(user.id), family_id="fam-claimed", jti=str(uuid4()))
    SessionStore(db).create_record(
        user_id=user.id,
        family_id="fam-stored",
        token_hash=hash_refresh_token(token),
        expires_at=dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=1),
    )

    outcome = _engine(db, codec).rotate(token)

    assert outcome.reason == AuthFailureReason.invalid_refresh_token
    assert SessionStore(db).find_active_by_hash(hash_refresh_token(token)) is not None


def test_replayed_token_revokes_whole_family(db, codec, user) -> None:
    tokens = begin_session(db, user, codec=codec)
    engine = _engine(db, codec)
    first = engine.rotate(tokens.refresh_token)
    assert isinstance(first, RotationSuccess)

    replay = engine.rotate(tokens.refresh_token)

    assert isinstance(replay, RotationFailure)
    assert replay.reason == AuthFailureReason.reuse_detected
    assert [event.kind for event in replay.events] == [
        AuthEventKind.reuse_detected,
        AuthEventKind.family_revoked,
    ]
    assert replay.events[0].user_id == user.id
    assert replay.events[1].family_id == tokens.family_id
    assert replay.events[1].affected == 1

    store = SessionStore(db)
    assert store.find_active_by_hash(hash_refresh_token(first.tokens.refresh_token)) is None
    assert engine.rotate(first.tokens.refresh_token).reason == AuthFailureReason.reuse_detected


def test_replay_leaves_other_families_alone(db, codec, user) -> None:
    laptop = begin_session(db, user, codec=codec)
    phone = begin_session(db, user, codec=codec)
    engine = _engine(db, codec)
    engine.rotate(laptop.refresh_token)

    engine.rotate(laptop.refresh_token)

    assert isinstance(engine.rotate(phone.refresh_token), RotationSuccess)


def test_concurrent_rotation_has_exactly_one_winner(session_factory, codec, user) -> None:
    setup_db = session_factory()
    tokens = begin_session(setup_db, user, codec=codec)
    setup_db.close()

    db_a = session_factory()
    db_b = session_factory()
    engine_a = _engine(db_a, codec)
    engine_b = _engine(db_b, codec)
    results = {}

    real_find = engine_a.store.find_any_by_hash

    def find_then_lose_race(token_hash):
        record = real_find(token_hash)
        # The other request completes its rotation between A's read and A's write.
        results["b"] = engine_b.rotate(tokens.refresh_token)
        return record

    engine_a.store.find_any_by_hash = find_then_lose_race
    results["a"] = engine_a.rotate(tokens.refresh_token)

    assert isinstance(results["b"], RotationSuccess)
    assert isinstance(results["a"], RotationFailure)
    assert results["a"].reason == AuthFailureReason.reuse_detected

    check = SessionStore(session_factory())
    assert check.find_active_by_hash(hash_refresh_token(results["b"].tokens.refresh_token)) is None
    assert check.find_active_by_hash(hash_refresh_token(tokens.refresh_token)) is None

    for session in (db_a, db_b, check.db):
        session.close()


class _NoUsers:
    def get(self, user_id):
        return None


def test_missing_user_is_rejected(db, codec, user) -> None:
    tokens = begin_session(db, user, codec=codec)
    engine = RotationEngine(SessionStore(db), codec, _NoUsers())

    outcome = engine.rotate(tokens.refresh_token)

    assert outcome.reason == AuthFailureReason.user_not_found
    assert SessionStore(db).find_active_by_hash(hash_refresh_token(tokens.refresh_token)) is not None


class _UnavailableStore:
    def find_any_by_hash(self, token_hash):
        raise TransientStoreError(operation="find_any_by_hash")


def test_store_outage_is_reported_as_transient(db, codec, user) -> None:
    token = codec.sign_refresh_token(sub=str(user.id), family_id=str(uuid4()), jti=str(uuid4()))
    engine = RotationEngine(_UnavailableStore(), codec, UserDirectory(db))

    outcome = engine.rotate(token)

    assert outcome == RotationFailure(AuthFailureReason.transient_store_error)
    assert outcome.events == ()


def test_parallel_rotations_of_one_token_yield_single_winner(session_factory, codec, user) -> None:
    setup_db = session_factory()
    tokens = begin_session(setup_db, user, codec=codec)
    setup_db.close()

    workers = 6
    barrier = threading.Barrier(workers)
    outcomes = []
    errors = []
    lock = threading.Lock()

    def attempt() -> None:
        session = session_factory()
        try:
            engine = _engine(session, codec)
            barrier.wait()
            outcome = engine.rotate(tokens.refresh_token)
            with lock:
                outcomes.append(outcome)
        except Exception as exc:
            with lock:
                errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert len(outcomes) == workers
    winners = [outcome for outcome in outcomes if isinstance(outcome, RotationSuccess)]
    losers = [outcome for outcome in outcomes if isinstance(outcome, RotationFailure)]
    assert len(winners) == 1
    assert {outcome.reason for outcome in losers} == {AuthFailureReason.reuse_detected}

    check = SessionStore(session_factory())
    active = check.db.query(RefreshToken).filter(
        RefreshToken.family_id == tokens.family_id,
        RefreshToken.is_active.is_(True),
    )
    assert active.count() == 0
    check.db.close()
