"""Persistence of refresh token records.

This is the only module that reads or writes ``app_refresh_tokens``. Every
mutating call commits its own transaction; :meth:`SessionStore.rotate_record`
deactivates the presented record and inserts its replacement in a single
transaction, guarded by a conditional ``UPDATE ... WHERE is_active`` so that
of two concurrent rotations of the same record only one can win.
"""

from __future__ import annotations

import datetime as dt
import logging
from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from herit_auth.db.session import translate_db_errors
from herit_auth.models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime) -> dt.datetime:
    # SQLite hands back naive datetimes; everything stored here is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class SessionStore:
    def __init__(self, db: Session, *, leeway_seconds: int = 30) -> None:
        self.db = db
        self.leeway = dt.timedelta(seconds=leeway_seconds)

    def is_expired(self, record: RefreshToken, *, now: dt.datetime | None = None) -> bool:
        now = now or _utcnow()
        return as_utc(record.expires_at) <= now - self.leeway

    def is_live(self, record: RefreshToken, *, now: dt.datetime | None = None) -> bool:
        return bool(record.is_active) and not self.is_expired(record, now=now)

    def create_record(
        self,
        *,
        user_id: UUID,
        family_id: str,
        token_hash: str,
        expires_at: dt.datetime,
    ) -> UUID:
        record = RefreshToken(
            id=uuid4(),
            user_id=user_id,
            family_id=family_id,
            token_hash=token_hash,
            expires_at=expires_at,
            is_active=True,
        )
        with translate_db_errors(self.db, "create_record"):
            self.db.add(record)
            self.db.commit()
        logger.debug("Refresh record created: user=%s family=%s", user_id, family_id)
        return record.id

    def find_any_by_hash(self, token_hash: str) -> RefreshToken | None:
        with translate_db_errors(self.db, "find_any_by_hash"):
            return self.db.execute(
                select(RefreshToken).where(RefreshToken.token_hash == token_hash)
            ).scalar_one_or_none()

    def find_active_by_hash(self, token_hash: str) -> RefreshToken | None:
        record = self.find_any_by_hash(token_hash)
        if record is None or not self.is_live(record):
            return None
        return record

    def deactivate_record(self, record_id: UUID) -> bool:
        """Deactivate one record. Returns ``False`` if it was already inactive or missing."""
        with translate_db_errors(self.db, "deactivate_record"):
            result = self.db.execute(
                update(RefreshToken)
                .where(RefreshToken.id == record_id, RefreshToken.is_active.is_(True))
                .values(is_active=False, revoked_at=_utcnow())
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        self._expire_cached()
        return result.rowcount == 1

    def revoke_family(self, family_id: str) -> int:
        with translate_db_errors(self.db, "revoke_family"):
            result = self.db.execute(
                update(RefreshToken)
                .where(RefreshToken.family_id == family_id, RefreshToken.is_active.is_(True))
                .values(is_active=False, revoked_at=_utcnow())
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        self._expire_cached()
        logger.info("Refresh family revoked: family=%s records=%s", family_id, result.rowcount)
        return result.rowcount

    def revoke_all_for_user(self, user_id: UUID) -> int:
        with translate_db_errors(self.db, "revoke_all_for_user"):
            result = self.db.execute(
                update(RefreshToken)
                .where(RefreshToken.user_id == user_id, RefreshToken.is_active.is_(True))
                .values(is_active=False, revoked_at=_utcnow())
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        self._expire_cached()
        logger.info("All refresh records revoked: user=%s records=%s", user_id, result.rowcount)
        return result.rowcount

    def rotate_record(
        self,
        record: RefreshToken,
        *,
        new_token_hash: str,
        expires_at: dt.datetime,
    ) -> UUID | None:
        """Retire ``record`` and insert its successor in the same family.

        Returns the new record id, or ``None`` when another rotation already
        retired ``record`` (or holds the family's active slot). Nothing is
        written in that case.
        """
        new_id = uuid4()
        with translate_db_errors(self.db, "rotate_record"):
            try:
                result = self.db.execute(
                    update(RefreshToken)
                    .where(RefreshToken.id == record.id, RefreshToken.is_active.is_(True))
                    .values(is_active=False, revoked_at=_utcnow(), replaced_by_id=new_id)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    self.db.rollback()
                    return None
                self.db.add(
                    RefreshToken(
                        id=new_id,
                        user_id=record.user_id,
                        family_id=record.family_id,
                        token_hash=new_token_hash,
                        expires_at=expires_at,
                        is_active=True,
                    )
                )
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.info("Rotation lost on family slot: family=%s", record.family_id)
                return None
        self._expire_cached()
        return new_id

    def purge_expired(self, *, older_than: dt.timedelta = dt.timedelta(0)) -> int:
        """Delete inactive records whose expiry passed more than ``older_than`` ago."""
        cutoff = _utcnow() - older_than
        with translate_db_errors(self.db, "purge_expired"):
            result = self.db.execute(
                delete(RefreshToken)
                .where(RefreshToken.expires_at < cutoff, RefreshToken.is_active.is_(False))
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        logger.info("Purged expired refresh records: %s", result.rowcount)
        return result.rowcount

    def _expire_cached(self) -> None:
        # Bulk updates bypass the identity map; drop cached rows so later reads see them.
        self.db.expire_all()
