"""
Persistence for DID challenge records.

Handlers talk to a ``ChallengeStore`` rather than to SQLAlchemy directly so the
same flow can run against the database (``SqlChallengeStore``) or a dict
(``MemoryChallengeStore``). Freshness is always computed against the store's
clock at read time; nothing about a record is cached between calls.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from didauth.domains.did_auth.errors import StateCollisionError
from didauth.domains.did_auth.models import DIDAuthRequest

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChallengeStore(Protocol):
    def insert(self, state: str, data: dict[str, Any]) -> DIDAuthRequest: ...

    def find_by_state(self, state: str) -> DIDAuthRequest | None: ...

    def find_fresh(self, state: str, max_age: timedelta) -> DIDAuthRequest | None: ...

    def find_verified_fresh(self, state: str, max_age: timedelta) -> DIDAuthRequest | None: ...

    def update(self, record: DIDAuthRequest) -> None: ...

    def delete_by_state(self, state: str) -> None: ...

    def purge_older_than(self, age: timedelta) -> int: ...


class SqlChallengeStore:
    def __init__(self, db: Session, clock: Clock = utcnow) -> None:
        self.db = db
        self._clock = clock

    def _by_state(self, state: str):
        return self.db.query(DIDAuthRequest).filter(DIDAuthRequest.state == state)

    def insert(self, state: str, data: dict[str, Any]) -> DIDAuthRequest:
        record = DIDAuthRequest(state=state, data=dict(data), verified=False, created_at=self._clock())
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise StateCollisionError(state) from exc
        return record

    def find_by_state(self, state: str) -> DIDAuthRequest | None:
        return self._by_state(state).one_or_none()

    def find_fresh(self, state: str, max_age: timedelta) -> DIDAuthRequest | None:
        cutoff = self._clock() - max_age
        return self._by_state(state).filter(DIDAuthRequest.created_at >= cutoff).one_or_none()

    def find_verified_fresh(self, state: str, max_age: timedelta) -> DIDAuthRequest | None:
        cutoff = self._clock() - max_age
        return (
            self._by_state(state)
            .filter(DIDAuthRequest.verified.is_(True), DIDAuthRequest.created_at >= cutoff)
            .populate_existing()
            .one_or_none()
        )

    def update(self, record: DIDAuthRequest) -> None:
        # JSON columns do not track in-place mutation.
        flag_modified(record, "data")
        self.db.add(record)
        self.db.commit()

    def delete_by_state(self, state: str) -> None:
        self._by_state(state).delete(synchronize_session=False)
        self.db.commit()

    def purge_older_than(self, age: timedelta) -> int:
        cutoff = self._clock() - age
        removed = (
            self.db.query(DIDAuthRequest)
            .filter(DIDAuthRequest.created_at <= cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if removed:
            logger.info("Purged %s DID challenges created before %s", removed, cutoff.isoformat())
        return int(removed or 0)


def _copy(record: DIDAuthRequest) -> DIDAuthRequest:
    return DIDAuthRequest(
        id=record.id,
        state=record.state,
        verified=record.verified,
        data=dict(record.data or {}),
        created_at=record.created_at,
    )


class MemoryChallengeStore:
    """
    Dict-backed store for tests and single-process deployments.

    Callers only ever see copies, so a record is replaced wholesale on
    ``update`` and a concurrent reader never observes a half-merged mapping.
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._records: dict[str, DIDAuthRequest] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def insert(self, state: str, data: dict[str, Any]) -> DIDAuthRequest:
        with self._lock:
            if state in self._records:
                raise StateCollisionError(state)
            record = DIDAuthRequest(state=state, data=dict(data), verified=False, created_at=self._clock())
            self._records[state] = record
            return _copy(record)

    def find_by_state(self, state: str) -> DIDAuthRequest | None:
        with self._lock:
            record = self._records.get(state)
            return _copy(record) if record is not None else None

    def find_fresh(self, state: str, max_age: timedelta) -> DIDAuthRequest | None:
        cutoff = self._clock() - max_age
        with self._lock:
            record = self._records.get(state)
            if record is None or record.created_at < cutoff:
                return None
            return _copy(record)

    def find_verified_fresh(self, state: str, max_age: timedelta) -> DIDAuthRequest | None:
        record = self.find_fresh(state, max_age)
        if record is None or not record.verified:
            return None
        return record

    def update(self, record: DIDAuthRequest) -> None:
        with self._lock:
            if record.state in self._records:
                self._records[record.state] = _copy(record)

    def delete_by_state(self, state: str) -> None:
        with self._lock:
            self._records.pop(state, None)

    def purge_older_than(self, age: timedelta) -> int:
        cutoff = self._clock() - age
        with self._lock:
            dead = [k for k, r in self._records.items() if r.created_at <= cutoff]
            for k in dead:
                del self._records[k]
        return len(dead)
