"""
Request-id keyed cache for recognition webhook results.

Each request id moves Unseen -> Processing -> Cached. A Processing claim is
a lease: it expires after IDEMPOTENCY_PROCESSING_TIMEOUT_SECONDS so a
crashed worker cannot block its request id forever. Cached results expire
after IDEMPOTENCY_TTL_SECONDS and the request is then treated as new.
"""

from abc import ABC, abstractmethod
import asyncio
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
import logging
import threading

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import SessionLocal
from app.models.idempotency_record import IdempotencyRecord
from app.utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

KEY_PREFIX = "idempotency:"
STATE_PROCESSING = "processing"
STATE_CACHED = "cached"


@dataclass
class Claim:
    """Outcome of trying to start work on a request id"""
    acquired: bool
    cached: Optional[Dict[str, Any]] = None

    @property
    def in_progress(self) -> bool:
        return not self.acquired and self.cached is None


class IdempotencyStore(ABC):
    def __init__(self, ttl_seconds: int = None, processing_timeout_seconds: int = None,
                 clock: Callable[[], datetime] = utc_now):
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.IDEMPOTENCY_TTL_SECONDS)
        self.lease = timedelta(
            seconds=processing_timeout_seconds
            if processing_timeout_seconds is not None
            else settings.IDEMPOTENCY_PROCESSING_TIMEOUT_SECONDS
        )
        self.clock = clock

    @staticmethod
    def key(request_id: str) -> str:
        return f"{KEY_PREFIX}{request_id}"

    @abstractmethod
    def claim(self, request_id: str) -> Claim:
        """Return the cached result, report in-progress, or take the processing lease"""

    @abstractmethod
    def save(self, request_id: str, result: Dict[str, Any]) -> None:
        """Store the final result under the request id for the TTL"""

    @abstractmethod
    def release(self, request_id: str) -> None:
        """Drop a processing claim so a retry can start over"""

    @abstractmethod
    def get(self, request_id: str) -> Optional[Dict[str, Any]]:
        """Non-expired cached result, if any"""

    @abstractmethod
    def sweep(self) -> int:
        """Delete expired entries and return how many were removed"""


@dataclass
class _Entry:
    state: str
    expires_at: datetime
    result: Optional[Dict[str, Any]] = None


class InMemoryIdempotencyStore(IdempotencyStore):
    """Process-local store; suitable for a single worker"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry and entry.expires_at <= self.clock():
            del self._entries[key]
            return None
        return entry

    def claim(self, request_id: str) -> Claim:
        key = self.key(request_id)
        with self._lock:
            entry = self._live(key)
            if entry is None:
                self._entries[key] = _Entry(STATE_PROCESSING, self.clock() + self.lease)
                return Claim(acquired=True)
            if entry.state == STATE_CACHED:
                return Claim(acquired=False, cached=deepcopy(entry.result))
            return Claim(acquired=False)

    def save(self, request_id: str, result: Dict[str, Any]) -> None:
        with self._lock:
            self._entries[self.key(request_id)] = _Entry(STATE_CACHED, self.clock() + self.ttl, deepcopy(result))

    def release(self, request_id: str) -> None:
        key = self.key(request_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry and entry.state == STATE_PROCESSING:
                del self._entries[key]

    def get(self, request_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._live(self.key(request_id))
            if entry and entry.state == STATE_CACHED:
                return deepcopy(entry.result)
            return None

    def sweep(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)


class DatabaseIdempotencyStore(IdempotencyStore):
    """Shared table store; the unique request_id column arbitrates between workers"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.session_factory = session_factory

    def _find(self, db: Session, key: str) -> Optional[IdempotencyRecord]:
        return db.query(IdempotencyRecord).filter(IdempotencyRecord.request_id == key).first()

    def _expired(self, record: IdempotencyRecord) -> bool:
        return ensure_utc(record.expires_at) <= self.clock()

    def claim(self, request_id: str) -> Claim:
        key = self.key(request_id)
        db = self.session_factory()
        try:
            record = self._find(db, key)
            if record is not None and not self._expired(record):
                if record.state == STATE_CACHED:
                    return Claim(acquired=False, cached=record.result)
                return Claim(acquired=False)
            if record is not None:
                db.delete(record)
                db.flush()
            db.add(IdempotencyRecord(request_id=key, state=STATE_PROCESSING, expires_at=self.clock() + self.lease))
            db.commit()
            return Claim(acquired=True)
        except IntegrityError:
            # Another worker inserted the same request id first
            db.rollback()
            record = self._find(db, key)
            if record is not None and record.state == STATE_CACHED:
                return Claim(acquired=False, cached=record.result)
            return Claim(acquired=False)
        finally:
            db.close()

    def save(self, request_id: str, result: Dict[str, Any]) -> None:
        key = self.key(request_id)
        db = self.session_factory()
        try:
            record = self._find(db, key)
            if record is None:
                record = IdempotencyRecord(request_id=key)
            record.state = STATE_CACHED
            record.result = result
            record.expires_at = self.clock() + self.ttl
            db.add(record)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def release(self, request_id: str) -> None:
        db = self.session_factory()
        try:
            db.query(IdempotencyRecord).filter(
                IdempotencyRecord.request_id == self.key(request_id),
                IdempotencyRecord.state == STATE_PROCESSING,
            ).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get(self, request_id: str) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            record = self._find(db, self.key(request_id))
            if record is None or record.state != STATE_CACHED or self._expired(record):
                return None
            return record.result
        finally:
            db.close()

    def sweep(self) -> int:
        db = self.session_factory()
        try:
            removed = db.query(IdempotencyRecord).filter(
                IdempotencyRecord.expires_at <= self.clock()
            ).delete(synchronize_session=False)
            db.commit()
            return removed
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def build_idempotency_store() -> IdempotencyStore:
    backend = settings.IDEMPOTENCY_BACKEND.lower()
    if backend == "database":
        return DatabaseIdempotencyStore()
    if backend != "memory":
        logger.warning(f"Unknown IDEMPOTENCY_BACKEND '{settings.IDEMPOTENCY_BACKEND}', using memory")
    return InMemoryIdempotencyStore()


async def start_sweep_task(store: IdempotencyStore, interval_seconds: Optional[int] = None):
    """Background loop that purges expired idempotency entries"""
    interval = interval_seconds or settings.IDEMPOTENCY_SWEEP_INTERVAL_SECONDS
    while True:
        try:
            removed = await run_in_threadpool(store.sweep)
            if removed:
                logger.info(f"Swept {removed} expired idempotency entries")
        except Exception as e:
            logger.error(f"Error in idempotency sweep task: {e}")
        await asyncio.sleep(interval)
