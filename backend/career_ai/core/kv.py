"""Key/value records with expiry, backed by SQLAlchemy.

Mirrors the small surface of a hosted KV service: string values with an
optional TTL plus Redis-style lists for index structures. Each call is
its own unit of work; nothing spans keys.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from career_ai.models.entities import KvEntry, KvListItem

logger = logging.getLogger(__name__)


class KvError(RuntimeError):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class KvStore:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.clock = clock

    def now_ms(self) -> int:
        """Current store time as epoch milliseconds."""
        return int(self.clock().replace(tzinfo=timezone.utc).timestamp() * 1000)

    def now_iso(self) -> str:
        return self.clock().isoformat(timespec="milliseconds") + "Z"

    def _run(self, operation: str, fn: Callable[[Session], Any]) -> Any:
        db = self._session_factory()
        try:
            result = fn(db)
            db.commit()
            return result
        except SQLAlchemyError as exc:
            db.rollback()
            raise KvError(f"KV {operation} failed: {exc}") from exc
        finally:
            db.close()

    def _live_entry(self, db: Session, key: str) -> KvEntry | None:
        entry = db.get(KvEntry, key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self.clock():
            db.delete(entry)
            return None
        return entry

    def get(self, key: str) -> str | None:
        def _get(db: Session) -> str | None:
            entry = self._live_entry(db, key)
            return entry.value if entry else None

        return self._run("get", _get)

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        now = self.clock()
        expires_at = now + timedelta(seconds=ttl_seconds) if ttl_seconds else None

        def _set(db: Session) -> None:
            entry = db.get(KvEntry, key)
            if entry is None:
                db.add(KvEntry(key=key, value=value, expires_at=expires_at, updated_at=now))
                return
            entry.value = value
            entry.expires_at = expires_at
            entry.updated_at = now

        self._run("set", _set)

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0

        def _delete(db: Session) -> int:
            removed = db.query(KvEntry).filter(KvEntry.key.in_(keys)).delete(synchronize_session=False)
            removed += (
                db.query(KvListItem)
                .filter(KvListItem.list_key.in_(keys))
                .delete(synchronize_session=False)
            )
            return removed

        return self._run("delete", _delete)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def ttl(self, key: str) -> int | None:
        """Seconds left before ``key`` expires; ``None`` when absent or persistent."""

        def _ttl(db: Session) -> int | None:
            entry = self._live_entry(db, key)
            if entry is None or entry.expires_at is None:
                return None
            return int((entry.expires_at - self.clock()).total_seconds())

        return self._run("ttl", _ttl)

    def get_json(self, key: str) -> Any:
        raw = self.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set_json(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False), ttl_seconds)

    # Lists

    def _ordered_items(self, db: Session, key: str) -> list[KvListItem]:
        return (
            db.query(KvListItem)
            .filter(KvListItem.list_key == key)
            .order_by(KvListItem.seq.asc(), KvListItem.id.asc())
            .all()
        )

    def lpush(self, key: str, *values: str) -> int:
        def _lpush(db: Session) -> int:
            lowest = db.query(func.min(KvListItem.seq)).filter(KvListItem.list_key == key).scalar()
            seq = (lowest if lowest is not None else 0) - 1
            for value in values:
                db.add(KvListItem(list_key=key, seq=seq, value=value))
                seq -= 1
            db.flush()
            return db.query(KvListItem).filter(KvListItem.list_key == key).count()

        return self._run("lpush", _lpush)

    def rpush(self, key: str, *values: str) -> int:
        def _rpush(db: Session) -> int:
            highest = db.query(func.max(KvListItem.seq)).filter(KvListItem.list_key == key).scalar()
            seq = (highest if highest is not None else -1) + 1
            for value in values:
                db.add(KvListItem(list_key=key, seq=seq, value=value))
                seq += 1
            db.flush()
            return db.query(KvListItem).filter(KvListItem.list_key == key).count()

        return self._run("rpush", _rpush)

    def llen(self, key: str) -> int:
        return self._run(
            "llen",
            lambda db: db.query(KvListItem).filter(KvListItem.list_key == key).count(),
        )

    def lrange(self, key: str, start: int, end: int) -> list[str]:
        """Inclusive range with Redis index semantics (negative counts from the end)."""

        def _lrange(db: Session) -> list[str]:
            values = [item.value for item in self._ordered_items(db, key)]
            size = len(values)
            lo = start + size if start < 0 else start
            hi = end + size if end < 0 else end
            lo = max(lo, 0)
            hi = min(hi, size - 1)
            if lo > hi:
                return []
            return values[lo:hi + 1]

        return self._run("lrange", _lrange)

    def lrem(self, key: str, value: str, count: int = 0) -> int:
        """Remove occurrences of ``value``: all when ``count`` is 0, from the tail when negative."""

        def _lrem(db: Session) -> int:
            items = [item for item in self._ordered_items(db, key) if item.value == value]
            if count < 0:
                items = list(reversed(items))[: abs(count)]
            elif count > 0:
                items = items[:count]
            for item in items:
                db.delete(item)
            return len(items)

        return self._run("lrem", _lrem)

    def lset(self, key: str, index: int, value: str) -> None:
        def _lset(db: Session) -> None:
            items = self._ordered_items(db, key)
            position = index + len(items) if index < 0 else index
            if position < 0 or position >= len(items):
                raise IndexError(f"index {index} out of range for list {key!r}")
            items[position].value = value

        self._run("lset", _lset)

    def purge_expired(self) -> int:
        now = self.clock()
        removed = self._run(
            "purge",
            lambda db: db.query(KvEntry)
            .filter(KvEntry.expires_at.is_not(None), KvEntry.expires_at <= now)
            .delete(synchronize_session=False),
        )
        if removed:
            logger.info("Purged %s expired KV entries", removed)
        return removed
