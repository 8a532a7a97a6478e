"""Metric record stores.

Every record lands in one append-only table; per-subject reads filter on the
indexed `subject_id` column.
"""

from __future__ import annotations

from threading import Lock
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from pedidos.db.models import RequestMetric
from pedidos.db.session import Database
from pedidos.errors import StoreUnavailable
from pedidos.models.domain import MetricRecord


class MetricsStore(Protocol):
    def insert(self, record: MetricRecord) -> None: ...

    def find_by_subject(self, subject_id: str, limit: int) -> list[MetricRecord]: ...

    def find_recent(self, limit: int) -> list[MetricRecord]: ...

    def clear_subject(self, subject_id: str) -> int: ...


def _to_record(row: RequestMetric) -> MetricRecord:
    return MetricRecord(
        subject_id=row.subject_id,
        method=row.method,
        path=row.path,
        status_code=row.status_code,
        elapsed_ms=row.elapsed_ms,
        captured_at=row.captured_at,
        client_ip=row.client_ip,
        user_agent=row.user_agent,
    )


class SqlMetricsStore:
    """SQLAlchemy-backed store. Any database error surfaces as StoreUnavailable."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def insert(self, record: MetricRecord) -> None:
        row = RequestMetric(
            subject_id=record.subject_id,
            method=record.method,
            path=record.path,
            status_code=record.status_code,
            elapsed_ms=record.elapsed_ms,
            captured_at=record.captured_at,
            client_ip=record.client_ip,
            user_agent=record.user_agent,
        )
        try:
            with self._database.session() as db:
                db.add(row)
                db.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def _select(self, subject_id: str | None, limit: int) -> list[MetricRecord]:
        stmt = select(RequestMetric)
        if subject_id is not None:
            stmt = stmt.where(RequestMetric.subject_id == subject_id)
        stmt = stmt.order_by(RequestMetric.captured_at.desc(), RequestMetric.id.desc()).limit(limit)
        try:
            with self._database.session() as db:
                return [_to_record(row) for row in db.execute(stmt).scalars()]
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def find_by_subject(self, subject_id: str, limit: int) -> list[MetricRecord]:
        return self._select(subject_id, limit)

    def find_recent(self, limit: int) -> list[MetricRecord]:
        return self._select(None, limit)

    def clear_subject(self, subject_id: str) -> int:
        try:
            with self._database.session() as db:
                result = db.execute(delete(RequestMetric).where(RequestMetric.subject_id == subject_id))
                db.commit()
                return int(result.rowcount or 0)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc


class InMemoryMetricsStore:
    """Thread-safe, process-local store (resets on restart)."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._records: list[MetricRecord] = []

    def insert(self, record: MetricRecord) -> None:
        with self._lock:
            self._records.append(record)

    def _newest_first(self, subject_id: str | None, limit: int) -> list[MetricRecord]:
        with self._lock:
            rows = [r for r in reversed(self._records) if subject_id is None or r.subject_id == subject_id]
        rows.sort(key=lambda r: r.captured_at, reverse=True)
        return rows[:limit]

    def find_by_subject(self, subject_id: str, limit: int) -> list[MetricRecord]:
        return self._newest_first(subject_id, limit)

    def find_recent(self, limit: int) -> list[MetricRecord]:
        return self._newest_first(None, limit)

    def clear_subject(self, subject_id: str) -> int:
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.subject_id != subject_id]
            return before - len(self._records)
