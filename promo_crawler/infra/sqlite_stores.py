"""SQLite-backed promotion and job stores."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Iterable, Sequence

from ..errors import PersistenceError
from ..models import JobError, JobStatus, Promotion, QuantityKind, ScrapeJob
from .base import JobStore, PromotionStore
from .storage import SQLiteManager

_HASH_CHUNK = 500


def _to_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_text(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


class SQLitePromotionStore(PromotionStore):
    """Promotions table with a unique ``external_hash`` as the authoritative guard."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    def exists_by_hash(self, hashes: Iterable[str]) -> set[str]:
        unique = list(dict.fromkeys(hashes))
        found: set[str] = set()
        try:
            with self._lock:
                for start in range(0, len(unique), _HASH_CHUNK):
                    chunk = unique[start : start + _HASH_CHUNK]
                    placeholders = ",".join("?" for _ in chunk)
                    rows = self._conn.execute(
                        f"SELECT external_hash FROM promotions WHERE external_hash IN ({placeholders})",
                        chunk,
                    ).fetchall()
                    found.update(row["external_hash"] for row in rows)
        except sqlite3.Error as exc:
            raise PersistenceError(f"existence check failed: {exc}") from exc
        return found

    def insert_many(self, promotions: Sequence[Promotion]) -> list[int]:
        ids: list[int] = []
        try:
            with self._lock, self._conn:
                for promotion in promotions:
                    cursor = self._conn.execute(
                        """
                        INSERT INTO promotions(
                            program, origin, destination, quantity, quantity_kind, title,
                            description, link, source, collected_at, active, external_hash
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT(external_hash) DO NOTHING
                        """,
                        (
                            promotion.program,
                            promotion.origin,
                            promotion.destination,
                            promotion.quantity,
                            promotion.quantity_kind.value,
                            promotion.title,
                            promotion.description,
                            promotion.link,
                            promotion.source,
                            _to_text(promotion.collected_at),
                            int(promotion.active),
                            promotion.external_hash,
                        ),
                    )
                    if cursor.rowcount == 1:
                        promotion.id = cursor.lastrowid
                        ids.append(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise PersistenceError(f"insert failed: {exc}") from exc
        return ids

    def deactivate_before(self, cutoff: datetime) -> int:
        return self._execute(
            "UPDATE promotions SET active = 0 WHERE active = 1 AND collected_at < ?",
            (_to_text(cutoff),),
            "deactivate",
        )

    def delete_before(self, cutoff: datetime) -> int:
        return self._execute(
            "DELETE FROM promotions WHERE collected_at < ?",
            (_to_text(cutoff),),
            "delete",
        )

    def delete_invalid_destinations(self, terms: Iterable[str]) -> int:
        terms = [term.lower() for term in terms if term]
        if not terms:
            return 0
        clause = " OR ".join("instr(lower(destination), ?) > 0" for _ in terms)
        return self._execute(f"DELETE FROM promotions WHERE {clause}", terms, "clean")

    def list_promotions(self, active_only: bool = True, limit: int = 50) -> list[Promotion]:
        query = "SELECT * FROM promotions"
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY collected_at DESC, id DESC LIMIT ?"
        try:
            with self._lock:
                rows = self._conn.execute(query, (limit,)).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"listing failed: {exc}") from exc
        return [self._row_to_promotion(row) for row in rows]

    def get_by_hash(self, external_hash: str) -> Promotion | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM promotions WHERE external_hash = ?", (external_hash,)
            ).fetchone()
        return self._row_to_promotion(row) if row else None

    def _execute(self, statement: str, params: Sequence, action: str) -> int:
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(statement, params)
                return cursor.rowcount
        except sqlite3.Error as exc:
            raise PersistenceError(f"{action} failed: {exc}") from exc

    @staticmethod
    def _row_to_promotion(row: sqlite3.Row) -> Promotion:
        return Promotion(
            id=row["id"],
            program=row["program"],
            origin=row["origin"],
            destination=row["destination"],
            quantity=row["quantity"],
            quantity_kind=QuantityKind(row["quantity_kind"]),
            title=row["title"],
            description=row["description"],
            link=row["link"],
            source=row["source"],
            collected_at=_from_text(row["collected_at"]),
            active=bool(row["active"]),
            external_hash=row["external_hash"],
        )


class SQLiteJobStore(JobStore):
    """``scrape_jobs`` table; a job can be finalized only while running."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    def create(self, started_at: datetime) -> int:
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(
                    "INSERT INTO scrape_jobs(started_at, status) VALUES (?, ?)",
                    (_to_text(started_at), JobStatus.RUNNING.value),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise PersistenceError(f"job create failed: {exc}") from exc

    def finalize(
        self,
        job_id: int,
        status: JobStatus,
        completed_at: datetime,
        pages_scraped: int,
        promotions_found: int,
        errors: Sequence[JobError],
    ) -> None:
        if status is JobStatus.RUNNING:
            raise ValueError("A job cannot be finalized as running")
        payload = json.dumps([error.to_dict() for error in errors], ensure_ascii=False) if errors else None
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(
                    """
                    UPDATE scrape_jobs
                       SET status = ?, completed_at = ?, pages_scraped = ?,
                           promotions_found = ?, errors = ?
                     WHERE id = ? AND status = ?
                    """,
                    (
                        status.value,
                        _to_text(completed_at),
                        pages_scraped,
                        promotions_found,
                        payload,
                        job_id,
                        JobStatus.RUNNING.value,
                    ),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"job finalize failed: {exc}") from exc
        if cursor.rowcount != 1:
            raise PersistenceError(f"job {job_id} is not running")

    def get(self, job_id: int) -> ScrapeJob | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM scrape_jobs WHERE id = ?", (job_id,)).fetchone()
        return self._row_to_job(row) if row else None

    def list_recent(self, limit: int = 20) -> list[ScrapeJob]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM scrape_jobs ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [self._row_to_job(row) for row in rows]

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> ScrapeJob:
        errors = [JobError(**item) for item in json.loads(row["errors"])] if row["errors"] else []
        return ScrapeJob(
            id=row["id"],
            started_at=_from_text(row["started_at"]),
            completed_at=_from_text(row["completed_at"]),
            status=JobStatus(row["status"]),
            pages_scraped=row["pages_scraped"],
            promotions_found=row["promotions_found"],
            errors=errors,
        )


__all__ = ["SQLiteJobStore", "SQLitePromotionStore"]
