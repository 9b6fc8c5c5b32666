"""Manifest stores recording the outcome of each pipeline stage per source."""

from __future__ import annotations

import os
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from librarian.domain import ManifestStatus

_SCHEMA = """
CREATE TABLE IF NOT EXISTS manifest (
    source_id   TEXT NOT NULL,
    stage       TEXT NOT NULL,
    status      TEXT NOT NULL,
    attempts    INTEGER NOT NULL DEFAULT 0,
    error       TEXT,
    output_ref  TEXT,
    updated_at  INTEGER NOT NULL,
    PRIMARY KEY (source_id, stage)
);
CREATE INDEX IF NOT EXISTS idx_manifest_status ON manifest(status);
CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""

_UPSERT = """
INSERT INTO manifest(source_id, stage, status, attempts, error, output_ref, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(source_id, stage) DO UPDATE SET
    status     = excluded.status,
    attempts   = excluded.attempts,
    error      = excluded.error,
    output_ref = excluded.output_ref,
    updated_at = excluded.updated_at
"""

_INGESTED = (
    ManifestStatus.SUCCESS,
    ManifestStatus.CACHED,
    ManifestStatus.RECOVERED_VIA_FALLBACK,
)


@dataclass
class ManifestRow:
    """One recorded stage outcome."""

    source_id: str
    stage: str
    status: ManifestStatus
    attempts: int
    error: Optional[str] = None
    output_ref: Optional[str] = None


class MemManifest:
    """Append-only in-memory manifest."""

    def __init__(self) -> None:
        self._rows: list[ManifestRow] = []
        self._lock = threading.Lock()

    def rows(self) -> list[ManifestRow]:
        with self._lock:
            return list(self._rows)

    def record(
        self,
        source_id: str,
        stage: str,
        status: ManifestStatus,
        attempts: int = 0,
        error: Optional[str] = None,
        output_ref: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._rows.append(
                ManifestRow(source_id, stage, status, attempts, error, output_ref)
            )

    def list_by_status(self, status: ManifestStatus) -> list[tuple[str, str]]:
        with self._lock:
            return [(r.source_id, r.stage) for r in self._rows if r.status is status]


def _parse_status(text: str) -> ManifestStatus:
    try:
        return ManifestStatus(text)
    except ValueError:
        return ManifestStatus.PENDING


class SqliteManifest:
    """SQLite manifest holding one row per (source_id, stage); recording upserts."""

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
        try:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error:
            self._conn.close()
            raise

    def __enter__(self) -> "SqliteManifest":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def schema_version(self) -> int:
        with self._lock:
            (version,) = self._conn.execute(
                "SELECT MAX(version) FROM schema_version"
            ).fetchone()
        return version

    def record(
        self,
        source_id: str,
        stage: str,
        status: ManifestStatus,
        attempts: int = 0,
        error: Optional[str] = None,
        output_ref: Optional[str] = None,
    ) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                _UPSERT,
                (source_id, stage, status.value, attempts, error, output_ref, int(time.time())),
            )

    def list_by_status(self, status: ManifestStatus) -> list[tuple[str, str]]:
        with self._lock:
            cursor = self._conn.execute(
                "SELECT source_id, stage FROM manifest WHERE status = ?", (status.value,)
            )
            return [(source_id, stage) for source_id, stage in cursor]

    def _query(self, sql: str, params: tuple = ()) -> list[tuple]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()


def get_row(store: SqliteManifest, source_id: str, stage: str) -> Optional[ManifestRow]:
    """The row for ``(source_id, stage)``, or None if nothing was recorded."""
    found = store._query(
        "SELECT source_id, stage, status, attempts, error, output_ref "
        "FROM manifest WHERE source_id = ? AND stage = ?",
        (source_id, stage),
    )
    if not found:
        return None
    sid, stg, status, attempts, error, output_ref = found[0]
    return ManifestRow(sid, stg, _parse_status(status), int(attempts), error, output_ref)


def distinct_ingested_sources(store: SqliteManifest) -> list[str]:
    """Source ids with at least one Success, Cached or RecoveredViaFallback row."""
    placeholders = ", ".join("?" for _ in _INGESTED)
    found = store._query(
        f"SELECT DISTINCT source_id FROM manifest WHERE status IN ({placeholders})",
        tuple(s.value for s in _INGESTED),
    )
    return [sid for (sid,) in found]