from __future__ import annotations

import logging
import shutil
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadedInvoice:
    filename: str
    invoice_date: date
    created_at: str


class StateStore:
    """
    Local SQLite state: the per-portal watermark, the invoices we stored, and a run log.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._backup_path = self.db_path.with_name(self.db_path.name + ".bak")

        self._conn = self._open_or_restore()
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._ensure_schema()

        self._maybe_backup(if_missing=True)

    def close(self) -> None:
        self._conn.close()

    def _open_or_restore(self) -> sqlite3.Connection:
        """
        Open the state DB. If it looks corrupted, move it aside and restore the last-known-good backup.

        Losing this DB only means the watermark must be given again with `--since`.
        """
        if self.db_path.exists():
            try:
                conn = sqlite3.connect(self.db_path)
                if self._connection_is_healthy(conn):
                    return conn
                conn.close()
                raise sqlite3.DatabaseError("SQLite quick_check failed")
            except sqlite3.DatabaseError as e:
                logger.warning("State DB appears corrupted/unreadable; attempting restore from backup. (%s)", e)
                self._quarantine_db_files()

                if self._backup_path.exists():
                    try:
                        shutil.copy2(self._backup_path, self.db_path)
                        conn = sqlite3.connect(self.db_path)
                        if self._connection_is_healthy(conn):
                            logger.warning("Restored state DB from backup: %s", self._backup_path)
                            return conn
                        conn.close()
                    except (OSError, sqlite3.Error):
                        logger.warning("Failed to restore state DB from backup; creating a fresh DB.", exc_info=True)
                else:
                    logger.warning("No state DB backup found; creating a fresh DB.")

        return sqlite3.connect(self.db_path)

    def _connection_is_healthy(self, conn: sqlite3.Connection) -> bool:
        try:
            _ = conn.execute("PRAGMA schema_version;").fetchone()
            row = conn.execute("PRAGMA quick_check;").fetchone()
            return bool(row and row[0] == "ok")
        except sqlite3.Error:
            return False

    def _quarantine_db_files(self) -> None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        for p in (self.db_path, Path(str(self.db_path) + "-wal"), Path(str(self.db_path) + "-shm")):
            try:
                if p.exists():
                    p.replace(p.with_name(p.name + f".corrupt-{stamp}"))
            except OSError:
                logger.debug("Failed to quarantine path=%s", p, exc_info=True)

    def _maybe_backup(self, *, if_missing: bool) -> None:
        if if_missing and self._backup_path.exists():
            return
        try:
            self.backup()
        except (OSError, sqlite3.Error):
            logger.debug("Failed to write state DB backup.", exc_info=True)

    def backup(self) -> None:
        """
        Write/refresh a last-known-good backup of the state DB at `<db_path>.bak`.
        """
        out = self._backup_path
        tmp = out.with_name(out.name + ".tmp")
        if tmp.exists():
            tmp.unlink()

        dst = sqlite3.connect(tmp)
        try:
            self._conn.backup(dst)
            dst.commit()
        finally:
            dst.close()

        tmp.replace(out)

    def _ensure_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS watermarks (
              portal TEXT PRIMARY KEY,
              last_invoice_date TEXT NOT NULL,
              updated_at TEXT NOT NULL
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS downloaded_invoices (
              filename TEXT PRIMARY KEY,
              invoice_date TEXT NOT NULL,
              created_at TEXT NOT NULL
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS runs (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              started_at TEXT NOT NULL,
              finished_at TEXT,
              ok INTEGER,
              message TEXT
            );
            """
        )
        self._conn.commit()

    def get_watermark(self, portal: str) -> Optional[date]:
        row = self._conn.execute(
            "SELECT last_invoice_date FROM watermarks WHERE portal = ?;",
            (portal,),
        ).fetchone()
        if not row:
            return None
        return date.fromisoformat(row[0])

    def set_watermark(self, portal: str, value: date) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self._conn.execute(
            """
            INSERT INTO watermarks(portal, last_invoice_date, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(portal) DO UPDATE SET
              last_invoice_date = excluded.last_invoice_date,
              updated_at = excluded.updated_at;
            """,
            (portal, value.isoformat(), now),
        )
        self._conn.commit()

    def mark_downloaded(self, *, filename: str, invoice_date: date) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self._conn.execute(
            "INSERT OR REPLACE INTO downloaded_invoices(filename, invoice_date, created_at) VALUES (?, ?, ?);",
            (filename, invoice_date.isoformat(), now),
        )
        self._conn.commit()

    def list_downloaded(self) -> list[DownloadedInvoice]:
        rows = self._conn.execute(
            "SELECT filename, invoice_date, created_at FROM downloaded_invoices ORDER BY invoice_date;"
        ).fetchall()
        return [DownloadedInvoice(filename=r[0], invoice_date=date.fromisoformat(r[1]), created_at=r[2]) for r in rows]

    def record_run_start(self) -> int:
        now = datetime.now(timezone.utc).isoformat()
        cur = self._conn.execute("INSERT INTO runs(started_at) VALUES (?);", (now,))
        self._conn.commit()
        return int(cur.lastrowid)

    def record_run_finish(self, run_id: int, *, ok: bool, message: Optional[str] = None) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self._conn.execute(
            "UPDATE runs SET finished_at = ?, ok = ?, message = ? WHERE id = ?;",
            (now, 1 if ok else 0, message, run_id),
        )
        self._conn.commit()

        # Only snapshot state that came out of a successful run.
        if ok:
            self._maybe_backup(if_missing=False)
