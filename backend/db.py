"""Key-value store backed by libsql.

Supports two modes:
- Remote (Turso): when TURSO_DATABASE_URL is set, connects via libsql with embedded replica.
- Local (dev): when TURSO_DATABASE_URL is empty, uses a local SQLite file via libsql.
"""

import logging
from datetime import datetime, timezone

import libsql_experimental as libsql

import config
from errors import ErrorCategory, ErrorReport, ErrorReporter, ErrorSeverity, ErrorSource

logger = logging.getLogger(__name__)


class LibsqlStore:
    def __init__(
        self,
        path: str = config.CACHE_DB_PATH,
        sync_url: str = config.TURSO_DATABASE_URL,
        auth_token: str = config.TURSO_AUTH_TOKEN,
        reporter: ErrorReporter | None = None,
    ):
        self.path = path
        self.sync_url = sync_url
        self.auth_token = auth_token
        self.reporter = reporter
        self.init_db()

    def get_conn(self):
        if self.sync_url:
            conn = libsql.connect(self.path, sync_url=self.sync_url, auth_token=self.auth_token)
            conn.sync()
        else:
            conn = libsql.connect(self.path)
        return conn

    def _commit(self, conn) -> None:
        conn.commit()
        if self.sync_url:
            conn.sync()

    def _failed(self, message_key: str, exc: Exception) -> None:
        logger.warning("Cache store %s failed: %s", message_key, exc)
        if self.reporter is not None:
            self.reporter.report(ErrorReport(
                category=ErrorCategory.STORAGE,
                source=ErrorSource.STORAGE,
                severity=ErrorSeverity.WARNING,
                message_key=message_key,
                detail=str(exc),
            ))

    def init_db(self) -> None:
        conn = self.get_conn()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_cache (
                key          TEXT PRIMARY KEY,
                value        TEXT NOT NULL,
                last_updated TEXT
            )
        """)
        self._commit(conn)
        conn.close()

    def get(self, key: str) -> str | None:
        try:
            conn = self.get_conn()
            try:
                row = conn.execute("SELECT value FROM kv_cache WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except Exception as exc:
            self._failed("errors.storage.loadFailed", exc)
            return None
        return row[0] if row else None

    def set(self, key: str, value: str) -> bool:
        try:
            conn = self.get_conn()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO kv_cache (key, value, last_updated) VALUES (?, ?, ?)",
                    (key, value, datetime.now(timezone.utc).isoformat()),
                )
                self._commit(conn)
            finally:
                conn.close()
        except Exception as exc:
            self._failed("errors.storage.saveFailed", exc)
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            conn = self.get_conn()
            try:
                conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
                self._commit(conn)
            finally:
                conn.close()
        except Exception as exc:
            self._failed("errors.storage.deleteFailed", exc)
            return False
        return True

    def clear(self) -> bool:
        try:
            conn = self.get_conn()
            try:
                conn.execute("DELETE FROM kv_cache")
                self._commit(conn)
            finally:
                conn.close()
        except Exception as exc:
            self._failed("errors.storage.deleteFailed", exc)
            return False
        return True
