from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class SQLiteProfileDB:
    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def path(self) -> str:
        return str(self._path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._lock, self.connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS profile_sections (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  section TEXT NOT NULL,
                  data_json TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL,
                  UNIQUE(user_id, section)
                );

                CREATE TABLE IF NOT EXISTS auth_sessions (
                  session_key TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  email TEXT,
                  display_name TEXT,
                  created_at TEXT NOT NULL,
                  last_seen_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_profile_sections_user
                  ON profile_sections(user_id, section);
                CREATE INDEX IF NOT EXISTS idx_auth_sessions_user
                  ON auth_sessions(user_id);
                """
            )
