from __future__ import annotations

import json
import uuid
from typing import Any

from pydantic import BaseModel

from .database import SQLiteProfileDB
from .profile_models import PROFILE_SECTIONS, Identity, ProfileData
from .time_utils import to_iso, utc_now


class ProfileNotFound(Exception):
    pass


def _json_dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


class ProfileStore:
    """Profile documents and login sessions, one row per profile section."""

    def __init__(self, db: SQLiteProfileDB) -> None:
        self._db = db

    def load_profile(self, identity: Identity) -> ProfileData:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT section, data_json
                FROM profile_sections
                WHERE user_id = ?
                """,
                (identity.user_id,),
            ).fetchall()
        if not rows:
            raise ProfileNotFound(f"No profile for user {identity.user_id}")
        document = {row["section"]: json.loads(row["data_json"]) for row in rows if row["section"] in PROFILE_SECTIONS}
        return ProfileData.model_validate(document)

    def save_profile(self, profile: ProfileData, identity: Identity) -> None:
        # Each section commits on its own; a failure leaves earlier sections intact.
        for section in PROFILE_SECTIONS:
            self.save_section(identity, section, getattr(profile, section))

    def save_section(self, identity: Identity, section: str, value: BaseModel | dict[str, Any]) -> None:
        if section not in PROFILE_SECTIONS:
            raise ValueError(f"Unknown profile section: {section}")
        payload = value.model_dump(mode="json") if isinstance(value, BaseModel) else value
        now = to_iso(utc_now())
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO profile_sections (id, user_id, section, data_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, section) DO UPDATE SET
                  data_json = excluded.data_json,
                  updated_at = excluded.updated_at
                """,
                (uuid.uuid4().hex, identity.user_id, section, _json_dumps(payload), now, now),
            )

    def open_session(self, identity: Identity) -> str:
        session_key = f"sess_{uuid.uuid4().hex}"
        now = to_iso(utc_now())
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO auth_sessions (session_key, user_id, email, display_name, created_at, last_seen_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (session_key, identity.user_id, identity.email, identity.name, now, now),
            )
        return session_key

    def get_current_session(self, session_key: str | None) -> Identity | None:
        if not session_key:
            return None
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT user_id, email, display_name FROM auth_sessions WHERE session_key = ?",
                (session_key,),
            ).fetchone()
            if not row:
                return None
            conn.execute(
                "UPDATE auth_sessions SET last_seen_at = ? WHERE session_key = ?",
                (to_iso(utc_now()), session_key),
            )
        return Identity(user_id=row["user_id"], email=row["email"] or "", name=row["display_name"] or "")

    def close_session(self, session_key: str) -> None:
        with self._db.connection() as conn:
            conn.execute("DELETE FROM auth_sessions WHERE session_key = ?", (session_key,))
