# Storage access for the routers, one MySQL backed implementation

import logging
from typing import Any, Dict, List, Optional, Protocol
import database

logger = logging.getLogger(__name__)

EVENT_COLUMNS = "id, calendar_id, title, start_at, end_at, memo, tag_id, rrule, created_by, created_at"
USER_COLUMNS = "id, email, name, utc_offset_minutes, created_at"
EVENT_FIELDS = ("title", "start_at", "end_at", "memo", "tag_id", "rrule")
USER_FIELDS = ("name", "utc_offset_minutes")
TAG_FIELDS = ("name", "color")


class DiaryRepository(Protocol):
    """Interface the routers use for persistence."""

    def ping(self) -> bool: ...

    def create_user(self, email: str, password_hash: str, name: Optional[str], default_tags: List[Dict[str, str]]) -> Dict[str, Any]: ...

    def get_user(self, user_id: int) -> Optional[Dict[str, Any]]: ...

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]: ...

    def update_user(self, user_id: int, fields: Dict[str, Any]) -> Dict[str, Any]: ...

    def create_session(self, user_id: int, token_hash: str, expires_at) -> None: ...

    def get_session_user(self, token_hash: str, now) -> Optional[Dict[str, Any]]: ...

    def delete_session(self, token_hash: str) -> None: ...

    def get_personal_calendar_id(self, user_id: int) -> Optional[int]: ...

    def create_event(self, fields: Dict[str, Any]) -> Dict[str, Any]: ...

    def get_event(self, event_id: int) -> Optional[Dict[str, Any]]: ...

    def list_events(self, calendar_id: int, start=None, end=None) -> List[Dict[str, Any]]: ...

    def update_event(self, event_id: int, fields: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_event(self, event_id: int) -> None: ...

    def list_tags(self, user_id: int) -> List[Dict[str, Any]]: ...

    def get_tag(self, user_id: int, tag_id: str) -> Optional[Dict[str, Any]]: ...

    def create_tag(self, user_id: int, tag: Dict[str, str]) -> Dict[str, Any]: ...

    def update_tag(self, user_id: int, tag_id: str, fields: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_tag(self, user_id: int, tag_id: str) -> None: ...


class MySQLRepository:
    """DiaryRepository on top of the shared mysql.connector connection."""

    def _commit(self):
        database.get_connection().commit()

    def _rollback(self):
        database.get_connection().rollback()

    def ping(self):
        cursor = database.get_cursor()
        cursor.execute("SELECT 1")
        return cursor.fetchone()[0] == 1

    # Users and sessions

    def create_user(self, email, password_hash, name, default_tags):
        """Create a user with its personal calendar, owner membership and default tags in one transaction"""
        cursor = database.get_cursor()
        try:
            cursor.execute(
                "INSERT INTO users (email, password_hash, name) VALUES (%s, %s, %s)",
                (email, password_hash, name),
            )
            user_id = cursor.lastrowid
            cursor.execute(
                "INSERT INTO calendars (type, name, owner_id) VALUES ('personal', 'My Calendar', %s)",
                (user_id,),
            )
            calendar_id = cursor.lastrowid
            cursor.execute(
                "INSERT INTO calendar_members (calendar_id, user_id, role) VALUES (%s, %s, 'owner')",
                (calendar_id, user_id),
            )
            for tag in default_tags:
                cursor.execute(
                    "INSERT INTO tags (id, user_id, name, color) VALUES (%s, %s, %s, %s)",
                    (tag["id"], user_id, tag["name"], tag["color"]),
                )
            self._commit()
        except Exception:
            self._rollback()
            raise
        return self.get_user(user_id)

    def get_user(self, user_id):
        cursor = database.get_cursor(dictionary=True)
        cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
        return cursor.fetchone()

    def get_user_by_email(self, email):
        cursor = database.get_cursor(dictionary=True)
        cursor.execute(f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE email = %s", (email,))
        return cursor.fetchone()

    def update_user(self, user_id, fields):
        self._update("users", "id = %s", (user_id,), fields, USER_FIELDS)
        return self.get_user(user_id)

    def create_session(self, user_id, token_hash, expires_at):
        cursor = database.get_cursor()
        cursor.execute(
            "INSERT INTO sessions (token_hash, user_id, expires_at) VALUES (%s, %s, %s)",
            (token_hash, user_id, expires_at),
        )
        self._commit()

    def get_session_user(self, token_hash, now):
        cursor = database.get_cursor(dictionary=True)
        cursor.execute(
            "SELECT u.id, u.email, u.name, u.utc_offset_minutes, u.created_at FROM sessions s "
            "JOIN users u ON u.id = s.user_id WHERE s.token_hash = %s AND s.expires_at > %s",
            (token_hash, now),
        )
        return cursor.fetchone()

    def delete_session(self, token_hash):
        cursor = database.get_cursor()
        cursor.execute("DELETE FROM sessions WHERE token_hash = %s", (token_hash,))
        self._commit()

    # Calendars and events

    def get_personal_calendar_id(self, user_id):
        cursor = database.get_cursor()
        cursor.execute(
            "SELECT id FROM calendars WHERE type = 'personal' AND owner_id = %s ORDER BY id LIMIT 1",
            (user_id,),
        )
        result = cursor.fetchone()
        return result[0] if result else None

    def create_event(self, fields):
        cursor = database.get_cursor()
        try:
            cursor.execute(
                """
                INSERT INTO events (calendar_id, title, start_at, end_at, memo, tag_id, rrule, created_by)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    fields["calendar_id"],
                    fields["title"],
                    fields["start_at"],
                    fields["end_at"],
                    fields.get("memo"),
                    fields.get("tag_id") or "t1",
                    fields.get("rrule"),
                    fields["created_by"],
                ),
            )
            event_id = cursor.lastrowid
            self._commit()
        except Exception:
            self._rollback()
            raise
        return self.get_event(event_id)

    def get_event(self, event_id):
        cursor = database.get_cursor(dictionary=True)
        cursor.execute(f"SELECT {EVENT_COLUMNS} FROM events WHERE id = %s", (event_id,))
        return cursor.fetchone()

    def list_events(self, calendar_id, start=None, end=None):
        """
        Events of a calendar ordered by start.

        With a window, one-off events overlapping it and every recurring series
        starting before its end are returned; the series still need expanding.
        """
        conds = ["calendar_id = %s"]
        params: List[Any] = [calendar_id]
        if start is not None and end is not None:
            conds.append(
                "((rrule IS NULL OR rrule = '') AND start_at <= %s AND end_at >= %s"
                " OR (rrule IS NOT NULL AND rrule <> '') AND start_at <= %s)"
            )
            params.extend([end, start, end])
        cursor = database.get_cursor(dictionary=True)
        cursor.execute(
            f"SELECT {EVENT_COLUMNS} FROM events WHERE {' AND '.join(conds)} ORDER BY start_at, id",
            tuple(params),
        )
        return cursor.fetchall()

    def update_event(self, event_id, fields):
        self._update("events", "id = %s", (event_id,), fields, EVENT_FIELDS)
        return self.get_event(event_id)

    def delete_event(self, event_id):
        cursor = database.get_cursor()
        try:
            cursor.execute("DELETE FROM events WHERE id = %s", (event_id,))
            self._commit()
        except Exception:
            self._rollback()
            raise

    # Tags

    def list_tags(self, user_id):
        cursor = database.get_cursor(dictionary=True)
        cursor.execute("SELECT id, name, color FROM tags WHERE user_id = %s ORDER BY created_at, id", (user_id,))
        return cursor.fetchall()

    def get_tag(self, user_id, tag_id):
        cursor = database.get_cursor(dictionary=True)
        cursor.execute("SELECT id, name, color FROM tags WHERE user_id = %s AND id = %s", (user_id, tag_id))
        return cursor.fetchone()

    def create_tag(self, user_id, tag):
        cursor = database.get_cursor()
        try:
            cursor.execute(
                "INSERT INTO tags (id, user_id, name, color) VALUES (%s, %s, %s, %s)",
                (tag["id"], user_id, tag["name"], tag["color"]),
            )
            self._commit()
        except Exception:
            self._rollback()
            raise
        return self.get_tag(user_id, tag["id"])

    def update_tag(self, user_id, tag_id, fields):
        self._update("tags", "user_id = %s AND id = %s", (user_id, tag_id), fields, TAG_FIELDS)
        return self.get_tag(user_id, tag_id)

    def delete_tag(self, user_id, tag_id):
        cursor = database.get_cursor()
        try:
            cursor.execute("DELETE FROM tags WHERE user_id = %s AND id = %s", (user_id, tag_id))
            self._commit()
        except Exception:
            self._rollback()
            raise

    def _update(self, table, where, where_params, fields, allowed):
        update_fields = []
        update_values = []
        for name in allowed:
            if name in fields:
                update_fields.append(f"{name} = %s")
                update_values.append(fields[name])
        if not update_fields:
            return

        cursor = database.get_cursor()
        try:
            cursor.execute(
                f"UPDATE {table} SET {', '.join(update_fields)} WHERE {where}",
                tuple(update_values) + tuple(where_params),
            )
            self._commit()
        except Exception:
            self._rollback()
            raise


_repository = MySQLRepository()

def get_repository():
    """FastAPI dependency returning the storage backend"""
    return _repository
