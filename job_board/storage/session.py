"""Signed-in user persisted in the local store."""

from typing import Optional

from .database import LocalDatabase

USER_ID_KEY = "session_user_id"
GUEST_KEY = "session_is_guest"


class SessionStore:
    def __init__(self, db: LocalDatabase):
        self.db = db

    def save_session(self, user_id: int):
        self.db.set_meta(USER_ID_KEY, str(user_id))
        self.db.set_meta(GUEST_KEY, "0")

    def save_guest_session(self):
        self.db.delete_meta(USER_ID_KEY)
        self.db.set_meta(GUEST_KEY, "1")

    def get_user_id(self) -> Optional[int]:
        value = self.db.get_meta(USER_ID_KEY)
        return int(value) if value is not None else None

    def is_guest(self) -> bool:
        return self.db.get_meta(GUEST_KEY) == "1"

    def is_logged_in(self) -> bool:
        return self.get_user_id() is not None or self.is_guest()

    def clear(self):
        self.db.delete_meta(USER_ID_KEY)
        self.db.delete_meta(GUEST_KEY)
