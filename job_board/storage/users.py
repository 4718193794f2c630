"""Local user queries."""

from typing import Optional

from sqlalchemy import delete, func, or_, select, update

from job_board.models import UserRow
from job_board.sync.identity import normalize
from job_board.users.models import User

from .database import LocalDatabase

TABLE = "users"


class UserStore:
    table = TABLE

    def __init__(self, db: LocalDatabase):
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        with self.db.session() as s:
            row = s.get(UserRow, user_id)
            return row.to_record() if row else None

    def by_email(self, email: str) -> Optional[User]:
        return self._first(select(UserRow).where(UserRow.email == normalize(email)))

    def by_username(self, username: str) -> Optional[User]:
        return self._first(select(UserRow).where(UserRow.username == normalize(username)))

    def by_credentials(self, email: str, password: str) -> Optional[User]:
        return self._first(
            select(UserRow).where(UserRow.email == normalize(email), UserRow.password == password)
        )

    def list_all(self) -> list[User]:
        return self._fetch(select(UserRow).order_by(UserRow.username))

    def search(self, query: str, limit: int = 20) -> list[User]:
        """Case-insensitive substring match on username, first, last and full name."""
        pattern = f"%{query.strip('%').lower()}%"
        full_name = func.lower(UserRow.first_name + " " + UserRow.last_name)
        stmt = (
            select(UserRow)
            .where(or_(
                func.lower(UserRow.username).like(pattern),
                func.lower(UserRow.first_name).like(pattern),
                func.lower(UserRow.last_name).like(pattern),
                full_name.like(pattern),
            ))
            .order_by(UserRow.username)
            .limit(limit)
        )
        return self._fetch(stmt)

    def conflicting(self, user: User) -> list[User]:
        """Rows sharing the user's email or username."""
        stmt = select(UserRow).where(
            or_(UserRow.email == user.email, UserRow.username == user.username)
        ).order_by(UserRow.id)
        return self._fetch(stmt)

    def upsert(self, user: User) -> int:
        """Insert or replace by key.

        Rows under other keys that hold the same email or username are removed
        first, since both columns are unique.
        """
        with self.db.session(changed=TABLE) as s:
            stale = s.scalars(
                select(UserRow.id).where(
                    or_(UserRow.email == user.email, UserRow.username == user.username),
                    UserRow.id != (user.id or 0),
                )
            ).all()
            if stale:
                s.execute(
                    delete(UserRow).where(UserRow.id.in_(stale)).execution_options(synchronize_session=False)
                )
            row = s.merge(UserRow.from_record(user))
            s.flush()
            return row.id

    def set_photo_id(self, user_id: int, photo_id: int) -> bool:
        return self._update(user_id, profile_photo_id=photo_id)

    def set_photo_url(self, user_id: int, photo_url: Optional[str]) -> bool:
        return self._update(user_id, profile_photo_url=photo_url)

    def delete(self, user_id: int) -> bool:
        """Only used by duplicate cleanup; accounts are otherwise never deleted."""
        with self.db.session(changed=TABLE) as s:
            result = s.execute(
                delete(UserRow).where(UserRow.id == user_id).execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def _update(self, user_id: int, **values) -> bool:
        with self.db.session(changed=TABLE) as s:
            result = s.execute(
                update(UserRow).where(UserRow.id == user_id).values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def _first(self, stmt) -> Optional[User]:
        with self.db.session() as s:
            row = s.scalars(stmt.limit(1)).first()
            return row.to_record() if row else None

    def _fetch(self, stmt) -> list[User]:
        with self.db.session() as s:
            return [row.to_record() for row in s.scalars(stmt)]
