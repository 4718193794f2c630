"""Local durable store: engine, sessions, change feed and statistics."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from job_board.models import Base, JobRow, MessageRow, SyncState, UserRow, make_engine, make_session_factory

from .changes import ChangeFeed

logger = logging.getLogger("job_board.storage")


class LocalDatabase:
    """SQL database that is the durable source of truth for the app.

    Every operation is a single short transaction; no multi-statement
    transaction spans the steps of a dual-store write.
    """

    def __init__(self, database_url: str = "sqlite:///data/job_board.db"):
        self.database_url = database_url
        self.engine = make_engine(database_url)
        self.session_factory = make_session_factory(self.engine)
        self.changes = ChangeFeed()
        Base.metadata.create_all(self.engine)
        logger.debug("Local store ready at %s", database_url)

    @contextmanager
    def session(self, changed: Optional[str] = None) -> Iterator[Session]:
        """Yield a session that commits on success and publishes a change for ``changed``."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        if changed:
            self.changes.publish(changed)

    def get_meta(self, key: str) -> Optional[str]:
        with self.session() as s:
            row = s.get(SyncState, key)
            return row.value if row else None

    def set_meta(self, key: str, value: str):
        with self.session() as s:
            s.merge(SyncState(key=key, value=value))

    def delete_meta(self, key: str):
        with self.session() as s:
            row = s.get(SyncState, key)
            if row is not None:
                s.delete(row)

    def get_stats(self) -> dict:
        """Row counts per table."""
        stats = {}
        with self.session() as s:
            stats["users"] = s.scalar(select(func.count()).select_from(UserRow))
            stats["jobs"] = s.scalar(select(func.count()).select_from(JobRow))
            stats["messages"] = s.scalar(select(func.count()).select_from(MessageRow))
            rows = s.execute(
                select(JobRow.employer_id, func.count()).group_by(JobRow.employer_id)
            ).all()
            stats["jobs_by_employer"] = {employer: count for employer, count in rows}
        stats["last_message_check"] = self.get_meta("last_message_check_time")
        return stats

    def close(self):
        self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
