"""Local job queries."""

from typing import Optional

from sqlalchemy import delete, func, select

from job_board.jobs.models import Job
from job_board.models import JobRow

from .database import LocalDatabase

TABLE = "jobs"


class JobStore:
    table = TABLE

    def __init__(self, db: LocalDatabase):
        self.db = db

    def get(self, job_id: int) -> Optional[Job]:
        with self.db.session() as s:
            row = s.get(JobRow, job_id)
            return row.to_record() if row else None

    def list_all(self) -> list[Job]:
        stmt = select(JobRow).order_by(JobRow.created_at.desc(), JobRow.id)
        return self._fetch(stmt)

    def list_by_employer(self, employer_id: int) -> list[Job]:
        stmt = (
            select(JobRow)
            .where(JobRow.employer_id == employer_id)
            .order_by(JobRow.created_at.desc(), JobRow.id)
        )
        return self._fetch(stmt)

    def search_by_title(self, query: str) -> list[Job]:
        stmt = (
            select(JobRow)
            .where(JobRow.title.contains(query, autoescape=True))
            .order_by(JobRow.created_at.desc(), JobRow.id)
        )
        return self._fetch(stmt)

    def filter(
        self,
        query: Optional[str] = None,
        experience: Optional[str] = None,
        city: Optional[str] = None,
        min_salary: Optional[int] = None,
    ) -> list[Job]:
        stmt = select(JobRow)
        if query:
            stmt = stmt.where(JobRow.title.contains(query, autoescape=True))
        if experience is not None:
            stmt = stmt.where(JobRow.experience == experience)
        if city is not None:
            stmt = stmt.where(JobRow.city.contains(city, autoescape=True))
        if min_salary is not None:
            stmt = stmt.where(JobRow.salary_from >= min_salary)
        stmt = stmt.order_by(JobRow.created_at.desc(), JobRow.id)
        return self._fetch(stmt)

    def filter_by_experience(self, experience: str) -> list[Job]:
        stmt = (
            select(JobRow)
            .where(JobRow.experience.contains(experience, autoescape=True))
            .order_by(JobRow.created_at.desc(), JobRow.id)
        )
        return self._fetch(stmt)

    def find_by_business_key(self, employer_id: int, title: str, created_at: int) -> list[Job]:
        stmt = select(JobRow).where(
            JobRow.employer_id == employer_id,
            JobRow.title == title,
            JobRow.created_at == created_at,
        ).order_by(JobRow.id)
        return self._fetch(stmt)

    def upsert(self, job: Job) -> int:
        """Insert or replace by key; returns the stored key (assigned when ``job.id`` is 0)."""
        with self.db.session(changed=TABLE) as s:
            row = s.merge(JobRow.from_record(job))
            s.flush()
            return row.id

    def update(self, job: Job) -> bool:
        """Replace an existing row; does nothing when the key is unknown."""
        with self.db.session(changed=TABLE) as s:
            if s.get(JobRow, job.id) is None:
                return False
            s.merge(JobRow.from_record(job))
            return True

    def delete(self, job_id: int) -> bool:
        with self.db.session(changed=TABLE) as s:
            result = s.execute(
                delete(JobRow).where(JobRow.id == job_id).execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def delete_all_duplicates(self) -> int:
        """Keep one row per (employer, title, created_at); returns rows removed.

        The survivor is the row mirrored from a remote document when there is
        one, then the lowest key, matching the in-memory duplicate resolver.
        """
        position = (
            func.row_number()
            .over(
                partition_by=(JobRow.employer_id, JobRow.title, JobRow.created_at),
                order_by=(JobRow.remote_id.is_(None), JobRow.id),
            )
            .label("position")
        )
        ranked = select(JobRow.id, position).subquery()
        losers = select(ranked.c.id).where(ranked.c.position > 1)
        with self.db.session() as s:
            stmt = delete(JobRow).where(JobRow.id.in_(losers)).execution_options(synchronize_session=False)
            removed = s.execute(stmt).rowcount
        if removed:
            self.db.changes.publish(TABLE)
        return removed

    def _fetch(self, stmt) -> list[Job]:
        with self.db.session() as s:
            return [row.to_record() for row in s.scalars(stmt)]
