"""Job table: local durable copy of job listings."""

from sqlalchemy import BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from job_board.jobs.models import Job

from .base import Base


class JobRow(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_business_identity", "employer_id", "title", "created_at"),
    )

    # Keys come from the identity mapper; autoincrement only when none was assigned
    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    salary_from: Mapped[int | None] = mapped_column(Integer, nullable=True)
    salary_to: Mapped[int | None] = mapped_column(Integer, nullable=True)
    salary_currency: Mapped[str] = mapped_column(String(16), default="RUB")
    experience: Mapped[str] = mapped_column(String(100), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    city: Mapped[str] = mapped_column(String(255), default="")
    about_us: Mapped[str] = mapped_column(Text, default="")
    required_qualities: Mapped[str] = mapped_column(Text, default="")
    we_offer: Mapped[str] = mapped_column(Text, default="")
    key_skills: Mapped[str] = mapped_column(Text, default="")
    employer_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)  # epoch ms
    # Document id the row was mirrored from; NULL for rows keyed offline
    remote_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_record(self) -> Job:
        return Job(
            id=self.id,
            title=self.title,
            salary_from=self.salary_from,
            salary_to=self.salary_to,
            salary_currency=self.salary_currency or "RUB",
            experience=self.experience or "",
            description=self.description or "",
            city=self.city or "",
            about_us=self.about_us or "",
            required_qualities=self.required_qualities or "",
            we_offer=self.we_offer or "",
            key_skills=self.key_skills or "",
            employer_id=self.employer_id,
            created_at=self.created_at,
            remote_id=self.remote_id,
        )

    @classmethod
    def from_record(cls, job: Job) -> "JobRow":
        return cls(
            id=job.id or None,
            title=job.title,
            salary_from=job.salary_from,
            salary_to=job.salary_to,
            salary_currency=job.salary_currency,
            experience=job.experience,
            description=job.description,
            city=job.city,
            about_us=job.about_us,
            required_qualities=job.required_qualities,
            we_offer=job.we_offer,
            key_skills=job.key_skills,
            employer_id=job.employer_id,
            created_at=job.created_at,
            remote_id=job.remote_id,
        )
