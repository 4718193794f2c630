"""Job listing record."""

from dataclasses import dataclass, field
from typing import Optional

from job_board.sync.identity import map_offline_key
from job_board.utils.clock import now_millis

DEFAULT_CURRENCY = "RUB"


@dataclass
class Job:
    """A job posted by an employer.

    ``(employer_id, title, created_at)`` is the business identity: duplicate
    detection and remote document lookup key on it, never on ``id``.
    """

    title: str
    employer_id: int
    salary_from: Optional[int] = None
    salary_to: Optional[int] = None
    salary_currency: str = DEFAULT_CURRENCY
    experience: str = ""
    description: str = ""
    city: str = ""
    about_us: str = ""
    required_qualities: str = ""
    we_offer: str = ""
    key_skills: str = ""
    created_at: int = field(default_factory=now_millis)
    id: int = 0
    remote_id: Optional[str] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        self.validate()

    def validate(self):
        if (
            self.salary_from is not None
            and self.salary_to is not None
            and self.salary_from > self.salary_to
        ):
            raise ValueError(
                f"salary_from ({self.salary_from}) must not exceed salary_to ({self.salary_to})"
            )

    @property
    def business_key(self) -> tuple[int, str, int]:
        return (self.employer_id, self.title, self.created_at)

    def offline_key(self) -> int:
        return map_offline_key(self.employer_id, self.title, self.created_at)

    def salary_display(self) -> str:
        """Human-readable salary range, empty when no bound is set."""
        if self.salary_from is not None and self.salary_to is not None:
            return f"{self.salary_from} - {self.salary_to} {self.salary_currency}"
        if self.salary_from is not None:
            return f"from {self.salary_from} {self.salary_currency}"
        if self.salary_to is not None:
            return f"up to {self.salary_to} {self.salary_currency}"
        return ""

    def to_document(self) -> dict:
        """Remote document body (field names shared with the mobile clients)."""
        return {
            "title": self.title,
            "salaryFrom": self.salary_from,
            "salaryTo": self.salary_to,
            "salaryCurrency": self.salary_currency,
            "experience": self.experience,
            "resume": self.description,
            "city": self.city,
            "aboutUs": self.about_us,
            "requiredQualities": self.required_qualities,
            "weOffer": self.we_offer,
            "keySkills": self.key_skills,
            "employerId": str(self.employer_id),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, data: dict, id: int = 0, remote_id: Optional[str] = None) -> "Job":
        return cls(
            id=id,
            remote_id=remote_id,
            title=data.get("title") or "",
            salary_from=_salary(data.get("salaryFrom")),
            salary_to=_salary(data.get("salaryTo")),
            salary_currency=data.get("salaryCurrency") or DEFAULT_CURRENCY,
            experience=data.get("experience") or "",
            description=data.get("resume") or "",
            city=data.get("city") or "",
            about_us=data.get("aboutUs") or "",
            required_qualities=data.get("requiredQualities") or "",
            we_offer=data.get("weOffer") or "",
            key_skills=data.get("keySkills") or "",
            employer_id=_int_or_zero(data.get("employerId")),
            created_at=_int_or_zero(data.get("createdAt")) or now_millis(),
        )


def _optional_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _salary(value) -> Optional[int]:
    # older clients wrote 0 for "no bound"
    return _optional_int(value) or None


def _int_or_zero(value) -> int:
    return _optional_int(value) or 0
