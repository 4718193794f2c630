"""User account table."""

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from job_board.users.models import User

from .base import Base


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(255), default="")
    last_name: Mapped[str] = mapped_column(String(255), default="")
    middle_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)  # normalized
    phone: Mapped[str] = mapped_column(String(50), default="")
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)  # normalized
    password: Mapped[str] = mapped_column(String(255), nullable=False)  # plaintext, see User
    profile_photo_id: Mapped[int] = mapped_column(Integer, default=0)
    profile_photo_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    remote_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_record(self) -> User:
        return User(
            id=self.id,
            first_name=self.first_name or "",
            last_name=self.last_name or "",
            middle_name=self.middle_name,
            email=self.email,
            phone=self.phone or "",
            username=self.username,
            password=self.password,
            profile_photo_id=self.profile_photo_id or 0,
            profile_photo_url=self.profile_photo_url,
            remote_id=self.remote_id,
        )

    @classmethod
    def from_record(cls, user: User) -> "UserRow":
        return cls(
            id=user.id or None,
            first_name=user.first_name,
            last_name=user.last_name,
            middle_name=user.middle_name,
            email=user.email,
            phone=user.phone,
            username=user.username,
            password=user.password,
            profile_photo_id=user.profile_photo_id,
            profile_photo_url=user.profile_photo_url,
            remote_id=user.remote_id,
        )
