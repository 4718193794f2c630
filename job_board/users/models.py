"""User account record."""

from dataclasses import dataclass, field
from typing import Optional, Union

from job_board.sync.identity import map_offline_key, normalize

MIN_PHOTO_ID = 0
MAX_PHOTO_ID = 6


@dataclass
class User:
    """A registered user.

    Email and username are unique case-insensitively; both are stored in
    normalized (trimmed, lowercased) form.

    NOTE: ``password`` is kept and compared in plain text, matching the data
    already stored by existing clients. Hashing it would break login against
    those records.
    """

    first_name: str
    last_name: str
    email: str
    phone: str
    username: str
    password: str
    middle_name: Optional[str] = None
    profile_photo_id: int = 0
    profile_photo_url: Optional[str] = None
    id: int = 0
    remote_id: Optional[str] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        self.email = normalize(self.email)
        self.username = normalize(self.username)
        validate_photo_id(self.profile_photo_id)

    @property
    def business_key(self) -> str:
        return self.email

    def offline_key(self) -> int:
        return map_offline_key(self.email, self.username)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def photo(self) -> Union[str, int]:
        """Photo to display: an uploaded image URL wins over the built-in selector."""
        if self.profile_photo_url:
            return self.profile_photo_url
        return self.profile_photo_id

    def to_document(self) -> dict:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "middleName": self.middle_name or "",
            "email": self.email,
            "phone": self.phone,
            "username": self.username,
            "password": self.password,
            "profilePhotoId": self.profile_photo_id,
            "profilePhotoUrl": self.profile_photo_url or "",
        }

    @classmethod
    def from_document(cls, data: dict, id: int = 0, remote_id: Optional[str] = None) -> "User":
        photo_id = data.get("profilePhotoId") or 0
        try:
            photo_id = int(photo_id)
        except (TypeError, ValueError):
            photo_id = 0
        if not MIN_PHOTO_ID <= photo_id <= MAX_PHOTO_ID:
            photo_id = 0
        return cls(
            id=id,
            remote_id=remote_id,
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            middle_name=data.get("middleName") or None,
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            username=data.get("username") or "",
            password=data.get("password") or "",
            profile_photo_id=photo_id,
            profile_photo_url=data.get("profilePhotoUrl") or None,
        )


def validate_photo_id(photo_id: int):
    if not MIN_PHOTO_ID <= photo_id <= MAX_PHOTO_ID:
        raise ValueError(f"profile_photo_id must be between {MIN_PHOTO_ID} and {MAX_PHOTO_ID}, got {photo_id}")
