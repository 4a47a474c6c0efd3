from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UserContext:
    """The signed-in user, passed explicitly to every record-store call."""

    user_id: int
    email: str = ""

    @classmethod
    def for_user(cls, user) -> "UserContext":
        return cls(user_id=user.id, email=user.email)
