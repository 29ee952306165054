from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

USER_ROLES: tuple[str, ...] = ("user", "admin")


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: str
    email: str
    password_hash: str
    role: str = "user"  # user|admin
    created_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @staticmethod
    def new(*, name: str, email: str, password_hash: str, role: str = "user") -> User:
        return User(
            id=str(uuid4()),
            name=name,
            email=email,
            password_hash=password_hash,
            role=role,
        )
