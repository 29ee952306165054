from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from coursegate.core.errors import ConflictError, NotFoundError, ValidationError
from coursegate.models.user import User
from coursegate.repos.registration_repo import RegistrationRepo
from coursegate.repos.user_repo import UserRepo
from coursegate.services import auth_service

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True, slots=True)
class UserProfile:
    user: User
    registered_course_ids: list[str]


class UsersService:
    def __init__(self, *, users: UserRepo, registrations: RegistrationRepo) -> None:
        self._users = users
        self._registrations = registrations

    async def signup(self, *, name: str, email: str, password: str) -> User:
        email = email.strip().lower()
        name = name.strip()

        if not _EMAIL_RE.match(email):
            raise ValidationError("Invalid email address", details={"field": "email"})
        if not name:
            raise ValidationError("Name is required", details={"field": "name"})
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                details={"field": "password"},
            )

        if await self._users.get_by_email(email) is not None:
            logger.warning("Rejected duplicate signup email=%s", email)
            raise ConflictError("A user with this email already exists", code="email_taken")

        user = User.new(
            name=name,
            email=email,
            password_hash=auth_service.hash_password(password),
        )
        try:
            user = await self._users.add(user)
        except ValueError:
            raise ConflictError(
                "A user with this email already exists", code="email_taken"
            ) from None

        logger.info("User signed up  user_id=%s email=%s", user.id, email)
        return user

    async def login(self, *, email: str, password: str) -> User | None:
        return await auth_service.authenticate_user(
            self._users, email.strip().lower(), password
        )

    async def get_profile(self, user_id: str) -> UserProfile:
        """The user plus the courses they hold a registration for.

        The course list is read from registrations every time rather than
        stored on the user, so it cannot drift from the entitlement records.
        """
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", code="user_not_found")
        registrations = await self._registrations.list_by_user(user_id)
        return UserProfile(
            user=user,
            registered_course_ids=[r.course_id for r in registrations],
        )
