"""JSON auth endpoints (/auth/signup, /auth/login, /auth/me).

Signup and login both return {access_token, token_type, user} so a client
can keep the token in memory and call the protected routes straight away.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, status

from coursegate.api.dependencies import CurrentUser
from coursegate.api.schemas import (
    AuthOut,
    Envelope,
    LoginIn,
    ProfileOut,
    SignupIn,
    UserOut,
    ok,
)
from coursegate.core.errors import AuthenticationError
from coursegate.models.user import User
from coursegate.services import token_service
from coursegate.services.registry import users_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_out(user: User) -> AuthOut:
    token = token_service.create_access_token(sub=user.id, roles=[user.role])
    return AuthOut(
        access_token=token,
        user=UserOut(id=user.id, name=user.name, email=user.email, role=user.role),
    )


@router.post(
    "/signup", response_model=Envelope[AuthOut], status_code=status.HTTP_201_CREATED
)
async def signup(payload: SignupIn) -> dict:
    user = await users_service.signup(
        name=payload.name, email=payload.email, password=payload.password
    )
    return ok(_auth_out(user), "Account created")


@router.post("/login", response_model=Envelope[AuthOut])
async def login(payload: LoginIn) -> dict:
    user = await users_service.login(email=payload.email, password=payload.password)
    if user is None:
        logger.warning("Login failed  email=%s", payload.email.strip().lower())
        raise AuthenticationError("Invalid email or password", code="invalid_credentials")

    logger.info("Login succeeded  user_id=%s", user.id, extra={"user_id": user.id})
    return ok(_auth_out(user), "Logged in")


@router.get("/me", response_model=Envelope[ProfileOut])
async def me(principal: CurrentUser) -> dict:
    profile = await users_service.get_profile(principal.user_id)
    user = profile.user
    return ok(
        ProfileOut(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            registered_courses=profile.registered_course_ids,
        )
    )
