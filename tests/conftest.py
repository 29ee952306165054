from __future__ import annotations

import asyncio
import logging
import os
from datetime import UTC, datetime
from decimal import Decimal

# Settings are read once at import time; pin the test environment first.
os.environ["APP_ENV"] = "test"
os.environ["PROVIDER_LATENCY_SCALE"] = "0"
for _name in ("DATABASE_URL", "REDIS_URL", "DATA_DIR", "COURSE_CATEGORIES"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from coursegate.main import app  # noqa: E402
from coursegate.models.course import Course  # noqa: E402
from coursegate.models.material import Material  # noqa: E402
from coursegate.models.user import User  # noqa: E402
from coursegate.repos.document_store import InMemoryDocumentStore  # noqa: E402
from coursegate.repos.repositories import (  # noqa: E402
    course_repo,
    material_repo,
    user_repo,
)
from coursegate.repos.store import document_store  # noqa: E402
from coursegate.services import token_service  # noqa: E402
from coursegate.services.registry import payment_providers  # noqa: E402

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_document_store() -> None:
    """Every test starts with empty collections."""
    assert isinstance(document_store, InMemoryDocumentStore)
    document_store._collections.clear()


@pytest.fixture(autouse=True)
def reset_provider_rates():
    """Tests may pin success rates; restore the configured ones afterwards."""
    saved = {method: p.success_rate for method, p in payment_providers.items()}
    yield
    for method, rate in saved.items():
        payment_providers[method].success_rate = rate


@pytest.fixture(autouse=True)
def restore_logging_config():
    """setup_logging() mutates global logger levels/handlers; undo it after each test."""
    root = logging.getLogger()
    saved_root = (root.level, list(root.handlers))
    saved_levels = {
        name: logger.level
        for name, logger in logging.Logger.manager.loggerDict.items()
        if isinstance(logger, logging.Logger)
    }
    yield
    root.setLevel(saved_root[0])
    root.handlers[:] = saved_root[1]
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger):
            logger.setLevel(saved_levels.get(name, logging.NOTSET))


@pytest.fixture
def providers_always_succeed() -> None:
    for provider in payment_providers.values():
        provider.success_rate = 1.0


@pytest.fixture
def providers_always_decline() -> None:
    for provider in payment_providers.values():
        provider.success_rate = 0.0


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


@pytest.fixture
def token() -> str:
    """Token with default role (user)."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(username="test-admin", roles=["admin"])


def auth(token: str | None) -> dict[str, str]:
    if token is None:
        return {}
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Data helpers (synchronous wrappers over the async repositories)
# ---------------------------------------------------------------------------


def create_user(
    email: str = "learner@example.com", *, role: str = "user", name: str = "Learner"
) -> User:
    user = User.new(name=name, email=email, password_hash="not-a-real-hash", role=role)
    return asyncio.run(user_repo.add(user))


def create_course(**overrides) -> Course:
    fields = dict(
        title="Intro to APIs",
        description="HTTP from first principles",
        price=Decimal("25.00"),
        duration=12,
        access_period=4,
        instructor="Jane Doe",
        category="Programming",
        level="Beginner",
    )
    fields.update(overrides)
    return asyncio.run(course_repo.add(Course.new(**fields)))


def create_material(course_id: str, **overrides) -> Material:
    fields = dict(
        title="Lecture notes",
        description="Week 1",
        type="PDF",
        content="https://cdn.example.com/notes.pdf",
        order=0,
        is_published=True,
    )
    fields.update(overrides)
    return asyncio.run(material_repo.add(Material.new(course_id=course_id, **fields)))
