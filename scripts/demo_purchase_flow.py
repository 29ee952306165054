"""Demo: signup -> browse -> denied materials -> purchase -> materials -> refund.

Runs the whole entitlement lifecycle in-process with FastAPI TestClient.

Run with:
    python scripts/demo_purchase_flow.py
"""

from __future__ import annotations

import asyncio
import os

# Keep the demo fast and repeatable; must be set before coursegate imports.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("PROVIDER_LATENCY_SCALE", "0")

from fastapi.testclient import TestClient  # noqa: E402

from coursegate.main import app  # noqa: E402
from coursegate.models.user import User  # noqa: E402
from coursegate.repos.repositories import user_repo  # noqa: E402
from coursegate.services import auth_service  # noqa: E402
from coursegate.services.registry import payment_providers  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass-123"


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    client = TestClient(app)

    # ── Seed an admin and make the rail deterministic ───────────────
    asyncio.run(
        user_repo.add(
            User.new(
                name="Demo Admin",
                email=ADMIN_EMAIL,
                password_hash=auth_service.hash_password(ADMIN_PASSWORD),
                role="admin",
            )
        )
    )
    payment_providers["MTN"].success_rate = 1.0

    r = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    admin = _bearer(r.json()["data"]["access_token"])
    print(f"1. POST /auth/login (admin)         → {r.status_code}")

    # ── Step 2: admin creates a course and two materials ────────────
    r = client.post(
        "/v1/courses",
        headers=admin,
        json={
            "title": "Intro to APIs",
            "description": "HTTP from first principles",
            "price": "25.00",
            "duration": 12,
            "access_period": 4,
            "instructor": "Demo Instructor",
            "category": "Programming",
            "level": "Beginner",
        },
    )
    course_id = r.json()["data"]["id"]
    print(f"2. POST /v1/courses                 → {r.status_code}  id={course_id}")
    for order, (kind, content) in enumerate(
        [("PDF", "https://cdn.example.com/notes.pdf"), ("Link", "https://example.com")],
        start=1,
    ):
        client.post(
            f"/v1/materials/{course_id}",
            headers=admin,
            json={
                "title": f"Material {order}",
                "description": kind,
                "type": kind,
                "content": content,
                "order": order,
            },
        )

    # ── Step 3: learner signs up and is denied ──────────────────────
    r = client.post(
        "/auth/signup",
        json={"name": "Demo Learner", "email": "learner@example.com", "password": "learner-pass"},
    )
    learner = _bearer(r.json()["data"]["access_token"])
    r = client.get(f"/v1/materials/{course_id}", headers=learner)
    print(f"3. GET  /v1/materials (unpaid)      → {r.status_code}  {r.json()['error']['code']}")

    # ── Step 4: purchase ────────────────────────────────────────────
    r = client.post(
        "/v1/payments/process",
        headers=learner,
        json={"course_id": course_id, "payment_method": "MTN", "payment_details": {"phone": "670000000"}},
    )
    body = r.json()["data"]
    payment_id = body["payment"]["id"]
    print(
        f"4. POST /v1/payments/process        → {r.status_code}  "
        f"ref={body['payment']['payment_reference']} expires={body['registration']['access_expires_at']}"
    )

    r = client.get(f"/v1/materials/{course_id}", headers=learner)
    urls = [m["access_url"] for m in r.json()["data"]["materials"]]
    print(f"5. GET  /v1/materials (paid)        → {r.status_code}  {urls}")

    r = client.post(
        "/v1/payments/process",
        headers=learner,
        json={"course_id": course_id, "payment_method": "MTN"},
    )
    print(f"6. POST /v1/payments/process again  → {r.status_code}  {r.json()['error']['code']}")

    # ── Step 7: refund revokes access ───────────────────────────────
    r = client.post(f"/v1/payments/{payment_id}/refund", headers=admin)
    print(f"7. POST /v1/payments/refund         → {r.status_code}  status={r.json()['data']['status']}")
    r = client.get(f"/v1/courses/{course_id}/access", headers=learner)
    print(f"8. GET  /v1/courses/access          → {r.status_code}  {r.json()['data']['reason']}")

    r = client.get("/admin/analytics", headers=admin)
    print(f"9. GET  /admin/analytics            → {r.status_code}  {r.json()['data']['payments']}")


if __name__ == "__main__":
    main()
