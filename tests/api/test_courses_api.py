from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import auth, create_course

_VALID = {
    "title": "Async Python",
    "description": "Event loops and friends",
    "price": "49.99",
    "duration": 6,
    "access_period": 2,
    "instructor": "Grace",
    "category": "Programming",
    "level": "Intermediate",
}


def test_list_courses_is_public(client: TestClient) -> None:
    create_course(title="One")
    create_course(title="Two")
    resp = client.get("/v1/courses")
    assert resp.status_code == 200
    assert sorted(c["title"] for c in resp.json()["data"]) == ["One", "Two"]


def test_get_course_serializes_price_as_string(client: TestClient) -> None:
    course = create_course()
    data = client.get(f"/v1/courses/{course.id}").json()["data"]
    assert data["price"] == "25.00"
    assert data["access_period"] == 4


def test_get_missing_course(client: TestClient) -> None:
    resp = client.get("/v1/courses/does-not-exist")
    assert resp.status_code == 404
    assert resp.json() == {
        "success": False,
        "error": {
            "code": "course_not_found",
            "message": "Course not found",
            "details": {},
        },
    }


def test_admin_creates_course(client: TestClient, admin_token: str) -> None:
    resp = client.post("/v1/courses", json=_VALID, headers=auth(admin_token))
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Course created"
    assert body["data"]["price"] == "49.99"

    listed = client.get("/v1/courses").json()["data"]
    assert [c["id"] for c in listed] == [body["data"]["id"]]


def test_create_course_missing_fields(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/v1/courses", json={"title": "Only a title"}, headers=auth(admin_token)
    )
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "validation_error"
    missing = {e["loc"][-1] for e in error["details"]["errors"] if e["type"] == "missing"}
    assert missing == {
        "description",
        "price",
        "duration",
        "access_period",
        "instructor",
        "category",
        "level",
    }


def test_create_course_rejects_unknown_category(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/v1/courses", json={**_VALID, "category": "Astrology"}, headers=auth(admin_token)
    )
    assert resp.status_code == 422
    (err,) = resp.json()["error"]["details"]["errors"]
    assert err["loc"] == ["body", "category"]
    assert "Invalid category" in err["msg"]


def test_create_course_rejects_non_object_body(client: TestClient, admin_token: str) -> None:
    resp = client.post("/v1/courses", json=["not", "an", "object"], headers=auth(admin_token))
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation_error"


def test_admin_updates_course(client: TestClient, admin_token: str) -> None:
    course = create_course()
    resp = client.put(
        f"/v1/courses/{course.id}",
        json={"price": 30, "level": "Advanced"},
        headers=auth(admin_token),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["price"] == "30"
    assert data["level"] == "Advanced"
    assert data["title"] == course.title


def test_update_rejects_null_field(client: TestClient, admin_token: str) -> None:
    course = create_course()
    resp = client.put(
        f"/v1/courses/{course.id}", json={"title": None}, headers=auth(admin_token)
    )
    assert resp.status_code == 422
    assert "cannot be null" in resp.json()["error"]["details"]["errors"][0]["msg"]
    assert client.get(f"/v1/courses/{course.id}").json()["data"]["title"] == course.title


def test_update_missing_course(client: TestClient, admin_token: str) -> None:
    resp = client.put("/v1/courses/nope", json={"price": 1}, headers=auth(admin_token))
    assert resp.status_code == 404


def test_admin_deletes_course(client: TestClient, admin_token: str) -> None:
    course = create_course()
    resp = client.delete(f"/v1/courses/{course.id}", headers=auth(admin_token))
    assert resp.status_code == 200
    assert resp.json()["data"] is None
    assert client.get(f"/v1/courses/{course.id}").status_code == 404
    assert client.delete(f"/v1/courses/{course.id}", headers=auth(admin_token)).status_code == 404


def test_access_check_reports_reason_without_raising(client: TestClient, token: str) -> None:
    course = create_course()
    resp = client.get(f"/v1/courses/{course.id}/access", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["data"] == {
        "course_id": course.id,
        "allowed": False,
        "reason": "not_registered",
        "access_expires_at": None,
    }


def test_access_check_for_missing_course(client: TestClient, token: str) -> None:
    resp = client.get("/v1/courses/ghost/access", headers=auth(token))
    assert resp.json()["data"]["reason"] == "course_not_found"


def test_create_course_rejects_negative_price(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/v1/courses", json={**_VALID, "price": "-5"}, headers=auth(admin_token)
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["details"]["errors"][0]["loc"] == ["body", "price"]
    assert client.get("/v1/courses").json()["data"] == []


def test_create_course_rejects_unknown_field(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/v1/courses", json={**_VALID, "discount": 10}, headers=auth(admin_token)
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["details"]["errors"][0]["type"] == "extra_forbidden"
