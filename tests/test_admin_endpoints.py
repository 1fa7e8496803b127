"""Tests for admin endpoints."""

from dataclasses import replace
from datetime import UTC, datetime
from uuid import uuid4

from fastapi.testclient import TestClient

from photo_live.api.app import create_app
from photo_live.domain.access import AccessAttempt, AccessReason
from photo_live.domain.photos import PhotoStatus
from photo_live.domain.sessions import SessionCounters
from tests.conftest import make_photo, make_session

ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


def test_admin_requires_token(container) -> None:
    client = TestClient(create_app(container))

    assert client.get("/admin/health").status_code == 401
    assert (
        client.get("/admin/health", headers={"X-Admin-Token": "wrong"}).status_code
        == 401
    )
    assert client.get("/admin/health", headers=ADMIN_HEADERS).json() == {
        "status": "ok"
    }


def test_admin_reconcile_all(container, services) -> None:
    client = TestClient(create_app(container))
    session = services.session_repository.add(make_session(uuid4()))
    services.counter_service.record_create(make_photo(session.id))
    services.counter_service.record_create(make_photo(session.id, PhotoStatus.PENDING))
    services.session_repository.add(
        replace(
            services.session_repository.sessions[session.id],
            counters=SessionCounters(total_photos=9, rejected_photos=9),
        )
    )

    response = client.post("/admin/reconcile", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    counters = response.json()["sessions"][str(session.id)]
    assert counters["total_photos"] == 2
    assert counters["published_photos"] == 1
    assert counters["pending_photos"] == 1
    assert counters["rejected_photos"] == 0


def test_admin_reconcile_single_session(container, services) -> None:
    client = TestClient(create_app(container))
    session = services.session_repository.add(make_session(uuid4()))
    services.counter_service.record_create(make_photo(session.id))

    response = client.post(
        f"/admin/sessions/{session.id}/reconcile", headers=ADMIN_HEADERS
    )
    missing = client.post(f"/admin/sessions/{uuid4()}/reconcile", headers=ADMIN_HEADERS)

    assert response.json() == {
        "session_id": str(session.id),
        "counters": {
            "total_photos": 1,
            "pending_photos": 0,
            "published_photos": 1,
            "rejected_photos": 0,
            "archived_photos": 0,
            "total_views": 0,
            "unique_viewers": 0,
        },
    }
    assert missing.status_code == 500
    assert missing.json()["error"] == "counter_consistency"


def test_admin_access_log(container, services) -> None:
    client = TestClient(create_app(container))
    session_id = uuid4()
    for code, granted in (("nope", False), ("WEDDING2024", True)):
        services.access_log.attempts.append(
            AccessAttempt(
                session_id=session_id,
                ip_address="203.0.113.7",
                user_agent="Safari",
                supplied_code=code,
                granted=granted,
                reason=AccessReason.ACCESS_CODE if granted else AccessReason.NO_MATCH,
                client_type="viewer",
                created_at=datetime(2024, 6, 1, tzinfo=UTC),
            )
        )

    response = client.get(
        f"/admin/sessions/{session_id}/access-log?limit=1", headers=ADMIN_HEADERS
    )

    assert response.status_code == 200
    attempts = response.json()["attempts"]
    assert len(attempts) == 1
    assert attempts[0]["access_code_used"] == "WEDDING2024"
    assert attempts[0]["granted"] is True
    assert attempts[0]["reason"] == "access_code"
