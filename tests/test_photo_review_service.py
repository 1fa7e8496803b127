"""Tests for photo review, archive and delete actions."""

import asyncio
from uuid import uuid4

import pytest

from photo_live.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from photo_live.domain.models import Requester
from photo_live.domain.photos import PhotoRecord, PhotoStatus
from tests.conftest import make_photo, make_session


def _stored_photo(  # type: ignore[no-untyped-def]
    services, owner, status=PhotoStatus.PENDING
) -> PhotoRecord:
    session = services.session_repository.add(
        make_session(owner.id, review_mode=True)
    )
    photo: PhotoRecord = services.counter_service.record_create(
        make_photo(session.id, status)
    )
    for path in photo.versions.values():
        services.storage.objects[path] = b"jpeg"
    return photo


def _counters(services, photo):  # type: ignore[no-untyped-def]
    return services.session_repository.sessions[photo.session_id].counters


def test_approve_publishes_and_records_review(services, owner) -> None:
    photo = _stored_photo(services, owner)

    approved = asyncio.run(
        services.photo_service.approve(owner, photo.id, notes="Lovely light")
    )

    assert approved.status == PhotoStatus.PUBLISHED
    assert approved.reviewed_by == owner.id
    assert approved.review_notes == "Lovely light"
    assert approved.reviewed_at is not None
    assert approved.published_at is not None
    counters = _counters(services, photo)
    assert counters.pending_photos == 0
    assert counters.published_photos == 1
    assert counters.total_photos == 1
    event = services.publisher.events[-1]
    assert event.event_type == "photo_status_changed"
    assert event.status == PhotoStatus.PUBLISHED


def test_reject_moves_pending_to_rejected(services, owner) -> None:
    photo = _stored_photo(services, owner)

    rejected = asyncio.run(services.photo_service.reject(owner, photo.id, "Blurry"))

    assert rejected.status == PhotoStatus.REJECTED
    assert rejected.published_at is None
    assert _counters(services, photo).rejected_photos == 1


def test_repeated_approval_is_idempotent(services, owner) -> None:
    photo = _stored_photo(services, owner)

    async def scenario() -> tuple[PhotoRecord, PhotoRecord]:
        first = await services.photo_service.approve(owner, photo.id)
        second = await services.photo_service.approve(owner, photo.id)
        return first, second

    first, second = asyncio.run(scenario())

    assert first == second
    counters = _counters(services, photo)
    assert counters.published_photos == 1
    assert counters.total_photos == 1
    assert len(services.publisher.events) == 1


def test_archive_published_photo(services, owner) -> None:
    photo = _stored_photo(services, owner, PhotoStatus.PUBLISHED)

    archived = asyncio.run(services.photo_service.archive(owner, photo.id))

    assert archived.status == PhotoStatus.ARCHIVED
    assert archived.reviewed_by is None
    counters = _counters(services, photo)
    assert counters.archived_photos == 1
    assert counters.published_photos == 0


def test_archiving_pending_photo_requires_review_first(services, owner) -> None:
    photo = _stored_photo(services, owner)

    with pytest.raises(ValidationError):
        asyncio.run(services.photo_service.archive(owner, photo.id))

    assert _counters(services, photo).pending_photos == 1


def test_archived_photo_cannot_be_republished(services, owner) -> None:
    photo = _stored_photo(services, owner, PhotoStatus.ARCHIVED)

    with pytest.raises(ConflictError):
        asyncio.run(services.photo_service.approve(owner, photo.id))


def test_only_owner_or_admin_can_review(services, owner, admin) -> None:
    photo = _stored_photo(services, owner)

    with pytest.raises(NotFoundError):
        asyncio.run(services.photo_service.approve(Requester(id=uuid4()), photo.id))
    with pytest.raises(AuthorizationError):
        asyncio.run(services.photo_service.approve(None, photo.id))

    approved = asyncio.run(services.photo_service.approve(admin, photo.id))
    assert approved.reviewed_by == admin.id


def test_unknown_photo_is_not_found(services, owner) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(services.photo_service.approve(owner, uuid4()))


def test_delete_removes_row_variants_and_count(services, owner) -> None:
    photo = _stored_photo(services, owner, PhotoStatus.PUBLISHED)

    asyncio.run(services.photo_service.delete_photo(owner, photo.id))

    assert services.ledger.get_photo(photo.id) is None
    assert services.storage.objects == {}
    assert sorted(services.storage.deleted) == sorted(photo.versions.values())
    counters = _counters(services, photo)
    assert counters.total_photos == 0
    assert counters.published_photos == 0
    assert services.publisher.events[-1].event_type == "photo_deleted"

    with pytest.raises(NotFoundError):
        asyncio.run(services.photo_service.delete_photo(owner, photo.id))


def test_publish_failure_does_not_undo_transition(services, owner) -> None:
    photo = _stored_photo(services, owner)
    services.publisher.fail = True

    approved = asyncio.run(services.photo_service.approve(owner, photo.id))

    assert approved.status == PhotoStatus.PUBLISHED
    assert services.ledger.get_photo(photo.id).status == PhotoStatus.PUBLISHED
