"""Tests for the pure access decision."""

from dataclasses import replace
from uuid import uuid4

import pytest

from photo_live.domain.access import AccessReason, client_type, decide
from photo_live.domain.errors import MalformedRecordError
from photo_live.domain.models import Requester
from photo_live.domain.sessions import SessionStatus
from tests.conftest import make_session


def test_owner_is_granted_without_logging() -> None:
    owner = Requester(id=uuid4())
    session = make_session(owner.id, access_code="WEDDING2024")

    decision = decide(owner, session, None)

    assert decision.granted
    assert decision.reason == AccessReason.OWNER
    assert not decision.should_log


def test_admin_is_granted_even_when_session_ended() -> None:
    admin = Requester(id=uuid4(), role="admin")
    session = make_session(uuid4(), status=SessionStatus.ENDED)

    decision = decide(admin, session, None)

    assert decision.granted
    assert decision.reason == AccessReason.ADMIN
    assert not decision.should_log


def test_ended_private_session_denies_without_attempt_row() -> None:
    session = make_session(
        uuid4(), access_code="WEDDING2024", status=SessionStatus.ENDED
    )

    decision = decide(None, session, "WEDDING2024")

    assert not decision.granted
    assert decision.reason == AccessReason.ENDED
    assert not decision.should_log


def test_public_session_is_open_to_anyone_with_any_code() -> None:
    session = make_session(uuid4(), is_public=True)

    for code in (None, "", "WRONG", "WEDDING2024"):
        decision = decide(None, session, code)
        assert decision.granted
        assert decision.reason == AccessReason.PUBLIC
        assert not decision.should_log


def test_ended_public_session_stays_open() -> None:
    session = make_session(uuid4(), is_public=True, status=SessionStatus.ENDED)

    assert decide(None, session, None).granted


def test_matching_code_is_granted_and_logged() -> None:
    session = make_session(uuid4(), access_code="WEDDING2024")

    decision = decide(None, session, "WEDDING2024")

    assert decision.granted
    assert decision.reason == AccessReason.ACCESS_CODE
    assert decision.should_log


def test_code_comparison_is_case_sensitive() -> None:
    session = make_session(uuid4(), access_code="WEDDING2024")

    decision = decide(None, session, "wedding2024")

    assert not decision.granted
    assert decision.reason == AccessReason.NO_MATCH
    assert decision.should_log


def test_private_session_without_code_only_reachable_by_owner_or_admin() -> None:
    owner = Requester(id=uuid4())
    session = make_session(owner.id, access_code=None)
    stranger = Requester(id=uuid4())

    for code in (None, "", "ANYTHING"):
        assert not decide(None, session, code).granted
        assert not decide(stranger, session, code).granted
    assert decide(owner, session, None).granted
    assert decide(Requester(id=uuid4(), role="admin"), session, None).granted


def test_paused_private_session_still_accepts_code() -> None:
    session = make_session(
        uuid4(), access_code="WEDDING2024", status=SessionStatus.PAUSED
    )

    assert decide(None, session, "WEDDING2024").granted


def test_decision_is_deterministic() -> None:
    session = make_session(uuid4(), access_code="WEDDING2024")
    viewer = Requester(id=uuid4())

    first = decide(viewer, session, "NOPE")
    second = decide(viewer, session, "NOPE")

    assert first == second


def test_missing_owner_is_malformed() -> None:
    session = replace(make_session(uuid4()), owner_id=None)

    with pytest.raises(MalformedRecordError):
        decide(None, session, None)


def test_client_type_classification() -> None:
    assert client_type(None) == "viewer"
    assert client_type(Requester(id=uuid4(), role="admin")) == "admin"
    assert client_type(Requester(id=uuid4())) == "photographer"
