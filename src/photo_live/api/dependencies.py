"""Request-scoped dependencies decoded from gateway headers."""

from uuid import UUID

from fastapi import Header, Query, Request

from photo_live.containers import AppContainer
from photo_live.domain.errors import AuthorizationError
from photo_live.domain.models import Requester, RequestOrigin


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_requester(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Requester | None:
    """Return the authenticated caller, or None for anonymous viewers.

    Identity is asserted by the gateway in front of the API; only the shape
    of the header is checked here.
    """
    if not x_user_id:
        return None
    try:
        user_id = UUID(x_user_id)
    except ValueError as exc:
        raise AuthorizationError("Invalid X-User-Id header") from exc
    role = (x_user_role or "photographer").strip().lower()
    return Requester(id=user_id, role=role)


def get_access_code(
    x_access_code: str | None = Header(default=None),
    access_code: str | None = Query(default=None, alias="accessCode"),
) -> str | None:
    return x_access_code or access_code


def get_origin(request: Request) -> RequestOrigin:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    elif request.client:
        ip_address = request.client.host
    else:
        ip_address = "unknown"
    return RequestOrigin(
        ip_address=ip_address, user_agent=request.headers.get("user-agent", "")
    )
