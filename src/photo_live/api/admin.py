"""Admin API endpoints with simple token auth."""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

if TYPE_CHECKING:
    from photo_live.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.post("/reconcile", dependencies=[Depends(require_admin)])
async def reconcile_all(request: Request) -> dict[str, object]:
    """Recompute photo counters for every session."""
    container: AppContainer = request.app.state.container
    results = await asyncio.to_thread(container.counter_service.reconcile_all)
    return {
        "sessions": {
            str(session_id): asdict(counters)
            for session_id, counters in results.items()
        }
    }


@router.post(
    "/sessions/{session_id}/reconcile", dependencies=[Depends(require_admin)]
)
async def reconcile_session(session_id: UUID, request: Request) -> dict[str, object]:
    """Recompute photo counters for one session."""
    container: AppContainer = request.app.state.container
    counters = await asyncio.to_thread(
        container.counter_service.reconcile, session_id
    )
    return {"session_id": str(session_id), "counters": asdict(counters)}


@router.get(
    "/sessions/{session_id}/access-log", dependencies=[Depends(require_admin)]
)
async def access_log(
    session_id: UUID, request: Request, limit: int = Query(default=50, ge=1, le=500)
) -> dict[str, object]:
    """Return recent code-gated access attempts for a session."""
    container: AppContainer = request.app.state.container
    attempts = container.access_service.recent_attempts(session_id, limit)
    return {
        "attempts": [
            {
                "ip_address": attempt.ip_address,
                "user_agent": attempt.user_agent,
                "access_code_used": attempt.supplied_code,
                "granted": attempt.granted,
                "reason": attempt.reason.value,
                "client_type": attempt.client_type,
                "created_at": attempt.created_at.isoformat(),
            }
            for attempt in attempts
        ]
    }
