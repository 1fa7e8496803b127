"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import (
    Depends,
    FastAPI,
    File,
    Form,
    Query,
    Request,
    UploadFile,
    status,
)

from photo_live.api.admin import router as admin_router
from photo_live.api.dependencies import (
    get_access_code,
    get_container,
    get_origin,
    get_requester,
)
from photo_live.api.errors import register_error_handlers
from photo_live.api.schemas import (
    JoinRequest,
    PhotoListResponse,
    PhotoResponse,
    ReviewRequest,
    SessionCreateRequest,
    SessionResponse,
    SessionStatusRequest,
    SessionUpdateRequest,
    UploadResponse,
)
from photo_live.app_logging import configure_logging
from photo_live.containers import AppContainer
from photo_live.domain.ingestion import IngestOptions, UploadedFile
from photo_live.domain.models import Requester, RequestOrigin
from photo_live.domain.photos import PhotoStatus


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        try:
            await asyncio.to_thread(state_container.counter_service.reconcile_all)
        except Exception:
            logger.exception("Failed to reconcile session counters on startup")
        yield
        await state_container.close_resources()

    app = FastAPI(title="Photo Live", lifespan=lifespan)
    app.state.container = container
    register_error_handlers(app)
    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def create_session(
        payload: SessionCreateRequest,
        requester: Requester | None = Depends(get_requester),
        state_container: AppContainer = Depends(get_container),
    ) -> SessionResponse:
        """Create a session owned by the caller."""
        session = state_container.session_service.create_session(
            requester,
            title=payload.title,
            is_public=payload.is_public,
            access_code=payload.access_code,
            review_mode=payload.review_mode,
            watermark_enabled=payload.watermark_enabled,
            watermark_text=payload.watermark_text,
            watermark_opacity=payload.watermark_opacity,
            generate_code=payload.generate_code,
        )
        return SessionResponse.from_record(session, requester)

    @app.get("/sessions/{session_id}")
    async def get_session(  # noqa: PLR0913
        session_id: UUID,
        requester: Requester | None = Depends(get_requester),
        access_code: str | None = Depends(get_access_code),
        origin: RequestOrigin = Depends(get_origin),
        state_container: AppContainer = Depends(get_container),
    ) -> SessionResponse:
        """Return a session if the caller may view it."""
        session = await state_container.session_service.open_session(
            requester, session_id, access_code, origin
        )
        return SessionResponse.from_record(session, requester)

    @app.patch("/sessions/{session_id}")
    async def update_session(
        session_id: UUID,
        payload: SessionUpdateRequest,
        requester: Requester | None = Depends(get_requester),
        state_container: AppContainer = Depends(get_container),
    ) -> SessionResponse:
        """Update owner-editable session settings."""
        session = state_container.session_service.update_settings(
            requester, session_id, payload.model_dump(exclude_unset=True)
        )
        return SessionResponse.from_record(session, requester)

    @app.post("/sessions/{session_id}/status")
    async def set_session_status(
        session_id: UUID,
        payload: SessionStatusRequest,
        requester: Requester | None = Depends(get_requester),
        state_container: AppContainer = Depends(get_container),
    ) -> SessionResponse:
        """Pause, end, archive or resume a session."""
        session = state_container.session_service.set_status(
            requester, session_id, payload.status
        )
        return SessionResponse.from_record(session, requester)

    @app.delete("/sessions/{session_id}")
    async def delete_session(
        session_id: UUID,
        cascade: bool = False,
        requester: Requester | None = Depends(get_requester),
        state_container: AppContainer = Depends(get_container),
    ) -> dict[str, object]:
        """Delete a session; photos are only removed with ``cascade``."""
        removed = await state_container.session_service.delete_session(
            requester, session_id, cascade=cascade
        )
        return {"deleted": True, "photos_removed": removed}

    @app.post("/sessions/{session_id}/join")
    async def join_session(  # noqa: PLR0913
        session_id: UUID,
        payload: JoinRequest | None = None,
        requester: Requester | None = Depends(get_requester),
        access_code: str | None = Depends(get_access_code),
        origin: RequestOrigin = Depends(get_origin),
        state_container: AppContainer = Depends(get_container),
    ) -> dict[str, object]:
        """Check an access code and return the session on success."""
        code = payload.access_code if payload and payload.access_code else access_code
        session, decision = await state_container.session_service.join(
            requester, session_id, code, origin
        )
        return {
            "granted": decision.granted,
            "reason": decision.reason.value,
            "session": SessionResponse.from_record(session, requester).model_dump(
                mode="json"
            ),
        }

    @app.post("/sessions/{session_id}/photos", status_code=status.HTTP_201_CREATED)
    async def upload_photos(  # noqa: PLR0913
        session_id: UUID,
        request: Request,
        files: list[UploadFile] = File(...),
        review_required: bool = Form(default=False),
        watermark_text: str | None = Form(default=None),
        requester: Requester | None = Depends(get_requester),
        access_code: str | None = Depends(get_access_code),
        origin: RequestOrigin = Depends(get_origin),
    ) -> UploadResponse:
        """Upload one or more photos into a session."""
        state_container: AppContainer = request.app.state.container
        uploads = []
        for upload in files:
            content = await upload.read()
            uploads.append(
                UploadedFile(
                    content=content,
                    original_name=upload.filename or "upload",
                    size_bytes=max(upload.size or 0, len(content)),
                    content_type=upload.content_type,
                )
            )
        result = await state_container.session_service.upload_photos(
            requester,
            session_id,
            uploads,
            access_code,
            origin,
            IngestOptions(
                review_required=review_required, watermark_text=watermark_text
            ),
        )
        return UploadResponse.from_result(result)

    @app.get("/sessions/{session_id}/photos")
    async def list_photos(  # noqa: PLR0913
        session_id: UUID,
        photo_status: PhotoStatus | None = Query(default=None, alias="status"),
        requester: Requester | None = Depends(get_requester),
        access_code: str | None = Depends(get_access_code),
        origin: RequestOrigin = Depends(get_origin),
        state_container: AppContainer = Depends(get_container),
    ) -> PhotoListResponse:
        """List a session's photos; viewers only see published ones."""
        photos = await state_container.session_service.list_photos(
            requester, session_id, access_code, origin, photo_status
        )
        return PhotoListResponse.from_records(photos)

    @app.get("/photos/{photo_id}")
    async def get_photo(
        photo_id: UUID,
        requester: Requester | None = Depends(get_requester),
        access_code: str | None = Depends(get_access_code),
        origin: RequestOrigin = Depends(get_origin),
        state_container: AppContainer = Depends(get_container),
    ) -> PhotoResponse:
        """Return a single photo the caller may see."""
        photo = await state_container.session_service.view_photo(
            requester, photo_id, access_code, origin
        )
        return PhotoResponse.from_record(photo)

    @app.post("/photos/{photo_id}/approve")
    async def approve_photo(
        photo_id: UUID,
        payload: ReviewRequest | None = None,
        requester: Requester | None = Depends(get_requester),
        state_container: AppContainer = Depends(get_container),
    ) -> PhotoResponse:
        """Publish a pending photo."""
        photo = await state_container.photo_service.approve(
            requester, photo_id, payload.notes if payload else None
        )
        return PhotoResponse.from_record(photo)

    @app.post("/photos/{photo_id}/reject")
    async def reject_photo(
        photo_id: UUID,
        payload: ReviewRequest | None = None,
        requester: Requester | None = Depends(get_requester),
        state_container: AppContainer = Depends(get_container),
    ) -> PhotoResponse:
        """Reject a pending photo."""
        photo = await state_container.photo_service.reject(
            requester, photo_id, payload.notes if payload else None
        )
        return PhotoResponse.from_record(photo)

    @app.post("/photos/{photo_id}/archive")
    async def archive_photo(
        photo_id: UUID,
        requester: Requester | None = Depends(get_requester),
        state_container: AppContainer = Depends(get_container),
    ) -> PhotoResponse:
        """Archive a reviewed photo."""
        photo = await state_container.photo_service.archive(requester, photo_id)
        return PhotoResponse.from_record(photo)

    @app.delete("/photos/{photo_id}")
    async def delete_photo(
        photo_id: UUID,
        requester: Requester | None = Depends(get_requester),
        state_container: AppContainer = Depends(get_container),
    ) -> dict[str, bool]:
        """Delete a photo and its stored variants."""
        await state_container.photo_service.delete_photo(requester, photo_id)
        return {"deleted": True}

    return app
