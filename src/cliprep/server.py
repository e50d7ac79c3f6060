import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Literal

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from cliprep.application.context import AppContext
from cliprep.consts import VERSION
from cliprep.domain.errors import (
    ExtraNotOfferedError,
    NothingScheduledError,
    SessionNotFoundError,
    VideoNotFoundError,
)
from cliprep.domain.models import Playlist, PlaylistItem, PlaylistPreview, SessionView

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cliprep.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from cliprep.application.config import resolve_config

    # Startup
    config = resolve_config()
    logger.info(f"cliprep server v{VERSION} starting up (data_dir={config.data_dir})...")
    app.state.context = AppContext.create(config)
    yield
    # Shutdown
    app.state.context.close()
    logger.info("cliprep server shutting down...")


app = FastAPI(
    title="cliprep server",
    description="Spaced-repetition session API for a playback UI.",
    version=VERSION,
    lifespan=lifespan,
)


def _ctx(request: Request) -> AppContext:
    return request.app.state.context


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class ItemOut(BaseModel):
    video_id: str
    review_type: str
    review_number: int
    days_since_first_play: int | None = None
    is_recommended_for_video: bool = False

    @classmethod
    def of(cls, item: PlaylistItem) -> "ItemOut":
        return cls(**asdict(item))


class PreviewOut(BaseModel):
    items: list[ItemOut]
    total_count: int
    is_extra_session: bool
    last_played_index: int = 0
    session_id: str | None = None

    @classmethod
    def of(cls, preview: PlaylistPreview) -> "PreviewOut":
        return cls(
            items=[ItemOut.of(i) for i in preview.items],
            total_count=preview.total_count,
            is_extra_session=preview.is_extra_session,
            last_played_index=preview.last_played_index,
            session_id=preview.session_id,
        )


class SessionOut(BaseModel):
    id: str
    date: str
    playlist_type: str
    is_extra_session: bool
    last_played_index: int
    is_completed: bool
    items: list[ItemOut]
    skipped_video_ids: list[str] = []

    @classmethod
    def of(cls, playlist: Playlist) -> "SessionOut":
        return cls(
            id=playlist.id,
            date=playlist.date.isoformat(),
            playlist_type=playlist.playlist_type,
            is_extra_session=playlist.is_extra_session,
            last_played_index=playlist.last_played_index,
            is_completed=playlist.is_completed,
            items=[ItemOut.of(i) for i in playlist.items],
            skipped_video_ids=sorted(playlist.skipped_video_ids),
        )


class PresentedItemOut(ItemOut):
    original_index: int
    name: str
    media_type: str
    skipped: bool = False


class SessionViewOut(BaseModel):
    session: SessionOut
    items: list[PresentedItemOut]

    @classmethod
    def of(cls, view: SessionView) -> "SessionViewOut":
        return cls(
            session=SessionOut.of(view.playlist),
            items=[
                PresentedItemOut(
                    **asdict(p.item),
                    original_index=p.original_index,
                    name=p.video.name,
                    media_type=p.video.media_type,
                    skipped=p.skipped,
                )
                for p in view.items
            ],
        )


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SessionRequest(BaseModel):
    type: Literal["new", "review"] = "new"
    extra: bool = False


class AdvanceRequest(BaseModel):
    index: int = Field(ge=0)


class ProgressRequest(BaseModel):
    seconds: float


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/preview", response_model=PreviewOut)
async def get_preview(
    request: Request, type: Literal["new", "review"] = "new", extra: bool = False
):
    """Read-only view of what a session of this type would contain."""
    return PreviewOut.of(_ctx(request).sessions.preview(type, extra))


@app.get("/sessions", response_model=list[SessionOut])
async def list_sessions(request: Request, limit: int = 50):
    return [SessionOut.of(p) for p in _ctx(request).sessions.history()[:limit]]


@app.post("/sessions", response_model=SessionOut)
async def obtain_session(request: Request, req: SessionRequest):
    """Create today's session for (type, extra) or return the open one."""
    try:
        return SessionOut.of(_ctx(request).sessions.obtain_session(req.type, req.extra))
    except (NothingScheduledError, ExtraNotOfferedError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


@app.get("/sessions/{session_id}", response_model=SessionViewOut)
async def get_session(request: Request, session_id: str):
    """The session as the player should present it (deleted videos dropped)."""
    try:
        view = _ctx(request).sessions.reconcile_missing(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    if view is None:
        raise HTTPException(status_code=404, detail="Session had no remaining videos and was removed")
    return SessionViewOut.of(view)


@app.post("/sessions/{session_id}/advance", response_model=SessionOut)
async def advance_session(request: Request, session_id: str, req: AdvanceRequest):
    try:
        return SessionOut.of(_ctx(request).sessions.advance(session_id, req.index))
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.post("/sessions/{session_id}/complete", response_model=SessionOut)
async def complete_session(request: Request, session_id: str):
    try:
        return SessionOut.of(_ctx(request).sessions.complete(session_id))
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.post("/videos/{video_id}/missing")
async def report_missing(request: Request, video_id: str):
    changed = _ctx(request).sessions.report_missing(video_id)
    return {"skipped_in": [p.id for p in changed]}


@app.get("/videos/{video_id}/media")
async def get_media(request: Request, video_id: str):
    """Stream the stored media; a missing file is reported and skipped."""
    from cliprep.application.library import resolve_media

    ctx = _ctx(request)
    reference = await resolve_media(ctx, video_id)
    if reference is None:
        raise HTTPException(status_code=404, detail=f"Media missing for {video_id}")
    video = ctx.store.get_video(video_id)
    return FileResponse(reference, media_type=(video.mime_type or None) if video else None)


@app.get("/videos/{video_id}/progress")
async def get_progress(request: Request, video_id: str, duration: float | None = None):
    """Saved offset, and the resume point to offer when the duration is known."""
    progress = _ctx(request).progress
    resume = progress.resume_point(video_id, duration) if duration is not None else None
    return {"offset": progress.offset(video_id), "resume_at": resume}


@app.put("/videos/{video_id}/progress")
async def put_progress(request: Request, video_id: str, req: ProgressRequest):
    ctx = _ctx(request)
    if not ctx.store.has_video(video_id):
        raise HTTPException(status_code=404, detail=str(VideoNotFoundError(video_id)))
    return {"saved": ctx.progress.record(video_id, req.seconds)}


@app.delete("/videos/{video_id}/progress")
async def clear_progress(request: Request, video_id: str):
    _ctx(request).progress.clear(video_id)
    return {"ok": True}


@app.get("/stats")
async def get_stats(request: Request):
    ctx = _ctx(request)
    return {
        **asdict(ctx.sessions.stats()),
        "due_review_count": ctx.sessions.due_review_count(),
        "new_candidate_count": ctx.sessions.new_candidate_count(),
    }


@app.get("/notices")
async def get_notices(request: Request):
    """Drain queued notices (missing media, finished sessions)."""
    return [
        {"message": n.message, "level": n.level, "created": n.created.isoformat()}
        for n in _ctx(request).notices.drain()
    ]
