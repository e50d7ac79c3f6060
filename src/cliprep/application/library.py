"""
Library operations that touch both the item store and media storage:
ingestion, removal and resolving a playable reference.
"""

import logging
import mimetypes
from datetime import datetime
from pathlib import Path

from cliprep.domain.constants import AUDIO_EXTENSIONS
from cliprep.domain.models import MediaType, Video

from .context import AppContext
from .id_service import generate_id

logger = logging.getLogger(__name__)


def detect_media_type(filename: str, mime_type: str = "") -> MediaType:
    if mime_type.startswith("audio/") or Path(filename).suffix.lower() in AUDIO_EXTENSIONS:
        return "audio"
    return "video"


async def ingest_media(
    ctx: AppContext,
    collection_id: str,
    files: list[tuple[str, bytes]],
    now: datetime | None = None,
) -> list[Video]:
    """
    Store each (filename, data) pair and add a new Video for it.

    Episode numbers follow the order of ``files``. If storing one file fails,
    the error propagates and nothing from this batch is added to the store;
    media already written for the batch is removed again.
    """
    ctx.store.require_collection(collection_id)
    now = now or datetime.now()

    videos: list[Video] = []
    try:
        for index, (filename, data) in enumerate(files):
            video_id = generate_id()
            await ctx.media.put(video_id, data, filename)
            mime_type = mimetypes.guess_type(filename)[0] or ""
            videos.append(
                Video(
                    id=video_id,
                    collection_id=collection_id,
                    name=Path(filename).stem,
                    date_added=now,
                    media_type=detect_media_type(filename, mime_type),
                    file_size=len(data),
                    mime_type=mime_type,
                    episode_number=index + 1,
                )
            )
    except Exception:
        for video in videos:
            await ctx.media.delete(video.id)
        raise

    ctx.store.add_videos(videos)
    logger.info(f"Ingested {len(videos)} files into collection {collection_id}")
    return videos


async def ingest_paths(ctx: AppContext, collection_id: str, paths: list[Path]) -> list[Video]:
    files = [(p.name, p.read_bytes()) for p in paths]
    return await ingest_media(ctx, collection_id, files)


async def remove_video(ctx: AppContext, video_id: str) -> Video:
    """Remove a video everywhere: store, open sessions, media and resume offset."""
    video = ctx.sessions.remove_video(video_id)
    if not await ctx.media.delete(video_id):
        logger.warning(f"No stored media to delete for {video_id}")
    ctx.progress.clear(video_id)
    return video


async def delete_collection(ctx: AppContext, collection_id: str) -> int:
    """Delete a collection with all its videos. Returns how many videos went with it."""
    ctx.store.require_collection(collection_id)
    members = ctx.store.videos_in(collection_id)
    for video in members:
        await remove_video(ctx, video.id)
    ctx.store.delete_collection(collection_id)
    return len(members)


async def resolve_media(ctx: AppContext, video_id: str) -> Path | None:
    """
    Return a playable reference for ``video_id``.

    When the video or its media is gone, the session manager is told (the
    item is skipped, never reviewed) and None is returned.
    """
    reference = None
    if ctx.store.has_video(video_id):
        reference = await ctx.media.get(video_id)

    if reference is None:
        ctx.sessions.report_missing(video_id)
    return reference
