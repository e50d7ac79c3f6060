"""cliprep CLI: library management, daily sessions and the HTTP server."""

import asyncio
import json
import logging
import sys
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Literal

import typer

from cliprep.application.config import resolve_config
from cliprep.application.context import AppContext
from cliprep.domain.errors import CliprepError
from cliprep.domain.models import PlaylistItem, PlaylistPreview

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cliprep: spaced-repetition sessions for your audio and video clips.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

collection_app = typer.Typer(help="Manage collections.", no_args_is_help=True)
app.add_typer(collection_app, name="collection")

config_app = typer.Typer(help="Manage cliprep configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Annotated[
        Path | None, typer.Option(help="Where library state is kept. Defaults to config.")
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for cliprep."""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["verbose"] = verbose
    if verbose > 1:
        logging.getLogger().setLevel(logging.DEBUG)


@contextmanager
def _open_context(ctx: typer.Context):
    """Build the application context for one command and report core errors."""
    obj = ctx.obj or {}
    config = resolve_config({"data_dir": obj.get("data_dir"), "verbose": obj.get("verbose")})
    try:
        with AppContext.create(config) as app_ctx:
            yield app_ctx
    except CliprepError as e:
        typer.secho(str(e), fg="red")
        raise typer.Exit(1) from e


def _describe(item: PlaylistItem, app_ctx: AppContext) -> str:
    video = app_ctx.store.get_video(item.video_id)
    name = video.name if video else "(deleted)"
    if item.review_type == "new":
        return f"{name}  [new]"
    hint = "  video recommended" if item.is_recommended_for_video else ""
    return (
        f"{name}  [review #{item.review_number}, "
        f"day {item.days_since_first_play}]{hint}"
    )


def _print_preview(preview: PlaylistPreview, app_ctx: AppContext) -> None:
    label = "Extra session" if preview.is_extra_session else "Session"
    if preview.session_id:
        typer.echo(f"{label} {preview.session_id} (resuming at {preview.last_played_index})")
    else:
        typer.echo(f"{label} preview")
    if not preview.total_count:
        typer.secho("Nothing scheduled.", fg="yellow")
        return
    for i, item in enumerate(preview.items):
        marker = "x" if i < preview.last_played_index else " "
        typer.echo(f"  [{marker}] {i + 1}. {_describe(item, app_ctx)}")
    typer.echo(f"Total: {preview.total_count}")


# ---------------------------------------------------------------------------
# Collection subgroup
# ---------------------------------------------------------------------------


@collection_app.command("create")
def collection_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Collection name.")],
    description: Annotated[str | None, typer.Option(help="Optional description.")] = None,
):
    """Create a new, active collection."""
    with _open_context(ctx) as app_ctx:
        collection = app_ctx.store.create_collection(name, description)
        typer.secho(f"Created collection {collection.name!r} ({collection.id})", fg="green")


@collection_app.command("list")
def collection_list(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List collections with their progress."""
    with _open_context(ctx) as app_ctx:
        rows = []
        for c in app_ctx.store.collections:
            total, completed = app_ctx.store.collection_totals(c.id)
            rows.append(
                {
                    "id": c.id,
                    "name": c.name,
                    "active": c.is_active,
                    "total_videos": total,
                    "completed_videos": completed,
                }
            )

        if json_output:
            typer.echo(json.dumps(rows, indent=2))
            return
        if not rows:
            typer.secho("No collections yet.", fg="yellow")
        for row in rows:
            state = "active" if row["active"] else "paused"
            typer.echo(
                f"{row['id']}  {row['name']}  ({state}, "
                f"{row['completed_videos']}/{row['total_videos']} completed)"
            )


@collection_app.command("rename")
def collection_rename(
    ctx: typer.Context,
    collection_id: Annotated[str, typer.Argument()],
    name: Annotated[str, typer.Argument()],
    description: Annotated[str | None, typer.Option()] = None,
):
    """Rename a collection."""
    with _open_context(ctx) as app_ctx:
        app_ctx.store.update_collection(collection_id, name, description)
        typer.secho("Renamed.", fg="green")


@collection_app.command("toggle")
def collection_toggle(ctx: typer.Context, collection_id: Annotated[str, typer.Argument()]):
    """Activate or pause a collection."""
    with _open_context(ctx) as app_ctx:
        collection = app_ctx.store.toggle_collection(collection_id)
        typer.echo(f"{collection.name}: {'active' if collection.is_active else 'paused'}")


@collection_app.command("delete")
def collection_delete(
    ctx: typer.Context,
    collection_id: Annotated[str, typer.Argument()],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
):
    """Delete a collection and all of its media."""
    from cliprep.application.library import delete_collection

    if not force:
        typer.confirm("Delete this collection and all of its media?", abort=True)
    with _open_context(ctx) as app_ctx:
        removed = asyncio.run(delete_collection(app_ctx, collection_id))
        typer.secho(f"Deleted collection and {removed} videos.", fg="green")


# ---------------------------------------------------------------------------
# Library commands
# ---------------------------------------------------------------------------


@app.command()
def ingest(
    ctx: typer.Context,
    collection_id: Annotated[str, typer.Argument(help="Target collection.")],
    files: Annotated[list[Path], typer.Argument(help="Audio/video files to add.", exists=True)],
):
    """Add media files to a collection as new videos."""
    from cliprep.application.library import ingest_paths

    with _open_context(ctx) as app_ctx:
        videos = asyncio.run(ingest_paths(app_ctx, collection_id, files))
        typer.secho(f"Added {len(videos)} videos.", fg="green")


@app.command()
def remove(ctx: typer.Context, video_id: Annotated[str, typer.Argument()]):
    """Remove a video and its media."""
    from cliprep.application.library import remove_video

    with _open_context(ctx) as app_ctx:
        video = asyncio.run(remove_video(app_ctx, video_id))
        typer.secho(f"Removed {video.name!r}.", fg="green")


# ---------------------------------------------------------------------------
# Session commands
# ---------------------------------------------------------------------------

SessionType = Literal["new", "review"]


@app.command()
def preview(
    ctx: typer.Context,
    session_type: Annotated[SessionType, typer.Option("--type", help="new or review.")] = "new",
    extra: Annotated[bool, typer.Option("--extra", help="Preview an extra session.")] = False,
):
    """Show what today's session would contain."""
    with _open_context(ctx) as app_ctx:
        _print_preview(app_ctx.sessions.preview(session_type, extra), app_ctx)


@app.command()
def start(
    ctx: typer.Context,
    session_type: Annotated[SessionType, typer.Option("--type", help="new or review.")] = "new",
    extra: Annotated[
        bool | None,
        typer.Option(
            "--extra/--no-extra",
            help="Extra new session. Defaults to extra when today's quota is used up.",
        ),
    ] = None,
):
    """Start (or resume) today's session and print its items."""
    with _open_context(ctx) as app_ctx:
        if extra is None:
            extra = session_type == "new" and app_ctx.sessions.can_offer_extra()
        playlist = app_ctx.sessions.obtain_session(session_type, extra)
        _print_preview(app_ctx.sessions.preview(session_type, extra), app_ctx)
        typer.echo(f"Session id: {playlist.id}")


@app.command()
def advance(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument()],
    index: Annotated[int, typer.Argument(help="0-based index of the next item to play.")],
):
    """Move a session's resume cursor."""
    with _open_context(ctx) as app_ctx:
        playlist = app_ctx.sessions.advance(session_id, index)
        typer.echo(f"Cursor at {playlist.last_played_index}/{len(playlist.items)}")


@app.command()
def complete(ctx: typer.Context, session_id: Annotated[str, typer.Argument()]):
    """Mark a session as played through and advance its videos."""
    with _open_context(ctx) as app_ctx:
        app_ctx.sessions.complete(session_id)
        for notice in app_ctx.notices.drain():
            typer.secho(notice.message, fg="green" if notice.level == "success" else None)


@app.command()
def missing(ctx: typer.Context, video_id: Annotated[str, typer.Argument()]):
    """Report that a video's media could not be played; it is skipped."""
    with _open_context(ctx) as app_ctx:
        changed = app_ctx.sessions.report_missing(video_id)
        typer.secho(f"Skipped in {len(changed)} open sessions.", fg="yellow")


@app.command()
def stats(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show learning statistics."""
    with _open_context(ctx) as app_ctx:
        s = app_ctx.sessions.stats()
        if json_output:
            typer.echo(json.dumps(asdict(s), indent=2))
            return
        typer.echo(f"Videos: {s.completed_videos}/{s.total_videos} completed ({s.overall_progress}%)")
        typer.echo(f"Active collections: {s.active_collections}")
        typer.echo(f"Today: {s.today_new_count} new, {s.today_review_count} reviews")
        if s.today_review_count:
            typer.echo(
                f"  ({s.today_video_review_count} best watched, "
                f"{s.today_audio_review_count} fine as audio)"
            )
        if s.can_add_extra:
            typer.secho("Today's new quota is done. An extra session is available.", fg="green")


@app.command()
def history(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option(help="How many sessions to show.")] = 20,
):
    """List recent sessions, newest first."""
    with _open_context(ctx) as app_ctx:
        sessions = app_ctx.sessions.history()[:limit]
        if not sessions:
            typer.secho("No sessions yet.", fg="yellow")
        for p in sessions:
            state = "done" if p.is_completed else f"{p.last_played_index}/{len(p.items)}"
            extra = " extra" if p.is_extra_session else ""
            typer.echo(f"{p.date:%Y-%m-%d %H:%M}  {p.id}  {p.playlist_type}{extra}  {state}")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API for a playback UI."""
    import uvicorn

    config = resolve_config()
    uvicorn.run(
        "cliprep.server:app",
        host=host or config.host,
        port=port or config.port,
        reload=reload,
    )
