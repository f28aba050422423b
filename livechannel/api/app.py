"""
FastAPI application exposing the channel stream and library/playlist management.
"""

from __future__ import annotations

import contextlib
import logging
import time
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import psutil
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from ..context import AppContext
from ..errors import ChannelNotFound, ConfigError, ResourceError, ValidationError
from ..hls_output import channel_playlist_path, wait_for_file
from ..library import organize_shows, scan_for_videos
from ..models import SUPPORTED_CHANNEL, PLAYLIST_NAME, PlaylistItem, SubtitleMode
from ..settings import Settings

LOGGER = logging.getLogger(__name__)

router = APIRouter()


class SetFolderRequest(BaseModel):
    path: str


class SetSubtitleModeRequest(BaseModel):
    mode: SubtitleMode


class PlaylistItemModel(BaseModel):
    show_name: str
    episode_range: Optional[Tuple[int, int]] = Field(
        default=None, description="Half-open [start, end) slice of episode ids."
    )
    repeat_count: int = Field(
        default=0, ge=0, description="0 plays each episode once; any other value loops."
    )


class AddToPlaylistRequest(BaseModel):
    show_name: str
    episode_range: Optional[Tuple[int, int]] = None
    repeat_count: Optional[int] = Field(default=None, ge=0)


class ReplacePlaylistRequest(BaseModel):
    items: List[PlaylistItemModel] = Field(default_factory=list)


class MovePlaylistItemRequest(BaseModel):
    index: int
    direction: str


def _context(request: Request) -> AppContext:
    return request.app.state.context


def _persist(ctx: AppContext) -> None:
    try:
        ctx.persist()
    except ConfigError as exc:
        LOGGER.error("Failed to save config: %s", exc)
        raise HTTPException(status_code=500, detail=f"Failed to save config: {exc}")


def _to_item(show_name: str, episode_range, repeat_count: Optional[int]) -> PlaylistItem:
    try:
        return PlaylistItem(
            show_name=show_name,
            episode_range=tuple(episode_range) if episode_range is not None else None,
            repeat_count=repeat_count or 0,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _shows_payload(ctx: AppContext) -> Dict[str, List[Dict[str, Any]]]:
    return {
        name: [episode.to_dict() for episode in episodes]
        for name, episodes in ctx.state.shows.items()
    }


@router.get("/stream/{channel_id}")
def stream_channel(channel_id: str, request: Request) -> RedirectResponse:
    ctx = _context(request)
    try:
        ctx.registry.check_channel(channel_id)
    except ChannelNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    # A playlist left on disk by a stopped loop or an earlier process does not
    # mean the channel is live; starting resets the directory.
    try:
        if ctx.registry.ensure_started(channel_id):
            LOGGER.info("Started channel %s for stream request", channel_id)
    except ResourceError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    playlist = channel_playlist_path(ctx.settings.hls_root, channel_id)
    if not playlist.exists():
        LOGGER.info("Waiting for HLS playlist at %s", playlist)
        if not wait_for_file(playlist, ctx.settings.readiness_timeout):
            LOGGER.warning("Timed out waiting for HLS playlist at %s", playlist)
            raise HTTPException(status_code=500, detail="Timed out waiting for HLS playlist")

    return RedirectResponse(f"/hls/{channel_id}/{PLAYLIST_NAME}", status_code=307)


@router.get("/health", response_class=PlainTextResponse)
def health() -> str:
    return "OK"


@router.get("/api/healthz")
def health_check(request: Request) -> Dict[str, Any]:
    """Streaming state plus process and HLS disk usage."""
    ctx = _context(request)
    status: Dict[str, Any] = {
        "status": "ok",
        "timestamp": time.time(),
        "streaming": ctx.registry.is_running(SUPPORTED_CHANNEL),
        "ffmpeg_available": ctx.capability.available,
        "resources": {},
    }
    if not status["ffmpeg_available"]:
        status["status"] = "degraded"

    process = psutil.Process()
    memory = process.memory_info()
    status["resources"] = {
        "memory_mb": round(memory.rss / (1024 * 1024), 2),
        "cpu_percent": round(process.cpu_percent(interval=None), 2),
    }
    hls_root = ctx.settings.hls_root
    if hls_root.exists():
        disk = psutil.disk_usage(str(hls_root))
        status["resources"]["disk"] = {
            "free_gb": round(disk.free / (1024 ** 3), 2),
            "percent": round(disk.percent, 2),
        }
        status["resources"]["hls_segments"] = len(list(hls_root.glob("*/*.ts")))
    return status


@router.get("/api/config")
def get_config(request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    shows = _shows_payload(ctx)
    folder = ctx.state.videos_folder
    current = ctx.state.current_playing
    return {
        "videos_folder": str(folder) if folder else None,
        "video_count": sum(len(eps) for eps in shows.values()),
        "show_count": len(shows),
        "shows": shows,
        "playlist": [item.to_dict() for item in ctx.state.playlist],
        "subtitle_mode": ctx.state.subtitle_mode.value,
        "is_streaming": ctx.registry.is_running(SUPPORTED_CHANNEL),
        "current_playing": str(current) if current else None,
    }


@router.post("/api/config/reload")
def reload_config(request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    try:
        ctx.reload_config()
    except ConfigError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return {"status": "ok", "playlist_items": len(ctx.state.playlist)}


@router.post("/api/folder")
def set_folder(req: SetFolderRequest, request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    folder = Path(req.path).expanduser()
    if not folder.is_dir():
        raise HTTPException(status_code=400, detail="Folder does not exist")
    ctx.state.set_videos_folder(folder)
    _persist(ctx)
    return {"status": "ok", "videos_folder": str(folder)}


@router.post("/api/scan")
def scan_videos(request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    folder = ctx.state.videos_folder
    if folder is None:
        raise HTTPException(status_code=400, detail="No videos folder set")

    video_files = scan_for_videos(folder)
    shows = organize_shows(video_files)
    ctx.state.apply_scan(shows)
    _persist(ctx)
    return {
        "video_count": len(video_files),
        "show_count": len(shows),
        "shows": _shows_payload(ctx),
    }


@router.get("/api/files")
def get_files(request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    files = [
        {
            "display_name": f"{show_name} - {episode.name}",
            "file_path": str(episode.file_path),
            "show_name": show_name,
        }
        for show_name, episodes in sorted(ctx.state.shows.items())
        for episode in episodes
    ]
    return {"files": files}


@router.get("/api/shows")
def get_shows(request: Request) -> Dict[str, Any]:
    return {"shows": sorted(_context(request).state.shows)}


@router.post("/api/start-streaming")
def start_streaming(request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    if not ctx.state.shows:
        raise HTTPException(status_code=400, detail="No videos available. Please scan first.")
    try:
        started = ctx.registry.ensure_started(SUPPORTED_CHANNEL)
    except ResourceError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return {"status": "ok", "started": started}


@router.post("/api/stop")
def stop_streaming(request: Request) -> Dict[str, Any]:
    stopped = _context(request).registry.stop(SUPPORTED_CHANNEL)
    return {"status": "ok", "stopped": stopped}


@router.post("/api/subtitle-mode")
def set_subtitle_mode(req: SetSubtitleModeRequest, request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    ctx.state.set_subtitle_mode(req.mode)
    _persist(ctx)
    return {"status": "ok", "subtitle_mode": req.mode.value}


@router.get("/api/playlist")
def get_playlist(request: Request) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in _context(request).state.playlist]


@router.put("/api/playlist")
def replace_playlist(req: ReplacePlaylistRequest, request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    items = [_to_item(i.show_name, i.episode_range, i.repeat_count) for i in req.items]
    ctx.state.replace_playlist(items)
    _persist(ctx)
    return {"status": "ok", "items": len(items)}


@router.post("/api/playlist/add")
def add_to_playlist(req: AddToPlaylistRequest, request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    item = _to_item(req.show_name, req.episode_range, req.repeat_count)
    try:
        ctx.state.add_playlist_item(item)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    _persist(ctx)
    return {"status": "ok", "item": item.to_dict()}


@router.post("/api/playlist/move")
def move_playlist_item(req: MovePlaylistItemRequest, request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    try:
        ctx.state.move_playlist_item(req.index, req.direction)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    _persist(ctx)
    return {"status": "ok"}


@router.delete("/api/playlist/{index}")
def remove_from_playlist(index: int, request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    try:
        removed = ctx.state.remove_playlist_item(index)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    _persist(ctx)
    return {"status": "ok", "removed": removed.to_dict()}


@router.delete("/api/playlist")
def clear_playlist(request: Request) -> Dict[str, Any]:
    ctx = _context(request)
    ctx.state.replace_playlist([])
    _persist(ctx)
    return {"status": "ok"}


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the API. Without a context one is assembled from the environment."""
    if context is None:
        context = AppContext.from_settings(Settings.from_env())
        context.reload_config()

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        context.registry.stop_all()

    app = FastAPI(title="Live Channel API", lifespan=lifespan)
    app.state.context = context
    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    app.mount(
        "/hls",
        StaticFiles(directory=str(context.settings.hls_root), check_dir=False),
        name="hls",
    )
    return app
