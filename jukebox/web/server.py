"""
FastAPI web server for jukebox.

Provides the REST API for submitting and arranging content, playback
control, and a websocket streaming playlist updates.
"""

import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from ..config_manager import ConfigManager
from ..library import MediaLibrary
from ..playback import PlaybackController
from ..playlist import Playlist
from ..playlog import PlayLog
from .broadcast import PlaylistBroadcaster

logger = logging.getLogger(__name__)


# Request models
class AddItemRequest(BaseModel):
    content_id: str
    username: str = Field(min_length=1)


class ReorderRequest(BaseModel):
    item_ids: List[str]


class ReportRequest(BaseModel):
    content_id: str
    username: str = Field(min_length=1)
    comment: str = ""


class ConfigUpdateRequest(BaseModel):
    key: str
    value: str


# Dependency to get components
def get_playlist(request: Request) -> Playlist:
    """Get Playlist from app state."""
    return request.app.state.playlist


def get_playback_controller(request: Request) -> PlaybackController:
    """Get PlaybackController from app state."""
    return request.app.state.playback_controller


def get_library(request: Request) -> MediaLibrary:
    """Get MediaLibrary from app state."""
    return request.app.state.library


def get_play_log(request: Request) -> PlayLog:
    """Get PlayLog from app state."""
    return request.app.state.play_log


def get_config_manager(request: Request) -> ConfigManager:
    """Get ConfigManager from app state."""
    return request.app.state.config_manager


def create_app(
    playlist: Playlist,
    playback_controller: PlaybackController,
    library: MediaLibrary,
    play_log: PlayLog,
    broadcaster: PlaylistBroadcaster,
    config_manager: ConfigManager,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        playlist: Shared Playlist
        playback_controller: PlaybackController instance
        library: MediaLibrary resolving content ids
        play_log: PlayLog receiving reports
        broadcaster: PlaylistBroadcaster for websocket clients
        config_manager: ConfigManager instance

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await broadcaster.start()
        yield
        await broadcaster.stop()

    app = FastAPI(title="jukebox", version="1.0.0", lifespan=lifespan)

    # Store components in app state
    app.state.playlist = playlist
    app.state.playback_controller = playback_controller
    app.state.library = library
    app.state.play_log = play_log
    app.state.broadcaster = broadcaster
    app.state.config_manager = config_manager

    # Playlist endpoints
    @app.get("/api/playlist")
    async def get_playlist_state(playlist: Playlist = Depends(get_playlist)):
        """Get the item now playing and the pending items."""
        return playlist.peek_state().to_dict()

    @app.post("/api/playlist")
    async def add_item(
        request_data: AddItemRequest,
        playlist: Playlist = Depends(get_playlist),
        library: MediaLibrary = Depends(get_library),
        playback: PlaybackController = Depends(get_playback_controller),
    ):
        """Queue content for a user and start playback if idle."""
        content = library.get(request_data.content_id)
        if not content:
            raise HTTPException(status_code=404, detail="Content not found")

        item = playlist.enqueue(content, request_data.username)
        playback.request_next()
        return {"status": "added", "item": item.to_dict()}

    @app.delete("/api/playlist/{item_id}")
    async def remove_item(item_id: str, playlist: Playlist = Depends(get_playlist)):
        """Remove pending items by content id. Unknown ids are ignored."""
        removed = playlist.remove(item_id)
        return {"status": "removed" if removed else "not_found"}

    @app.put("/api/playlist/users/{username}/order")
    async def reorder_user_items(
        username: str,
        request_data: ReorderRequest,
        playlist: Playlist = Depends(get_playlist),
    ):
        """Replace a user's pending items with the given order."""
        playlist.reorder(username, request_data.item_ids)
        return {
            "status": "reordered",
            "items": [item.to_dict() for item in playlist.pending_for(username)],
        }

    @app.post("/api/playlist/users/{username}/shuffle")
    async def shuffle_user_items(username: str, playlist: Playlist = Depends(get_playlist)):
        """Shuffle a user's pending items."""
        playlist.shuffle(username)
        return {"status": "shuffled"}

    @app.post("/api/report")
    async def report_item(
        request_data: ReportRequest,
        library: MediaLibrary = Depends(get_library),
        play_log: PlayLog = Depends(get_play_log),
    ):
        """Flag content in the day's report log."""
        content = library.get(request_data.content_id)
        if not content:
            raise HTTPException(status_code=404, detail="Content not found")
        try:
            play_log.append_report(content, request_data.username, request_data.comment)
        except OSError as e:
            logger.error("Error writing report: %s", e, exc_info=True)
            raise HTTPException(status_code=500, detail="Could not save report")
        return {"status": "reported"}

    # Library endpoints
    @app.get("/api/contents")
    async def list_contents(library: MediaLibrary = Depends(get_library)):
        """List queueable content."""
        return {"contents": [content.to_dict() for content in library.get_all()]}

    # Playback endpoints
    @app.get("/api/playback/status")
    async def get_playback_status(
        playback: PlaybackController = Depends(get_playback_controller),
    ):
        """Get current playback status."""
        return playback.get_status()

    @app.post("/api/playback/pause")
    async def pause(playback: PlaybackController = Depends(get_playback_controller)):
        if not playback.pause():
            raise HTTPException(status_code=502, detail="Player did not accept the command")
        return {"status": "paused"}

    @app.post("/api/playback/resume")
    async def resume(playback: PlaybackController = Depends(get_playback_controller)):
        if not playback.resume():
            raise HTTPException(status_code=502, detail="Player did not accept the command")
        return {"status": "resumed"}

    @app.post("/api/playback/toggle")
    async def toggle_pause(playback: PlaybackController = Depends(get_playback_controller)):
        if not playback.toggle_pause():
            raise HTTPException(status_code=502, detail="Player did not accept the command")
        return {"status": "toggled"}

    @app.post("/api/playback/next")
    async def play_next(playback: PlaybackController = Depends(get_playback_controller)):
        """Start the next item if the player is idle."""
        item = playback.request_next()
        return {"status": "started" if item else "unchanged", "state": playback.get_status()["state"]}

    # Configuration endpoints
    @app.get("/api/config")
    async def get_config(config: ConfigManager = Depends(get_config_manager)):
        """Get all configuration values. Most take effect on restart."""
        return {"values": config.get_all()}

    @app.patch("/api/config")
    async def update_config(
        request_data: ConfigUpdateRequest,
        config: ConfigManager = Depends(get_config_manager),
    ):
        config.set(request_data.key, request_data.value)
        return {"status": "updated", "key": request_data.key}

    # Live playlist updates
    @app.websocket("/ws")
    async def playlist_updates(websocket: WebSocket):
        await broadcaster.connect(websocket, playlist.peek_state())
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            broadcaster.disconnect(websocket)

    return app
