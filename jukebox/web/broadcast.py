"""
Websocket broadcast of playlist state.

The playlist notifies from whatever thread changed it (request handlers,
the mpv event thread). Each notification records the newest state and
wakes a single sender task on the server's event loop, which delivers it
to every connected client. Clients therefore never see an older state
after a newer one, even when a slow client holds up the sends.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, Optional, Set, Tuple

from fastapi import WebSocket

from ..models import PlaylistSnapshot

logger = logging.getLogger(__name__)

# Queue entry: a client waiting for its first state plus a fallback message,
# or None to send the newest state to everyone
_Join = Tuple[WebSocket, Dict[str, Any]]


class PlaylistBroadcaster:
    """Fan-out of playlist snapshots to websocket clients."""

    def __init__(self):
        self._clients: Set[WebSocket] = set()
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional["asyncio.Queue[Optional[_Join]]"] = None
        self._sender: Optional[asyncio.Task] = None
        self._latest: Optional[Dict[str, Any]] = None

    async def start(self):
        """Start the sender task on the running event loop."""
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._sender = asyncio.create_task(self._send_loop())

    async def stop(self):
        self._loop = None
        sender = self._sender
        self._sender = None
        if sender is None:
            return
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    async def connect(self, websocket: WebSocket, snapshot: PlaylistSnapshot):
        """Accept a client; the sender task delivers its first state."""
        await websocket.accept()
        self._queue.put_nowait((websocket, self._message(snapshot)))

    def disconnect(self, websocket: WebSocket):
        with self._lock:
            if websocket not in self._clients:
                return
            self._clients.discard(websocket)
        logger.info("Playlist client disconnected (%d left)", self.client_count)

    def notify(self, snapshot: PlaylistSnapshot):
        """Record a new state and wake the sender. Safe to call from any thread."""
        with self._lock:
            self._latest = self._message(snapshot)
            if not self._clients:
                return
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._queue.put_nowait, None)
        except RuntimeError:
            # Loop closed between the check and the call during shutdown
            logger.debug("Event loop closed, playlist update not sent")

    async def _send_loop(self):
        last_sent = None
        while True:
            entry = await self._queue.get()
            if entry is None:
                with self._lock:
                    message = self._latest
                if message is None or message is last_sent:
                    continue
                await self.broadcast(message)
                last_sent = message
                continue

            websocket, fallback = entry
            with self._lock:
                if self._latest is None:
                    self._latest = fallback
                message = self._latest
                self._clients.add(websocket)
            logger.info("Playlist client connected (%d total)", self.client_count)
            await self._send(websocket, message)

    async def broadcast(self, message: Dict[str, Any]):
        with self._lock:
            clients = list(self._clients)
        for websocket in clients:
            await self._send(websocket, message)

    async def _send(self, websocket: WebSocket, message: Dict[str, Any]):
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.warning("Dropping playlist client after send failure: %s", e)
            self.disconnect(websocket)

    @staticmethod
    def _message(snapshot: PlaylistSnapshot) -> Dict[str, Any]:
        return {"type": "playlist", **snapshot.to_dict()}
