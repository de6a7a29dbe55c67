"""
Round-robin fairness scheduling for jukebox.

Decides whose content plays next. Every submitter ever seen keeps a place
in a cyclic rotation; each decision walks the rotation from its head and
sends every visited submitter to the tail, stopping at the first one with
pending content. A submitter with a long queue therefore never gets two
turns in a row while someone else is waiting.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Deque, Iterator, List, Optional, Set

from .models import QueueItem

if TYPE_CHECKING:
    from .playlist import Playlist


class SubmitterRotation:
    """Cyclic order of submitter names."""

    def __init__(self):
        self._order: Deque[str] = deque()
        self._names: Set[str] = set()

    def join(self, username: str) -> bool:
        """
        Add a submitter at the head of the rotation.

        Newcomers get the very next turn. Known names keep their place.

        Returns:
            True if the name was new
        """
        if username in self._names:
            return False
        self._names.add(username)
        self._order.appendleft(username)
        return True

    def rotate(self):
        """Move the head submitter to the tail."""
        self._order.rotate(-1)

    @property
    def head(self) -> Optional[str]:
        return self._order[0] if self._order else None

    def names(self) -> List[str]:
        return list(self._order)

    def __contains__(self, username: object) -> bool:
        return username in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)


class FairnessScheduler:
    """Selects the next item to play from a Playlist."""

    def __init__(self, playlist: "Playlist"):
        self.playlist = playlist
        self.logger = logging.getLogger(__name__)

    def select_next(self) -> Optional[QueueItem]:
        """
        Pick the oldest pending item of the first submitter in rotation
        order who has one.

        The rotation advances once per visited submitter, including the
        one selected. When nobody has pending content the walk covers the
        whole cycle and the rotation ends where it started.

        Returns:
            The selected item (still pending), or None
        """
        with self.playlist.lock:
            rotation = self.playlist.rotation
            for username in rotation.names():
                item = self.playlist.first_pending_for(username)
                rotation.rotate()
                if item is not None:
                    self.logger.debug('Selected %s from %s', item.title, username)
                    return item
            return None
