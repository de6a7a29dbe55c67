"""
Shared playlist for jukebox.

Holds the pending items, the item now playing and the submitter rotation.
All access goes through one re-entrant lock so that submissions, reorders
and scheduling decisions never interleave.
"""

import logging
import random
import threading
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Iterable, List, Optional

from .models import Content, PlaylistSnapshot, QueueItem
from .scheduler import SubmitterRotation

Notifier = Callable[[PlaylistSnapshot], None]


class Playlist:
    """Mutable queue state shared by all submitters."""

    def __init__(self, notifier: Optional[Notifier] = None):
        """
        Initialize Playlist.

        Args:
            notifier: Called with a fresh snapshot after every change
        """
        self.logger = logging.getLogger(__name__)
        self.lock = threading.RLock()
        self.rotation = SubmitterRotation()
        self.notifier = notifier
        self._pending: List[QueueItem] = []
        self._now_playing: Optional[QueueItem] = None

    # =========================================================================
    # Submitter Operations
    # =========================================================================

    def enqueue(self, content: Content, username: str) -> QueueItem:
        """
        Add content to the end of the pending list on behalf of a user.

        The same content may be queued more than once; entries are not
        de-duplicated by id.

        Args:
            content: Content to queue
            username: Name of the submitter

        Returns:
            The created queue item
        """
        item = QueueItem.from_content(content, username)
        with self.lock:
            self._pending.append(item)
            if self.rotation.join(username):
                self.logger.info('New submitter joined the rotation: %s', username)
            self.logger.info('Queued %s for %s', item.title, username)
            self.notify()
        return item

    def remove(self, item_id: str) -> bool:
        """
        Remove pending items by id.

        Returns:
            True if anything was removed
        """
        with self.lock:
            remaining = [item for item in self._pending if item.id != item_id]
            if len(remaining) == len(self._pending):
                self.logger.debug('Nothing to remove for id %s', item_id)
                return False
            self._pending = remaining
            self.logger.info('Removed %s from the playlist', item_id)
            self.notify()
            return True

    def reorder(self, username: str, item_ids: Iterable[str]):
        """
        Replace a user's pending items with the given order.

        Everything the user has pending is taken out and only the listed
        items are put back, at the end of the pending list. Ids the user
        does not own are ignored; owned items that are not listed are
        dropped.

        Args:
            username: Owner of the items
            item_ids: New order as content ids
        """
        with self.lock:
            owned: Dict[str, Deque[QueueItem]] = defaultdict(deque)
            others = []
            for item in self._pending:
                if item.username == username:
                    owned[item.id].append(item)
                else:
                    others.append(item)

            reordered = []
            for item_id in item_ids:
                if owned.get(item_id):
                    reordered.append(owned[item_id].popleft())

            dropped = sum(len(items) for items in owned.values())
            self._pending = others + reordered
            self.logger.info(
                'Reordered %d items for %s (%d dropped)', len(reordered), username, dropped
            )
            self.notify()

    def shuffle(self, username: str):
        """Randomly permute a user's pending items within the slots they occupy."""
        with self.lock:
            slots = [index for index, item in enumerate(self._pending) if item.username == username]
            items = [self._pending[index] for index in slots]
            random.shuffle(items)
            for index, item in zip(slots, items):
                self._pending[index] = item
            self.logger.info('Shuffled %d items for %s', len(items), username)
            self.notify()

    # =========================================================================
    # Playback Support
    # =========================================================================

    def first_pending_for(self, username: str) -> Optional[QueueItem]:
        """Get the oldest pending item of a user."""
        with self.lock:
            for item in self._pending:
                if item.username == username:
                    return item
            return None

    def start(self, item: QueueItem):
        """Take an item out of the pending list and mark it as now playing."""
        with self.lock:
            for index, pending in enumerate(self._pending):
                if pending is item:
                    del self._pending[index]
                    break
            self._now_playing = item

    def finish(self) -> Optional[QueueItem]:
        """Clear the now-playing item and return it."""
        with self.lock:
            item = self._now_playing
            self._now_playing = None
            return item

    @property
    def now_playing(self) -> Optional[QueueItem]:
        with self.lock:
            return self._now_playing

    def peek_state(self) -> PlaylistSnapshot:
        """Get a read-only snapshot of the playlist."""
        with self.lock:
            return PlaylistSnapshot(now_playing=self._now_playing, pending=tuple(self._pending))

    def pending_for(self, username: str) -> List[QueueItem]:
        with self.lock:
            return [item for item in self._pending if item.username == username]

    def __len__(self) -> int:
        with self.lock:
            return len(self._pending)

    def notify(self):
        """Send the current state to the notifier, if any."""
        if self.notifier is None:
            return
        snapshot = self.peek_state()
        try:
            self.notifier(snapshot)
        except Exception as e:
            self.logger.error('Error notifying playlist listeners: %s', e, exc_info=True)
