"""
Tracks which episodes have already been emitted by play-once playlist items.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Set

from .locks import RWLock

LOGGER = logging.getLogger(__name__)


class PlayedEpisodeTracker:
    """Shared ``show name -> played episode ids`` map.

    Only consulted for items with ``repeat_count == 0``. The map grows until
    :meth:`reset` is called (playlist replaced or configuration loaded).
    """

    def __init__(self) -> None:
        self._lock = RWLock()
        self._played: Dict[str, Set[int]] = {}

    def should_skip(self, show_name: str, episode_id: int) -> bool:
        with self._lock.read_locked():
            return episode_id in self._played.get(show_name, ())

    def mark_played(self, show_name: str, episode_id: int) -> None:
        with self._lock.write_locked():
            self._played.setdefault(show_name, set()).add(episode_id)
        LOGGER.debug("Marked %s #%d as played", show_name, episode_id)

    def reset(self) -> None:
        with self._lock.write_locked():
            self._reset_unlocked()

    def _reset_unlocked(self) -> None:
        # Caller already holds the write lock (see AppState multi-field updates).
        if self._played:
            LOGGER.info("Clearing played-episode history (%d shows)", len(self._played))
        self._played = {}

    def snapshot(self) -> Dict[str, List[int]]:
        with self._lock.read_locked():
            return {show: sorted(ids) for show, ids in self._played.items()}

    @property
    def lock(self) -> RWLock:
        return self._lock
