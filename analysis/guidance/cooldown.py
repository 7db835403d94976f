from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Hashable, Optional

_LOG = logging.getLogger(__name__)

ANNOUNCE_COOLDOWN_MS = 3000.0
MAX_TRACKS = 512


class AnnounceCooldown:
    """Rate-limits spoken announcements per tracked object.

    With a track id, the window applies to that id only; without one, a
    single shared timestamp is used. ``try_announce`` is test-and-set: an
    allowed call records ``now_ms`` immediately.

    An entry older than the window behaves exactly like a missing one, so
    expired ids are swept whenever the map grows past ``max_tracks``; if it
    is still too large the least recently announced ids are dropped.

    Not thread-safe on its own; :class:`GuidanceHub` serialises access.
    """

    def __init__(self, cooldown_ms: float = ANNOUNCE_COOLDOWN_MS, max_tracks: int = MAX_TRACKS) -> None:
        self.cooldown_ms = float(cooldown_ms)
        self.max_tracks = max(1, int(max_tracks))
        self._by_id: OrderedDict[Hashable, float] = OrderedDict()
        self._global_ms: Optional[float] = None

    def __len__(self) -> int:
        return len(self._by_id)

    def last_announced(self, track_id: Optional[Hashable]) -> Optional[float]:
        if track_id is None:
            return self._global_ms
        return self._by_id.get(track_id)

    def _due(self, last: Optional[float], now_ms: float) -> bool:
        return last is None or now_ms - last > self.cooldown_ms

    def try_announce(self, track_id: Optional[Hashable], now_ms: float) -> bool:
        now_ms = float(now_ms)
        if track_id is None:
            if not self._due(self._global_ms, now_ms):
                return False
            self._global_ms = now_ms
            return True

        if not self._due(self._by_id.get(track_id), now_ms):
            return False
        self._by_id[track_id] = now_ms
        self._by_id.move_to_end(track_id)
        if len(self._by_id) > self.max_tracks:
            self._shrink(now_ms)
        return True

    def sweep(self, now_ms: float) -> int:
        """Drop ids whose window has expired; returns how many were removed."""
        expired = [k for k, t in self._by_id.items() if self._due(t, now_ms)]
        for k in expired:
            del self._by_id[k]
        return len(expired)

    def _shrink(self, now_ms: float) -> None:
        removed = self.sweep(now_ms)
        while len(self._by_id) > self.max_tracks:
            self._by_id.popitem(last=False)
            removed += 1
        _LOG.debug("Cooldown map trimmed by %d ids (%d left)", removed, len(self._by_id))
