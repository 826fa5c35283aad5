# In-memory live leaderboard shared by every running session.

from __future__ import annotations
import threading
from typing import Dict, List, Optional

from .models import LeaderboardEntry


class Leaderboard:
    """Thread-safe player -> latest score map.

    Updates are last-writer-wins per player. Reads take a consistent
    snapshot under the same lock, so an entry is never observed mid-update.
    Ties for the maximum go to whichever player was inserted first; callers
    should not rely on that order.
    """

    def __init__(self):
        self._scores: Dict[str, int] = {}
        self._lock = threading.Lock()

    def update(self, player_id: str, score: int) -> None:
        with self._lock:
            self._scores[player_id] = score

    def get(self, player_id: str) -> Optional[int]:
        with self._lock:
            return self._scores.get(player_id)

    def current_maximum(self) -> Optional[LeaderboardEntry]:
        with self._lock:
            items = list(self._scores.items())
        best: Optional[LeaderboardEntry] = None
        for pid, score in items:
            if best is None or score > best.score:
                best = LeaderboardEntry(player_id=pid, score=score)
        return best

    def snapshot(self) -> List[LeaderboardEntry]:
        with self._lock:
            items = list(self._scores.items())
        # sorted() is stable, so equal scores keep insertion order
        items.sort(key=lambda kv: -kv[1])
        return [LeaderboardEntry(player_id=pid, score=score) for pid, score in items]

    def __len__(self) -> int:
        with self._lock:
            return len(self._scores)
