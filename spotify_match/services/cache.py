"""Session-scoped cache of the last computed analysis"""
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, List, Optional, Tuple

from spotify_match.config import settings
from spotify_match.models.match import AnalysisResult

logger = logging.getLogger(__name__)


class ResultCache:
    """
    Last AnalysisResult per session id.

    Entries expire after ttl_seconds; beyond max_entries the least recently
    used session is evicted.
    """

    def __init__(self, ttl_seconds: float = settings.RESULT_CACHE_TTL_SECONDS,
                 max_entries: int = settings.RESULT_CACHE_MAX_ENTRIES,
                 clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: 'OrderedDict[str, Tuple[float, AnalysisResult]]' = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[AnalysisResult]:
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            stored_at, result = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[session_id]
                logger.debug(f"Cached match data expired for session {session_id}.")
                return None
            self._entries.move_to_end(session_id)
            return result

    def set(self, session_id: str, result: AnalysisResult) -> None:
        with self._lock:
            self._entries[session_id] = (self._clock(), result)
            self._entries.move_to_end(session_id)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cached match data of session {evicted}.")
        logger.info(f"Match data cached for session {session_id}.")

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def playlist_uris(self, session_id: str, limit: int = 100) -> List[str]:
        """Track URIs of the cached common tracks, for the playlist creator"""
        result = self.get(session_id)
        if result is None:
            return []
        return [track.uri for track in result.common_tracks if track.uri][:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
