"""Deezer search used to backfill missing preview clips"""
import logging
from typing import Dict, List, Optional

import requests

from spotify_match.config import settings

logger = logging.getLogger(__name__)


class DeezerClient:
    """Unauthenticated client for Deezer's public search endpoint"""

    def __init__(self, base_url: str = settings.DEEZER_API_URL,
                 timeout: float = settings.PREVIEW_REQUEST_TIMEOUT_SECONDS,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def search(self, track_name: str, artist_name: str) -> List[Dict]:
        """Ranked candidates for a title/artist pair"""
        params = {'q': f'artist:"{artist_name}" track:"{track_name}"'}
        response = self.session.get(f"{self.base_url}/search", params=params, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        candidates = data.get('data') if isinstance(data, dict) else None
        return [c for c in candidates if isinstance(c, dict)] if isinstance(candidates, list) else []

    @staticmethod
    def best_match(candidates: List[Dict], track_name: str, artist_name: str) -> Optional[Dict]:
        """Exact case-insensitive title and artist match, else the top-ranked candidate"""
        if not candidates:
            return None
        title = track_name.lower()
        artist = artist_name.lower()
        for candidate in candidates:
            candidate_artist = candidate.get('artist')
            if not isinstance(candidate_artist, dict):
                candidate_artist = {}
            if (str(candidate.get('title') or '').lower() == title
                    and str(candidate_artist.get('name') or '').lower() == artist):
                return candidate
        return candidates[0]

    def search_preview(self, track_name: str, artist_name: str) -> Optional[str]:
        """Preview clip URL for a track, None when Deezer has none or the lookup fails"""
        try:
            match = self.best_match(self.search(track_name, artist_name), track_name, artist_name)
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Error searching Deezer for \"{track_name}\" by {artist_name}: {e}")
            return None
        if match and match.get('preview'):
            return match['preview']
        return None
