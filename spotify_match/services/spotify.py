"""Spotify API integration service"""
import logging
from typing import Dict, List, Optional, Any

import requests

from spotify_match.config import settings
from spotify_match.exceptions import (
    AuthenticationRequiredError,
    RateLimitExceededError,
    UpstreamFetchError,
    UpstreamTimeoutError,
)
from spotify_match.models.spotify import Artist, ItemType, TimeRange, Track, UserProfile, UserSlot

logger = logging.getLogger(__name__)

# Spotify's max page size for /me/top/{type}
PAGE_SIZE = 50


class SpotifyAPI:
    """Handles all Spotify API interactions for one user's access token"""

    def __init__(self, token: str, base_url: str = settings.SPOTIFY_API_URL,
                 timeout: float = settings.SPOTIFY_REQUEST_TIMEOUT_SECONDS,
                 session: Optional[requests.Session] = None):
        """
        Initialize with Spotify access token
        """
        if not token:
            raise ValueError("Spotify token cannot be empty")
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Accept': 'application/json'
        })

    def get_user_info(self, slot: UserSlot = UserSlot.ONE) -> UserProfile:
        """Get basic user profile information"""
        user_info = self._make_request(f'{self.base_url}/me', endpoint='/me')
        if not user_info.get('id'):
            logger.error(f"Invalid user info response received: {user_info}")
            raise UpstreamFetchError('/me', "response carries no user id")
        logger.info(f"User info fetched successfully for user ID: {user_info['id']}")
        return UserProfile.from_api(user_info, slot)

    def get_top_tracks(self, time_range: TimeRange = TimeRange.MEDIUM_TERM,
                       cap: int = settings.SPOTIFY_TRACK_LIMIT) -> List[Track]:
        """Get user's top tracks, up to cap"""
        items = self.get_top_items(ItemType.TRACKS, time_range, cap)
        return [Track.from_api(item) for item in items if isinstance(item, dict)]

    def get_top_artists(self, time_range: TimeRange = TimeRange.MEDIUM_TERM,
                        cap: int = settings.SPOTIFY_ARTIST_LIMIT) -> List[Artist]:
        """Get user's top artists, up to cap"""
        items = self.get_top_items(ItemType.ARTISTS, time_range, cap)
        return [Artist.from_api(item) for item in items if isinstance(item, dict)]

    def get_top_items(self, item_type: ItemType, time_range: TimeRange, cap: int) -> List[Dict]:
        """
        Get user's top items across as many pages as needed to reach cap

        Args:
            item_type: tracks or artists
            time_range: short_term (4 weeks), medium_term (6 months), or long_term (years)
            cap: Max number of items returned; the last page is truncated.
        """
        if cap <= 0:
            raise ValueError(f"cap must be positive, got {cap}")

        endpoint = f'/me/top/{ItemType(item_type).value}'
        url: Optional[str] = f'{self.base_url}{endpoint}?limit={PAGE_SIZE}&time_range={TimeRange(time_range).value}'
        all_items: List[Dict] = []
        page_count = 0
        logger.info(f"Fetching {endpoint} (range: {TimeRange(time_range).value}, cap: {cap})...")

        while url and len(all_items) < cap:
            response_data = self._make_request(url, endpoint=endpoint)
            page_count += 1
            items = response_data.get('items')
            if not isinstance(items, list):
                logger.warning(f"Unexpected response format for {endpoint}: {response_data}")
                break

            all_items.extend(items)
            url = response_data.get('next') if len(all_items) < cap else None
            if url and not items:
                logger.warning(f"Pagination returned 0 items for {endpoint} with a next cursor set. Stopping.")
                break

        logger.info(f"Fetched {len(all_items)} items for {endpoint} in {page_count} pages (cap {cap}).")
        return all_items[:cap]

    def _make_request(self, url: str, endpoint: str) -> Dict[str, Any]:
        """Make one authenticated GET and translate failures into MatchError kinds"""
        try:
            logger.debug(f"Making request to {url}")
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout fetching {endpoint}: {e}")
            raise UpstreamTimeoutError(f"Spotify did not answer {endpoint} in time") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 401:
                logger.error(f"Spotify token is invalid or expired (401) for {endpoint}.")
                raise AuthenticationRequiredError(f"Spotify rejected the access token for {endpoint}") from e
            if status == 429:
                retry_after = e.response.headers.get('Retry-After')
                logger.warning(f"Rate limit hit (429) for {endpoint}. Retry-After: {retry_after}")
                raise RateLimitExceededError(
                    f"Spotify rate limit exceeded for {endpoint}",
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
                ) from e
            logger.error(f"HTTP error ({status}) for {endpoint}: {e}")
            raise UpstreamFetchError(endpoint, str(e)) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error for {endpoint}: {e}")
            raise UpstreamFetchError(endpoint, str(e)) from e

        try:
            json_response = response.json()
        except ValueError as e:
            logger.error(f"Failed to decode JSON response from {endpoint}. Status: {response.status_code}. Response text: {response.text[:200]}")
            raise UpstreamFetchError(endpoint, "invalid JSON body") from e
        return json_response if isinstance(json_response, dict) else {}
