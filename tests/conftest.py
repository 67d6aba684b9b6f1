"""Test fixtures and configuration."""

import json
from typing import Any, Dict, List, Optional

import pytest
import requests
from spotify_match.config import Settings
from spotify_match.models.spotify import (
    Album,
    Artist,
    ArtistRef,
    Track,
    UserProfile,
)
from spotify_match.services.token_store import InMemoryTokenStore

NOW_SECONDS = 1_700_000_000.0
NOW_MS = int(NOW_SECONDS * 1000)


def make_response(
    status_code: int = 200,
    json_body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    url: str = "https://api.spotify.com/v1/test",
) -> requests.Response:
    """Build a real requests.Response so raise_for_status() behaves as in production."""
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(json_body).encode() if json_body is not None else b""
    response.headers.update(headers or {})
    response.url = url
    return response


def make_track(
    track_id: str,
    popularity: Optional[int] = 50,
    album_id: Optional[str] = None,
    artist: str = "Artist",
    name: Optional[str] = None,
    preview_url: Optional[str] = None,
) -> Track:
    album = Album(id=album_id, name=f"Album {album_id}", artists=[ArtistRef(id="a", name=artist)]) if album_id else None
    return Track(
        id=track_id,
        name=name or f"Track {track_id}",
        popularity=popularity,
        artists=[ArtistRef(id=f"artist-{artist}", name=artist)],
        album=album,
        preview_url=preview_url,
        uri=f"spotify:track:{track_id}",
    )


def make_artist(artist_id: str, genres: Optional[List[str]] = None, popularity: int = 50) -> Artist:
    return Artist(id=artist_id, name=f"Artist {artist_id}", popularity=popularity, genres=genres or [])


def api_track(track_id: str, **extra: Any) -> Dict[str, Any]:
    """Track object as returned by /me/top/tracks."""
    data = {
        "id": track_id,
        "name": f"Track {track_id}",
        "popularity": 42,
        "artists": [{"id": "artist1", "name": "Artist One"}],
        "album": {
            "id": "album1",
            "name": "Album One",
            "artists": [{"id": "artist1", "name": "Artist One"}],
            "images": [
                {"url": "https://img/640.jpg", "width": 640, "height": 640},
                {"url": "https://img/300.jpg", "width": 300, "height": 300},
                {"url": "https://img/64.jpg", "width": 64, "height": 64},
            ],
            "release_date": "2019-05-03",
            "external_urls": {"spotify": "https://open.spotify.com/album/album1"},
            "uri": "spotify:album:album1",
        },
        "preview_url": None,
        "uri": f"spotify:track:{track_id}",
        "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
    }
    data.update(extra)
    return data


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        _env_file=None,
        SPOTIFY_CLIENT_ID="client-id",
        SPOTIFY_CLIENT_SECRET="client-secret",
        SPOTIFY_REDIRECT_URI="http://localhost:3000/match/callback",
        PREVIEW_DISPATCH_INTERVAL_SECONDS=0,
    )


@pytest.fixture
def store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def clock():
    """Fixed wall clock for token expiry checks."""
    return lambda: NOW_SECONDS


@pytest.fixture
def profile1() -> UserProfile:
    return UserProfile(id="alice", display_name="Alice", image_url=None, country="BR", product="premium", uri="spotify:user:alice")


@pytest.fixture
def profile2() -> UserProfile:
    return UserProfile(id="bob", display_name="Bob", image_url=None, country="PT", product="free", uri="spotify:user:bob")
