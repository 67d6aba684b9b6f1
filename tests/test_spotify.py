"""Tests for the Spotify API client and top-item pagination."""

from unittest.mock import MagicMock

import pytest
import requests
from spotify_match.exceptions import (
    AuthenticationRequiredError,
    RateLimitExceededError,
    UpstreamFetchError,
    UpstreamTimeoutError,
)
from spotify_match.models.spotify import ItemType, TimeRange, UserSlot
from spotify_match.services.spotify import PAGE_SIZE, SpotifyAPI

from tests.conftest import api_track, make_response

BASE = "https://api.spotify.com/v1"


def page(start: int, count: int, next_url=None) -> dict:
    return {"items": [{"id": f"id{i}"} for i in range(start, start + count)], "next": next_url}


@pytest.fixture
def session() -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def api(session: MagicMock) -> SpotifyAPI:
    return SpotifyAPI("token", base_url=BASE, timeout=5, session=session)


class TestConstruction:
    def test_empty_token_rejected(self) -> None:
        with pytest.raises(ValueError):
            SpotifyAPI("")

    def test_sets_bearer_header(self, api: SpotifyAPI, session: MagicMock) -> None:
        assert session.headers["Authorization"] == "Bearer token"


class TestPagination:
    def test_cap_reached_over_three_pages(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.side_effect = [
            make_response(200, page(0, 50, f"{BASE}/me/top/tracks?offset=50")),
            make_response(200, page(50, 50, f"{BASE}/me/top/tracks?offset=100")),
            make_response(200, page(100, 50, f"{BASE}/me/top/tracks?offset=150")),
        ]

        items = api.get_top_items(ItemType.TRACKS, TimeRange.SHORT_TERM, cap=120)

        assert session.get.call_count == 3
        assert len(items) == 120
        assert items[-1]["id"] == "id119"
        first_url = session.get.call_args_list[0].args[0]
        assert first_url == f"{BASE}/me/top/tracks?limit={PAGE_SIZE}&time_range=short_term"
        assert session.get.call_args_list[1].args[0] == f"{BASE}/me/top/tracks?offset=50"

    def test_stops_when_no_next(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.return_value = make_response(200, page(0, 30))

        items = api.get_top_items(ItemType.ARTISTS, TimeRange.LONG_TERM, cap=100)

        assert session.get.call_count == 1
        assert len(items) == 30

    def test_empty_page_with_next_stops(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.side_effect = [
            make_response(200, page(0, 50, f"{BASE}/next1")),
            make_response(200, page(0, 0, f"{BASE}/next2")),
            make_response(200, page(50, 50)),
        ]

        items = api.get_top_items(ItemType.TRACKS, TimeRange.MEDIUM_TERM, cap=200)

        assert session.get.call_count == 2
        assert len(items) == 50

    def test_exact_page_multiple_does_not_overfetch(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.side_effect = [
            make_response(200, page(0, 50, f"{BASE}/next1")),
            make_response(200, page(50, 50, f"{BASE}/next2")),
        ]

        items = api.get_top_items(ItemType.ARTISTS, TimeRange.MEDIUM_TERM, cap=100)

        assert session.get.call_count == 2
        assert len(items) == 100

    def test_malformed_page_stops(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.return_value = make_response(200, {"unexpected": True})

        assert api.get_top_items(ItemType.TRACKS, TimeRange.MEDIUM_TERM, cap=50) == []

    def test_non_positive_cap(self, api: SpotifyAPI) -> None:
        with pytest.raises(ValueError):
            api.get_top_items(ItemType.TRACKS, TimeRange.MEDIUM_TERM, cap=0)

    def test_get_top_tracks_parses_tracks(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.return_value = make_response(200, {"items": [api_track("t1"), api_track("t2")], "next": None})

        tracks = api.get_top_tracks(TimeRange.MEDIUM_TERM, cap=10)

        assert [t.id for t in tracks] == ["t1", "t2"]
        assert tracks[0].album.year == "2019"
        assert tracks[0].primary_artist_name == "Artist One"
        assert tracks[0].external_url == "https://open.spotify.com/track/t1"

    def test_get_top_artists_parses_genres(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.return_value = make_response(
            200, {"items": [{"id": "a1", "name": "Band", "genres": ["rock", None], "popularity": 70}], "next": None}
        )

        artists = api.get_top_artists(TimeRange.MEDIUM_TERM, cap=10)

        assert artists[0].genres == ["rock"]
        assert artists[0].popularity == 70


class TestErrorMapping:
    def test_unauthorized(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.return_value = make_response(401, {"error": {"status": 401}})

        with pytest.raises(AuthenticationRequiredError):
            api.get_top_items(ItemType.TRACKS, TimeRange.MEDIUM_TERM, cap=50)

    def test_rate_limited_with_retry_after(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.return_value = make_response(429, {}, headers={"Retry-After": "7"})

        with pytest.raises(RateLimitExceededError) as exc_info:
            api.get_top_items(ItemType.TRACKS, TimeRange.MEDIUM_TERM, cap=50)

        assert exc_info.value.retry_after == 7
        assert exc_info.value.status_code == 429

    def test_timeout(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.side_effect = requests.exceptions.ReadTimeout("slow")

        with pytest.raises(UpstreamTimeoutError):
            api.get_top_items(ItemType.ARTISTS, TimeRange.MEDIUM_TERM, cap=50)

    def test_server_error_names_endpoint(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.return_value = make_response(500)

        with pytest.raises(UpstreamFetchError) as exc_info:
            api.get_top_items(ItemType.ARTISTS, TimeRange.MEDIUM_TERM, cap=50)

        assert exc_info.value.endpoint == "/me/top/artists"
        assert str(exc_info.value).startswith("Failed to fetch /me/top/artists")

    def test_failure_on_later_page_propagates(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.side_effect = [
            make_response(200, page(0, 50, f"{BASE}/next1")),
            make_response(502),
        ]

        with pytest.raises(UpstreamFetchError):
            api.get_top_items(ItemType.TRACKS, TimeRange.MEDIUM_TERM, cap=100)

    def test_invalid_json(self, api: SpotifyAPI, session: MagicMock) -> None:
        response = make_response(200)
        response._content = b"<html>"
        session.get.return_value = response

        with pytest.raises(UpstreamFetchError):
            api.get_top_items(ItemType.TRACKS, TimeRange.MEDIUM_TERM, cap=50)


class TestUserInfo:
    def test_profile_from_me(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.return_value = make_response(200, {
            "id": "alice",
            "display_name": None,
            "images": [{"url": "https://img/small", "width": 64}, {"url": "https://img/big", "width": 300}],
            "country": "BR",
        })

        profile = api.get_user_info(UserSlot.TWO)

        assert profile.id == "alice"
        assert profile.display_name == "User 2"
        assert profile.image_url == "https://img/big"

    def test_missing_id(self, api: SpotifyAPI, session: MagicMock) -> None:
        session.get.return_value = make_response(200, {"display_name": "x"})

        with pytest.raises(UpstreamFetchError):
            api.get_user_info()
