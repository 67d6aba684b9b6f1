"""Spotify OAuth: authorization code exchange and access token lifecycle"""
import logging
import secrets
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import requests
from requests.auth import HTTPBasicAuth

from spotify_match.config import Settings, settings as default_settings
from spotify_match.exceptions import (
    AuthenticationRequiredError,
    MatchError,
    TokenRefreshFailedError,
    UpstreamFetchError,
    UpstreamTimeoutError,
)
from spotify_match.models.spotify import UserProfile, UserSlot
from spotify_match.services.spotify import SpotifyAPI
from spotify_match.services.token_store import CredentialField, TokenStore

logger = logging.getLogger(__name__)


def _as_slot(slot) -> UserSlot:
    try:
        return UserSlot(int(slot))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid user slot {slot!r} (must be 1 or 2)") from None


class SpotifyAuth:
    """
    Owns the credential records of the token store.

    ensure_valid_token() is the only place where expiry causes a write, and
    every irrecoverable failure purges the slot before raising
    AuthenticationRequiredError.
    """

    def __init__(self, store: TokenStore, settings: Settings = default_settings,
                 http: Optional[requests.Session] = None,
                 api_factory: Optional[Callable[[str], SpotifyAPI]] = None,
                 clock: Callable[[], float] = time.time):
        if not settings.SPOTIFY_CLIENT_ID or not settings.SPOTIFY_CLIENT_SECRET:
            raise ValueError("SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET are required")
        self.store = store
        self.settings = settings
        self.http = http or requests.Session()
        self.api_factory = api_factory or (lambda token: SpotifyAPI(
            token, base_url=settings.SPOTIFY_API_URL, timeout=settings.SPOTIFY_REQUEST_TIMEOUT_SECONDS
        ))
        self.clock = clock
        self.token_url = f"{settings.SPOTIFY_ACCOUNTS_URL.rstrip('/')}/api/token"
        self.refresh_margin_ms = settings.TOKEN_REFRESH_MARGIN_SECONDS * 1000

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    @staticmethod
    def new_state() -> str:
        """Random value for the OAuth state parameter"""
        return secrets.token_hex(8)

    def build_authorize_url(self, state: str) -> str:
        """URL the user is redirected to in order to grant access"""
        params = {
            'response_type': 'code',
            'client_id': self.settings.SPOTIFY_CLIENT_ID,
            'scope': self.settings.SPOTIFY_SCOPES,
            'redirect_uri': self.settings.SPOTIFY_REDIRECT_URI,
            'state': state,
            'show_dialog': 'true'
        }
        return f"{self.settings.SPOTIFY_ACCOUNTS_URL.rstrip('/')}/authorize?{urlencode(params)}"

    def _post_token(self, data: Dict[str, str]) -> requests.Response:
        return self.http.post(
            self.token_url,
            data=data,
            auth=HTTPBasicAuth(self.settings.SPOTIFY_CLIENT_ID, self.settings.SPOTIFY_CLIENT_SECRET),
            timeout=self.settings.SPOTIFY_REQUEST_TIMEOUT_SECONDS
        )

    @staticmethod
    def _error_body(response: Optional[requests.Response]) -> Dict[str, Any]:
        if response is None:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _store_tokens(self, session_id: str, slot: UserSlot, payload: Dict[str, Any], now_ms: int) -> str:
        access_token = payload['access_token']
        try:
            expires_in = int(payload.get('expires_in', 3600))
        except (TypeError, ValueError):
            raise ValueError(f"token response carries an invalid expires_in: {payload.get('expires_in')!r}") from None
        self.store.set(session_id, slot, CredentialField.ACCESS_TOKEN, access_token)
        self.store.set(session_id, slot, CredentialField.EXPIRES_AT, now_ms + expires_in * 1000)
        new_refresh_token = payload.get('refresh_token')
        if new_refresh_token:
            self.store.set(session_id, slot, CredentialField.REFRESH_TOKEN, new_refresh_token)
            logger.info(f"Refresh token stored/updated for user {int(slot)}.")
        else:
            logger.info(f"No new refresh token provided for user {int(slot)}. Keeping old one.")
        return access_token

    def exchange_code(self, session_id: str, slot, code: str) -> UserProfile:
        """
        Complete the OAuth callback for a slot: exchange the code, store the
        tokens and snapshot the user's profile.

        Any failure leaves the slot empty.
        """
        slot = _as_slot(slot)
        now_ms = self._now_ms()
        try:
            response = self._post_token({
                'grant_type': 'authorization_code',
                'code': code,
                'redirect_uri': self.settings.SPOTIFY_REDIRECT_URI
            })
            response.raise_for_status()
            payload = response.json()
            if not isinstance(payload, dict) or not payload.get('access_token'):
                raise ValueError("token response carries no access_token")

            access_token = self._store_tokens(session_id, slot, payload, now_ms)
            profile = self.api_factory(access_token).get_user_info(slot)
            self.store.set(session_id, slot, CredentialField.PROFILE, profile.to_dict())
            logger.info(f"User {int(slot)} ({profile.display_name}) successfully authenticated.")
            return profile

        except requests.exceptions.Timeout as e:
            self.store.purge(session_id, slot)
            logger.error(f"Timeout during token exchange for user {int(slot)}: {e}")
            raise UpstreamTimeoutError("Spotify token endpoint did not answer in time") from e
        except requests.exceptions.HTTPError as e:
            self.store.purge(session_id, slot)
            status = e.response.status_code if e.response is not None else None
            body = self._error_body(e.response)
            logger.error(f"Error during token exchange for user {int(slot)}: Status {status} - {body}")
            if status in (400, 401):
                raise AuthenticationRequiredError(
                    body.get('error_description') or "Invalid or expired authorization code. Log in again."
                ) from e
            raise UpstreamFetchError('/api/token', str(e)) from e
        except MatchError:
            self.store.purge(session_id, slot)
            raise
        except (requests.exceptions.RequestException, ValueError) as e:
            self.store.purge(session_id, slot)
            logger.error(f"Error during token exchange or profile fetch for user {int(slot)}: {e}")
            raise UpstreamFetchError('/api/token', str(e)) from e

    def ensure_valid_token(self, session_id: str, slot) -> str:
        """
        Return a usable access token for the slot, refreshing it when it
        expires within the safety margin.

        Raises:
            AuthenticationRequiredError: No refresh token, or Spotify rejected
                it (invalid_grant / 401). The slot is purged.
            TokenRefreshFailedError: Any other refresh failure. The stored
                credential is kept so a later request can retry.
        """
        slot = _as_slot(slot)
        access_token = self.store.get(session_id, slot, CredentialField.ACCESS_TOKEN)
        expires_at = self.store.get(session_id, slot, CredentialField.EXPIRES_AT)
        refresh_token = self.store.get(session_id, slot, CredentialField.REFRESH_TOKEN)
        now_ms = self._now_ms()

        if access_token and expires_at and now_ms < expires_at - self.refresh_margin_ms:
            return access_token

        remaining = f"{(expires_at - now_ms) / 1000:.0f}s left" if expires_at else "no expiry stored"
        logger.info(f"Token for user {int(slot)} expired or nearing expiry ({remaining}). Refreshing...")

        if not refresh_token:
            logger.error(f"No refresh token available for user {int(slot)}. Requires re-login.")
            self.store.purge(session_id, slot)
            raise AuthenticationRequiredError(f"User {int(slot)} must log in again")

        try:
            response = self._post_token({
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token
            })
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            body = self._error_body(e.response)
            logger.error(f"Error refreshing token for user {int(slot)}: Status {status} - {body}")
            if (status == 400 and body.get('error') == 'invalid_grant') or status == 401:
                logger.error(f"Refresh token rejected for user {int(slot)}. Clearing session data.")
                self.store.purge(session_id, slot)
                raise AuthenticationRequiredError(f"User {int(slot)} must log in again") from e
            raise TokenRefreshFailedError(f"Token refresh failed for user {int(slot)} (status {status})") from e
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Error refreshing token for user {int(slot)}: {e}")
            raise TokenRefreshFailedError(f"Token refresh failed for user {int(slot)}: {e}") from e

        if not isinstance(payload, dict) or not payload.get('access_token'):
            logger.error(f"Token refresh response for user {int(slot)} carries no access_token.")
            raise TokenRefreshFailedError(f"Token refresh failed for user {int(slot)}: empty response")

        try:
            new_access_token = self._store_tokens(session_id, slot, payload, now_ms)
        except ValueError as e:
            logger.error(f"Token refresh response for user {int(slot)} is malformed: {e}")
            raise TokenRefreshFailedError(f"Token refresh failed for user {int(slot)}: {e}") from e
        logger.info(f"Token successfully refreshed for user {int(slot)}. New expiry in {payload.get('expires_in', 3600)} seconds.")
        return new_access_token

    def auth_status(self, session_id: str) -> Dict[str, Any]:
        """Which slots of the session are logged in, with their profiles"""
        status: Dict[str, Any] = {}
        for slot in UserSlot:
            access_token = self.store.get(session_id, slot, CredentialField.ACCESS_TOKEN)
            profile = self.store.get(session_id, slot, CredentialField.PROFILE)
            logged_in = bool(access_token and profile)
            status[f'user{int(slot)}_logged_in'] = logged_in
            status[f'user{int(slot)}_profile'] = profile if logged_in else None
        return status
