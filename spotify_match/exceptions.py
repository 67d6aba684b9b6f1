"""Error taxonomy of the match engine.

Every exception carries an ``error_code`` and an HTTP ``status_code`` so the
web layer can translate it into a JSON error body without inspecting
messages.
"""
from typing import Optional


class MatchError(Exception):
    """Base exception for spotify_match."""

    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationRequiredError(MatchError):
    """Credential missing, revoked or expired beyond repair.

    The affected user slot has already been purged from the token store when
    this is raised; the user has to log in again.
    """

    error_code = "authentication_required"
    status_code = 401


class TokenRefreshFailedError(MatchError):
    """Transient failure while refreshing an access token.

    The stored credential is kept so the next request can retry.
    """

    error_code = "token_refresh_failed"
    status_code = 401


class RateLimitExceededError(MatchError):
    """Upstream answered 429 Too Many Requests."""

    error_code = "rate_limit_exceeded"
    status_code = 429

    def __init__(self, message: str, retry_after: Optional[int] = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class UpstreamTimeoutError(MatchError):
    """Upstream call did not answer within its timeout."""

    error_code = "spotify_api_timeout"
    status_code = 504


class UpstreamFetchError(MatchError):
    """Any other upstream failure. Carries the endpoint that failed."""

    error_code = "spotify_api_error"
    status_code = 502

    def __init__(self, endpoint: str, message: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"Failed to fetch {endpoint} - {message}")


class MissingInputDataError(MatchError):
    """Required item lists were absent when the analysis ran."""

    error_code = "missing_input_data"
    status_code = 500
