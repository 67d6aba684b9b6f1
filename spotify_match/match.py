"""Main compatibility calculation for two logged-in Spotify users"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Optional, Union

from spotify_match.compatibility import CompatibilityAnalyzer, ScoreBreakdown
from spotify_match.config import Settings, settings as default_settings
from spotify_match.exceptions import AuthenticationRequiredError, MatchError
from spotify_match.models.match import AnalysisResult
from spotify_match.models.spotify import TimeRange, UserSlot
from spotify_match.services.auth import SpotifyAuth
from spotify_match.services.cache import ResultCache
from spotify_match.services.preview import PreviewEnricher
from spotify_match.services.spotify import SpotifyAPI
from spotify_match.services.token_store import TokenStore

logger = logging.getLogger(__name__)

class MatchService:
    """Handles the compatibility calculation of a session's two user slots"""

    def __init__(self, store: TokenStore, auth: SpotifyAuth, cache: ResultCache,
                 settings: Settings = default_settings,
                 analyzer: Optional[CompatibilityAnalyzer] = None,
                 enricher: Optional[PreviewEnricher] = None,
                 api_factory: Optional[Callable[[str], SpotifyAPI]] = None):
        """Initialize the calculation with its collaborators"""
        self.store = store
        self.auth = auth
        self.cache = cache
        self.settings = settings
        self.analyzer = analyzer or CompatibilityAnalyzer(settings.score_weights, genre_limit=settings.TOP_GENRES_LIMIT)
        self.enricher = enricher or PreviewEnricher(
            max_workers=settings.PREVIEW_MAX_WORKERS,
            min_interval=settings.PREVIEW_DISPATCH_INTERVAL_SECONDS
        )
        self.api_factory = api_factory or auth.api_factory

    def _purge_both(self, session_id: str) -> None:
        for slot in UserSlot:
            self.store.purge(session_id, slot)

    def _ensure_tokens(self, session_id: str, executor: ThreadPoolExecutor) -> Dict[UserSlot, str]:
        futures = {executor.submit(self.auth.ensure_valid_token, session_id, slot): slot for slot in UserSlot}
        tokens: Dict[UserSlot, str] = {}
        for future in as_completed(futures):
            tokens[futures[future]] = future.result()
        return tokens

    def calculate(self, session_id: str, time_range: Union[TimeRange, str] = TimeRange.MEDIUM_TERM) -> AnalysisResult:
        """
        Compare the top tracks and artists of the session's two users.

        Raises:
            ValueError: Unknown time range
            MatchError: Any classified failure. AuthenticationRequiredError
                also clears both users' credentials. The session's cached
                result is discarded on every failure.
        """
        time_range = TimeRange(time_range)
        logger.info(f"Calculating match for session {session_id} for time range: {time_range.value}")

        try:
            with ThreadPoolExecutor(max_workers=self.settings.FETCH_MAX_WORKERS) as executor:
                # --- Stage 1: Valid tokens for both users ---
                tokens = self._ensure_tokens(session_id, executor)

                user1_profile = self.store.profile(session_id, UserSlot.ONE)
                user2_profile = self.store.profile(session_id, UserSlot.TWO)
                if not user1_profile or not user2_profile:
                    logger.error("Missing profile data after token validation.")
                    raise AuthenticationRequiredError("Both users need to be logged in with valid profiles.")

                is_same_user = user1_profile.id == user2_profile.id
                if is_same_user:
                    logger.info(f"Same user logged in as both ({user1_profile.display_name}).")

                # --- Stage 2: Fetch the four top lists concurrently ---
                logger.info(f"Tokens validated for {user1_profile.display_name} and {user2_profile.display_name}. Fetching top items...")
                api1 = self.api_factory(tokens[UserSlot.ONE])
                api2 = self.api_factory(tokens[UserSlot.TWO])
                track_limit = self.settings.SPOTIFY_TRACK_LIMIT
                artist_limit = self.settings.SPOTIFY_ARTIST_LIMIT
                futures = {
                    executor.submit(api1.get_top_tracks, time_range, track_limit): 'user1_tracks',
                    executor.submit(api1.get_top_artists, time_range, artist_limit): 'user1_artists',
                    executor.submit(api2.get_top_tracks, time_range, track_limit): 'user2_tracks',
                    executor.submit(api2.get_top_artists, time_range, artist_limit): 'user2_artists',
                }
                fetched = {}
                for future in as_completed(futures):
                    # First failure propagates; the executor still lets the siblings finish
                    fetched[futures[future]] = future.result()

            logger.info(
                f"Spotify data fetched. User1 Tracks: {len(fetched['user1_tracks'])}, Artists: {len(fetched['user1_artists'])}. "
                f"User2 Tracks: {len(fetched['user2_tracks'])}, Artists: {len(fetched['user2_artists'])}."
            )

            # --- Stage 3: Common items ---
            comparison = self.analyzer.compare(
                fetched['user1_tracks'], fetched['user2_tracks'],
                fetched['user1_artists'], fetched['user2_artists']
            )

            # --- Stage 4: Deezer previews for common tracks ---
            common_tracks = self.enricher.enrich(comparison.common_tracks)

            # --- Stage 5: Score ---
            if is_same_user:
                score = ScoreBreakdown.fixed(100)
            else:
                score = self.analyzer.calculate_score(
                    fetched['user1_tracks'], fetched['user2_tracks'],
                    fetched['user1_artists'], fetched['user2_artists'],
                    common_tracks, comparison.common_artists,
                    comparison.common_albums, comparison.top_genres
                )
            logger.info(f"Analysis complete. Compatibility Score: {score.total_score}%")

            result = AnalysisResult.build(
                common_tracks=common_tracks,
                common_artists=comparison.common_artists,
                common_albums=comparison.common_albums,
                top_genres=comparison.top_genres,
                score=score,
                user1_profile=user1_profile,
                user2_profile=user2_profile,
                time_range=time_range.value
            )
            logger.info(
                f"Sending {len(result.common_tracks)} common tracks, {len(result.common_artists)} common artists, "
                f"{len(result.common_albums)} common albums, {len(result.top_genres)} common genres."
            )
            self.cache.set(session_id, result)
            return result

        except MatchError as e:
            logger.error(f"Match calculation failed for session {session_id}: {e.error_code} - {e}")
            if isinstance(e, AuthenticationRequiredError):
                self._purge_both(session_id)
            self.cache.delete(session_id)
            logger.info(f"Cached data cleared for session {session_id} due to error.")
            raise
        except Exception:
            self.cache.delete(session_id)
            logger.exception(f"Unexpected error calculating match for session {session_id}")
            raise
