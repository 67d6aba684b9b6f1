"""Best-effort preview enrichment of common tracks"""
import dataclasses
import logging
from concurrent.futures import Future
from typing import Callable, Dict, List, Optional

from spotify_match.config import settings
from spotify_match.models.spotify import Track
from spotify_match.services.deezer import DeezerClient
from spotify_match.utils.pacing import PacedExecutor

logger = logging.getLogger(__name__)


class PreviewEnricher:
    """Fills missing preview_url fields from Deezer without ever failing the caller"""

    def __init__(self, client: Optional[DeezerClient] = None,
                 max_workers: int = settings.PREVIEW_MAX_WORKERS,
                 min_interval: float = settings.PREVIEW_DISPATCH_INTERVAL_SECONDS,
                 executor_factory: Optional[Callable[[], PacedExecutor]] = None):
        self.client = client or DeezerClient()
        self.executor_factory = executor_factory or (lambda: PacedExecutor(max_workers, min_interval))

    @staticmethod
    def needs_preview(track: Track) -> bool:
        return bool(track is not None and not track.preview_url and track.name and track.primary_artist_name)

    def enrich(self, tracks: List[Track]) -> List[Track]:
        """
        Return tracks in the same order, with a Deezer preview attached to
        copies of those that had none. Input tracks are never mutated.
        """
        pending = [index for index, track in enumerate(tracks) if self.needs_preview(track)]
        if not pending:
            return list(tracks)

        enriched = list(tracks)
        futures: Dict[int, Future] = {}
        with self.executor_factory() as executor:
            for index in pending:
                track = tracks[index]
                futures[index] = executor.submit(self.client.search_preview, track.name, track.primary_artist_name)

        found = 0
        for index, future in futures.items():
            track = tracks[index]
            try:
                preview_url = future.result()
            except Exception as e:
                logger.warning(f"Preview lookup failed for track {track.id} (\"{track.name}\"): {e}")
                continue
            if preview_url:
                enriched[index] = dataclasses.replace(track, preview_url=preview_url)
                found += 1

        logger.info(f"Processed {len(tracks)} common tracks for previews, {len(pending)} looked up, {found} found on Deezer.")
        return enriched
