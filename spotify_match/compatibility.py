"""Compatibility analysis of two users' top tracks and artists"""
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, TypeVar

from spotify_match.config import ScoreWeights
from spotify_match.exceptions import MissingInputDataError
from spotify_match.models.spotify import Album, Artist, Track, UserSlot

logger = logging.getLogger(__name__)

Item = TypeVar('Item', Track, Artist)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (round() rounds half to even)"""
    return int(math.floor(value + 0.5))


@dataclass
class AlbumAggregate:
    """An album and which users listed tracks from it"""
    album: Album
    user_slots: Set[UserSlot] = field(default_factory=set)
    track_ids: Set[str] = field(default_factory=set)

    @property
    def track_count(self) -> int:
        return len(self.track_ids)

    @property
    def is_common(self) -> bool:
        return UserSlot.ONE in self.user_slots and UserSlot.TWO in self.user_slots


@dataclass
class GenreShare:
    genre: str
    percentage: int


@dataclass
class ScoreBreakdown:
    """Detailed breakdown of the compatibility score"""
    track_overlap: float
    artist_overlap: float
    genre_overlap: float
    rank_score: float
    popularity_score: float
    raw_score: float
    total_score: int

    @classmethod
    def fixed(cls, total_score: int) -> 'ScoreBreakdown':
        """Breakdown of a score that was not derived from the formula"""
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, total_score)


@dataclass
class Comparison:
    """Common items of two users, before preview enrichment and scoring"""
    common_tracks: List[Track]
    common_artists: List[Artist]
    common_albums: List[AlbumAggregate]
    top_genres: List[GenreShare]


class CompatibilityAnalyzer:
    """Pure functions turning two users' top lists into common items and a score"""

    def __init__(self, weights: Optional[ScoreWeights] = None, genre_limit: int = 10):
        self.weights = weights or ScoreWeights()
        self.genre_limit = genre_limit

    def common_items(self, items1: Optional[Sequence[Item]], items2: Optional[Sequence[Item]]) -> List[Item]:
        """
        Items of items2 whose id also appears in items1.

        Keeps items2's order and instances; each id is reported once.
        """
        if items1 is None or items2 is None:
            return []
        ids1 = {item.id for item in items1 if item is not None and item.id is not None}
        common: List[Item] = []
        seen: Set[str] = set()
        for item in items2:
            if item is None or item.id is None:
                continue
            if item.id in ids1 and item.id not in seen:
                common.append(item)
                seen.add(item.id)
        return common

    def common_albums(self, tracks1: Optional[Sequence[Track]], tracks2: Optional[Sequence[Track]]) -> List[AlbumAggregate]:
        """Albums both users have top tracks from, most shared tracks first"""
        if tracks1 is None or tracks2 is None:
            return []
        aggregates: Dict[str, AlbumAggregate] = {}

        for slot, tracks in ((UserSlot.ONE, tracks1), (UserSlot.TWO, tracks2)):
            for track in tracks:
                if track is None or track.album is None or not track.album.id:
                    continue
                entry = aggregates.setdefault(track.album.id, AlbumAggregate(album=track.album))
                entry.user_slots.add(slot)
                if track.id:
                    entry.track_ids.add(track.id)

        common = [entry for entry in aggregates.values() if entry.is_common]
        return sorted(common, key=lambda entry: entry.track_count, reverse=True)

    def top_genres(self, artists: Optional[Sequence[Artist]], limit: Optional[int] = None) -> List[GenreShare]:
        """
        Share of the given artists tagged with each genre

        Percentages are per artist, so an artist with several tags counts
        towards each of them and the shares do not sum to 100.
        """
        limit = self.genre_limit if limit is None else limit
        if not artists:
            return []
        genre_counts: Dict[str, int] = {}
        for artist in artists:
            if artist is None:
                continue
            for genre in artist.genres:
                normalized = genre.lower().strip()
                if normalized:
                    genre_counts[normalized] = genre_counts.get(normalized, 0) + 1

        if not genre_counts:
            return []

        ranked = sorted(genre_counts.items(), key=lambda pair: pair[1], reverse=True)[:limit]
        shares = [GenreShare(genre=genre, percentage=round_half_up(count / len(artists) * 100))
                  for genre, count in ranked]
        return [share for share in shares if share.percentage > 0]

    def compare(self, user1_tracks: Optional[List[Track]], user2_tracks: Optional[List[Track]],
                user1_artists: Optional[List[Artist]], user2_artists: Optional[List[Artist]]) -> Comparison:
        """Intersections, common albums and the genre profile of the common artists"""
        missing = [name for name, value in (
            ('user1_tracks', user1_tracks), ('user2_tracks', user2_tracks),
            ('user1_artists', user1_artists), ('user2_artists', user2_artists)
        ) if value is None]
        if missing:
            raise MissingInputDataError(f"Missing input lists: {', '.join(missing)}")

        common_artists = self.common_items(user1_artists, user2_artists)
        return Comparison(
            common_tracks=self.common_items(user1_tracks, user2_tracks),
            common_artists=common_artists,
            common_albums=self.common_albums(user1_tracks, user2_tracks),
            top_genres=self.top_genres(common_artists)
        )

    def calculate_score(self, user1_tracks: Optional[List[Track]], user2_tracks: Optional[List[Track]],
                        user1_artists: Optional[List[Artist]], user2_artists: Optional[List[Artist]],
                        common_tracks: Optional[List[Track]], common_artists: Optional[List[Artist]],
                        common_albums: Optional[List[AlbumAggregate]],
                        top_genres: Optional[List[GenreShare]]) -> ScoreBreakdown:
        """
        Weighted five-factor compatibility score

        Factors, each in [0, 1]:
        - track overlap: common tracks / shorter track list (lists capped at 200)
        - artist overlap: common artists / shorter artist list (capped at 100)
        - genre overlap: shared genres / 5, at most 1
        - rank: how close to the top both users rank the common tracks
        - popularity: mean popularity of the common tracks / 100

        The weighted sum is turned into a percentage, boosted by 1.3 and
        clamped to 100.
        """
        inputs = (user1_tracks, user2_tracks, user1_artists, user2_artists,
                  common_tracks, common_artists, common_albums, top_genres)
        if any(value is None for value in inputs):
            logger.warning("Missing required data points for score calculation.")
            return ScoreBreakdown.fixed(0)

        w = self.weights
        user1_tracks = user1_tracks[:w.track_list_cap]
        user2_tracks = user2_tracks[:w.track_list_cap]
        user1_artists = user1_artists[:w.artist_list_cap]
        user2_artists = user2_artists[:w.artist_list_cap]

        # Only items inside both capped lists count towards the factors
        ranks1 = self._ranks(user1_tracks)
        ranks2 = self._ranks(user2_tracks)
        common_tracks = [t for t in common_tracks if t is not None and t.id in ranks1 and t.id in ranks2]
        artist_ids1 = set(self._ranks(user1_artists))
        artist_ids2 = set(self._ranks(user2_artists))
        common_artists = [a for a in common_artists if a is not None and a.id in artist_ids1 and a.id in artist_ids2]

        track_base = min(len(user1_tracks), len(user2_tracks))
        artist_base = min(len(user1_artists), len(user2_artists))
        track_overlap = len(common_tracks) / track_base if track_base else 0.0
        artist_overlap = len(common_artists) / artist_base if artist_base else 0.0
        genre_overlap = min(len(top_genres) / w.genre_target, 1.0)

        rank_score = 0.0
        popularity_score = 0.0
        if common_tracks:
            max_rank = max(len(user1_tracks), len(user2_tracks))
            for track in common_tracks:
                closeness1 = 1 - ranks1[track.id] / max_rank
                closeness2 = 1 - ranks2[track.id] / max_rank
                rank_score += (closeness1 + closeness2) / 2
            rank_score /= len(common_tracks)

            total_popularity = sum(
                track.popularity if track.popularity is not None else w.default_popularity
                for track in common_tracks
            )
            popularity_score = total_popularity / len(common_tracks) / 100

        raw_score = (
            track_overlap * w.tracks +
            artist_overlap * w.artists +
            genre_overlap * w.genres +
            rank_score * w.rank +
            popularity_score * w.popularity
        )
        percentage = round_half_up(raw_score * 100)
        total_score = max(0, min(100, round_half_up(percentage * w.boost)))

        logger.info(
            f"Compatibility details: tracks {len(common_tracks)}/{track_base} ({track_overlap * 100:.1f}%), "
            f"artists {len(common_artists)}/{artist_base} ({artist_overlap * 100:.1f}%), "
            f"genres {len(top_genres)}/{w.genre_target} ({genre_overlap * 100:.1f}%), "
            f"rank {rank_score * 100:.1f}%, popularity {popularity_score * 100:.1f}%, final {total_score}%"
        )
        return ScoreBreakdown(
            track_overlap=track_overlap,
            artist_overlap=artist_overlap,
            genre_overlap=genre_overlap,
            rank_score=rank_score,
            popularity_score=popularity_score,
            raw_score=raw_score,
            total_score=total_score
        )

    @staticmethod
    def _ranks(items: Sequence[Item]) -> Dict[str, int]:
        """1-based rank of each id's first occurrence"""
        ranks: Dict[str, int] = {}
        for index, item in enumerate(items):
            if item is not None and item.id is not None and item.id not in ranks:
                ranks[item.id] = index + 1
        return ranks
