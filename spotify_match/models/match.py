"""AnalysisResult model definition"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from spotify_match.compatibility import AlbumAggregate, GenreShare, ScoreBreakdown
from spotify_match.models.spotify import Artist, Track, UserProfile, pick_image_url

class TrackSummary(BaseModel):
    """Common track as shown to the users"""
    id: str
    name: str = Field(description="Track title")
    artists: str = Field(description="Comma separated artist names")
    album: str = Field(description="Album title")
    image_url: Optional[str] = Field(None, description="Smallest album cover at least 80px wide")
    url: Optional[str] = Field(None, description="Spotify web URL")
    preview_url: Optional[str] = Field(None, description="30s preview clip, from Spotify or Deezer")
    uri: Optional[str] = None
    popularity: int = 0

    @classmethod
    def from_track(cls, track: Track) -> 'TrackSummary':
        return cls(
            id=track.id,
            name=track.name or 'Unknown Track',
            artists=', '.join(a.name for a in track.artists if a.name) or 'Unknown Artist',
            album=(track.album.name if track.album else None) or 'Unknown Album',
            image_url=pick_image_url(track.images, min_width=80),
            url=track.external_url,
            preview_url=track.preview_url,
            uri=track.uri,
            popularity=track.popularity or 0
        )

class ArtistSummary(BaseModel):
    """Common artist as shown to the users"""
    id: str
    name: str
    genres: str = Field(description="Comma separated genre tags")
    image_url: Optional[str] = None
    url: Optional[str] = None
    uri: Optional[str] = None
    popularity: int = 0

    @classmethod
    def from_artist(cls, artist: Artist) -> 'ArtistSummary':
        return cls(
            id=artist.id,
            name=artist.name or 'Unknown Artist',
            genres=', '.join(artist.genres),
            image_url=pick_image_url(artist.images, min_width=80),
            url=artist.external_url,
            uri=artist.uri,
            popularity=artist.popularity or 0
        )

class AlbumSummary(BaseModel):
    """Album both users have top tracks from"""
    id: str
    name: str
    artist: str
    year: str = ''
    track_count: int = Field(description="Distinct top tracks from this album across both users")
    image_url: Optional[str] = None
    url: Optional[str] = None
    uri: Optional[str] = None

    @classmethod
    def from_aggregate(cls, aggregate: AlbumAggregate) -> 'AlbumSummary':
        album = aggregate.album
        return cls(
            id=album.id,
            name=album.name or 'Unknown Album',
            artist=', '.join(a.name for a in album.artists if a.name) or 'Unknown Artist',
            year=album.year,
            track_count=aggregate.track_count,
            image_url=pick_image_url(album.images, min_width=150, largest_first=True),
            url=album.external_url,
            uri=album.uri
        )

class GenreSummary(BaseModel):
    genre: str
    percentage: int = Field(description="Share of common artists carrying the tag")

    @classmethod
    def from_share(cls, share: GenreShare) -> 'GenreSummary':
        return cls(genre=share.genre, percentage=share.percentage)

class ProfileSummary(BaseModel):
    id: str
    display_name: str
    image_url: Optional[str] = None
    country: Optional[str] = None
    product: Optional[str] = None
    uri: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> 'ProfileSummary':
        return cls(**profile.to_dict())

class AnalysisResult(BaseModel):
    """
    Compatibility report of two users for one time range.

    Attributes:
        common_tracks: Tracks in both top lists, in user 2's order
        common_artists: Artists in both top lists, in user 2's order
        common_albums: Albums both users have top tracks from, most shared first
        top_genres: Genre shares of the common artists
        compatibility_score: Integer in [0, 100]
        score_breakdown: The five score factors and the raw weighted score
    """
    common_tracks: List[TrackSummary] = []
    common_artists: List[ArtistSummary] = []
    common_albums: List[AlbumSummary] = []
    top_genres: List[GenreSummary] = []
    compatibility_score: int = Field(ge=0, le=100)
    score_breakdown: Dict[str, float] = {}
    user1_profile: ProfileSummary
    user2_profile: ProfileSummary
    time_range: str

    @classmethod
    def build(cls, common_tracks: List[Track], common_artists: List[Artist],
              common_albums: List[AlbumAggregate], top_genres: List[GenreShare],
              score: ScoreBreakdown, user1_profile: UserProfile, user2_profile: UserProfile,
              time_range: str) -> 'AnalysisResult':
        return cls(
            common_tracks=[TrackSummary.from_track(t) for t in common_tracks],
            common_artists=[ArtistSummary.from_artist(a) for a in common_artists],
            common_albums=[AlbumSummary.from_aggregate(a) for a in common_albums],
            top_genres=[GenreSummary.from_share(g) for g in top_genres],
            compatibility_score=score.total_score,
            score_breakdown={
                'track_overlap': score.track_overlap,
                'artist_overlap': score.artist_overlap,
                'genre_overlap': score.genre_overlap,
                'rank_score': score.rank_score,
                'popularity_score': score.popularity_score,
                'raw_score': score.raw_score
            },
            user1_profile=ProfileSummary.from_profile(user1_profile),
            user2_profile=ProfileSummary.from_profile(user2_profile),
            time_range=time_range
        )
