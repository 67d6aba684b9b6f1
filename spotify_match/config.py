"""Application configuration and environment settings"""
from typing import Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class ScoreWeights(BaseModel):
    """Empirically tuned constants of the compatibility score"""
    tracks: float = Field(0.45, description="Weight of the common-track overlap")
    artists: float = Field(0.25, description="Weight of the common-artist overlap")
    genres: float = Field(0.10, description="Weight of the shared-genre factor")
    rank: float = Field(0.10, description="Weight of the rank closeness of common tracks")
    popularity: float = Field(0.10, description="Weight of the mean popularity of common tracks")
    boost: float = Field(1.3, description="Multiplier applied to the rounded percentage")
    track_list_cap: int = Field(200, description="Max tracks per user considered by the score")
    artist_list_cap: int = Field(100, description="Max artists per user considered by the score")
    genre_target: int = Field(5, description="Number of shared genres giving a full genre factor")
    default_popularity: int = Field(50, description="Popularity assumed when a track has none")

class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    # Spotify OAuth application
    SPOTIFY_CLIENT_ID: str = Field("", description="Spotify application client ID")
    SPOTIFY_CLIENT_SECRET: str = Field("", description="Spotify application client secret")
    SPOTIFY_REDIRECT_URI: str = Field("http://localhost:3000/match/callback", description="OAuth redirect URI registered with Spotify")
    SPOTIFY_SCOPES: str = Field(
        "user-top-read user-read-private user-read-email playlist-modify-public playlist-modify-private",
        description="Space separated OAuth scopes"
    )

    # Upstream endpoints
    SPOTIFY_API_URL: str = Field("https://api.spotify.com/v1", description="Spotify Web API base URL")
    SPOTIFY_ACCOUNTS_URL: str = Field("https://accounts.spotify.com", description="Spotify accounts service base URL")
    DEEZER_API_URL: str = Field("https://api.deezer.com", description="Deezer public API base URL")

    # Token store
    DATABASE_URL: str = Field("sqlite:///spotify_match.db", description="SQLAlchemy URL of the credential store")
    TOKEN_REFRESH_MARGIN_SECONDS: int = Field(300, description="Refresh access tokens expiring within this window")

    # Fetching
    SPOTIFY_TRACK_LIMIT: int = Field(200, description="Max top tracks fetched per user")
    SPOTIFY_ARTIST_LIMIT: int = Field(100, description="Max top artists fetched per user")
    SPOTIFY_REQUEST_TIMEOUT_SECONDS: float = Field(20, description="Timeout of a single Spotify API call")
    FETCH_MAX_WORKERS: int = Field(4, description="Threads used for the concurrent top-item fetches")

    # Preview enrichment
    PREVIEW_REQUEST_TIMEOUT_SECONDS: float = Field(8, description="Timeout of a single Deezer search")
    PREVIEW_MAX_WORKERS: int = Field(4, description="Max concurrent Deezer searches")
    PREVIEW_DISPATCH_INTERVAL_SECONDS: float = Field(0.05, description="Min delay between two Deezer searches")

    # Session result cache
    RESULT_CACHE_TTL_SECONDS: int = Field(2 * 60 * 60, description="Lifetime of a cached analysis")
    RESULT_CACHE_MAX_ENTRIES: int = Field(1000, description="Max cached analyses before LRU eviction")

    # Genre report
    TOP_GENRES_LIMIT: int = Field(10, description="Number of genres kept in the report")

    # Score constants
    SCORE_WEIGHT_TRACKS: float = Field(0.45)
    SCORE_WEIGHT_ARTISTS: float = Field(0.25)
    SCORE_WEIGHT_GENRES: float = Field(0.10)
    SCORE_WEIGHT_RANK: float = Field(0.10)
    SCORE_WEIGHT_POPULARITY: float = Field(0.10)
    SCORE_BOOST_FACTOR: float = Field(1.3)

    # Command line run
    MATCH_SESSION_ID: Optional[str] = Field(None, description="Session whose stored credentials are matched")
    TIME_RANGE: str = Field("medium_term", description="short_term, medium_term or long_term")
    OUTPUT_DIR: str = Field("/output", description="Directory for output files")
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    @property
    def score_weights(self) -> ScoreWeights:
        """Get score constants as a separate model"""
        return ScoreWeights(
            tracks=self.SCORE_WEIGHT_TRACKS,
            artists=self.SCORE_WEIGHT_ARTISTS,
            genres=self.SCORE_WEIGHT_GENRES,
            rank=self.SCORE_WEIGHT_RANK,
            popularity=self.SCORE_WEIGHT_POPULARITY,
            boost=self.SCORE_BOOST_FACTOR
        )

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='ignore'
    )

settings = Settings()
