"""Domain models for Spotify users, credentials and top items"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any


class UserSlot(int, Enum):
    """The two sides of a match"""
    ONE = 1
    TWO = 2


class TimeRange(str, Enum):
    """Spotify top-items windows, passed to the API verbatim"""
    SHORT_TERM = "short_term"    # ~4 weeks
    MEDIUM_TERM = "medium_term"  # ~6 months
    LONG_TERM = "long_term"      # several years


class ItemType(str, Enum):
    """Path segment of /me/top/{type}"""
    TRACKS = "tracks"
    ARTISTS = "artists"


@dataclass
class Image:
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


def parse_images(images_list: Optional[List[Dict]]) -> List[Image]:
    """Safely converts Spotify's image list, skipping entries without a URL."""
    if not isinstance(images_list, list):
        return []
    return [
        Image(url=img['url'], width=img.get('width'), height=img.get('height'))
        for img in images_list
        if isinstance(img, dict) and img.get('url')
    ]


def pick_image_url(images: List[Image], min_width: int = 0, largest_first: bool = False) -> Optional[str]:
    """
    Pick an image URL by width.

    Images are ordered by width (ascending, or descending with largest_first)
    and the first one at least min_width wide wins. Falls back to the first
    listed image when none qualifies.
    """
    if not images:
        return None
    ordered = sorted(images, key=lambda img: img.width or 0, reverse=largest_first)
    for img in ordered:
        if (img.width or 0) >= min_width:
            return img.url
    return images[0].url


def _spotify_url(external_urls: Optional[Dict[str, str]]) -> Optional[str]:
    if isinstance(external_urls, dict):
        return external_urls.get('spotify')
    return None


@dataclass
class ArtistRef:
    """Artist as embedded in track and album objects"""
    id: Optional[str]
    name: Optional[str]

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'ArtistRef':
        return cls(id=data.get('id'), name=data.get('name'))


@dataclass
class Album:
    id: Optional[str]
    name: Optional[str]
    artists: List[ArtistRef] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)
    release_date: Optional[str] = None
    external_url: Optional[str] = None
    uri: Optional[str] = None

    @property
    def year(self) -> str:
        """Release year, Spotify dates come as YYYY, YYYY-MM or YYYY-MM-DD"""
        return self.release_date.split('-')[0] if self.release_date else ''

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Album':
        return cls(
            id=data.get('id'),
            name=data.get('name'),
            artists=[ArtistRef.from_api(a) for a in data.get('artists') or [] if isinstance(a, dict)],
            images=parse_images(data.get('images')),
            release_date=data.get('release_date'),
            external_url=_spotify_url(data.get('external_urls')),
            uri=data.get('uri')
        )


@dataclass
class Track:
    """A user's top track. Identity is the Spotify id."""
    id: Optional[str]
    name: Optional[str]
    popularity: Optional[int] = None
    artists: List[ArtistRef] = field(default_factory=list)
    album: Optional[Album] = None
    preview_url: Optional[str] = None
    uri: Optional[str] = None
    external_url: Optional[str] = None

    @property
    def primary_artist_name(self) -> Optional[str]:
        if self.artists:
            return self.artists[0].name
        return None

    @property
    def images(self) -> List[Image]:
        return self.album.images if self.album else []

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Track':
        album_data = data.get('album')
        return cls(
            id=data.get('id'),
            name=data.get('name'),
            popularity=data.get('popularity'),
            artists=[ArtistRef.from_api(a) for a in data.get('artists') or [] if isinstance(a, dict)],
            album=Album.from_api(album_data) if isinstance(album_data, dict) else None,
            preview_url=data.get('preview_url') or None,
            uri=data.get('uri'),
            external_url=_spotify_url(data.get('external_urls'))
        )


@dataclass
class Artist:
    """A user's top artist. Identity is the Spotify id."""
    id: Optional[str]
    name: Optional[str]
    popularity: Optional[int] = None
    genres: List[str] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)
    uri: Optional[str] = None
    external_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Artist':
        return cls(
            id=data.get('id'),
            name=data.get('name'),
            popularity=data.get('popularity'),
            genres=[g for g in data.get('genres') or [] if isinstance(g, str)],
            images=parse_images(data.get('images')),
            uri=data.get('uri'),
            external_url=_spotify_url(data.get('external_urls'))
        )


@dataclass
class UserProfile:
    """Snapshot of GET /me taken at login"""
    id: str
    display_name: str
    image_url: Optional[str] = None
    country: Optional[str] = None
    product: Optional[str] = None
    uri: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any], slot: UserSlot) -> 'UserProfile':
        return cls(
            id=data['id'],
            display_name=data.get('display_name') or f"User {int(slot)}",
            image_url=pick_image_url(parse_images(data.get('images')), largest_first=True),
            country=data.get('country'),
            product=data.get('product'),
            uri=data.get('uri')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'display_name': self.display_name,
            'image_url': self.image_url,
            'country': self.country,
            'product': self.product,
            'uri': self.uri
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProfile':
        return cls(**{key: data.get(key) for key in ('id', 'display_name', 'image_url', 'country', 'product', 'uri')})


@dataclass
class Credential:
    """OAuth credential of one user slot"""
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[int]  # epoch milliseconds
