"""
Normalized Overseerr payloads: search results, media info and requests.
"""

from enum import Enum, IntEnum

from pydantic import Field

from .base import CamelModel

TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p"


class MediaType(str, Enum):
    MOVIE = "movie"
    TV = "tv"
    PERSON = "person"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class MediaStatus(IntEnum):
    """Availability of a media item as reported by Overseerr."""

    UNKNOWN = 1
    PENDING = 2
    PROCESSING = 3
    PARTIALLY_AVAILABLE = 4
    AVAILABLE = 5
    BLACKLISTED = 6

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class RequestStatus(IntEnum):
    """Approval status of a media request."""

    UNKNOWN = 0
    PENDING_APPROVAL = 1
    APPROVED = 2
    DECLINED = 3
    FAILED = 4
    COMPLETED = 5

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class RequestFilter(str, Enum):
    ALL = "all"
    APPROVED = "approved"
    AVAILABLE = "available"
    PENDING = "pending"
    PROCESSING = "processing"
    UNAVAILABLE = "unavailable"


class OverseerrStatus(CamelModel):
    version: str = "unknown"
    commit_tag: str | None = None
    update_available: bool | None = None


class OverseerrUser(CamelModel):
    id: int
    email: str | None = None
    username: str | None = None
    plex_username: str | None = None
    request_count: int | None = None

    @property
    def display_name(self) -> str:
        return self.username or self.plex_username or self.email or "User"


class RequestSeason(CamelModel):
    id: int | None = None
    season_number: int = 0
    status: RequestStatus = RequestStatus.UNKNOWN


class MediaRequest(CamelModel):
    id: int
    status: RequestStatus = RequestStatus.UNKNOWN
    type: MediaType = MediaType.UNKNOWN
    is_4k: bool = Field(default=False, alias="is4k")
    created_at: str | None = None
    updated_at: str | None = None
    server_id: int | None = None
    profile_id: int | None = None
    root_folder: str | None = None
    media: "MediaInfo | None" = None
    requested_by: OverseerrUser | None = None
    seasons: list[RequestSeason] = Field(default_factory=list)

    @property
    def is_approved(self) -> bool:
        return self.status is RequestStatus.APPROVED


class MediaInfo(CamelModel):
    id: int | None = None
    tmdb_id: int | None = None
    tvdb_id: int | None = None
    status: MediaStatus = MediaStatus.UNKNOWN
    status_4k: MediaStatus = Field(default=MediaStatus.UNKNOWN, alias="status4k")
    requests: list[MediaRequest] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_available(self) -> bool:
        return self.status is MediaStatus.AVAILABLE

    @property
    def is_partially_available(self) -> bool:
        return self.status is MediaStatus.PARTIALLY_AVAILABLE

    @property
    def is_requested(self) -> bool:
        return self.status in (MediaStatus.PENDING, MediaStatus.PROCESSING)


MediaRequest.model_rebuild()


class SearchResult(CamelModel):
    """One entry of a search or discover listing (movie, series or person)."""

    id: int
    media_type: MediaType | None = None
    popularity: float | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_count: int | None = None
    vote_average: float | None = None
    overview: str | None = None
    original_language: str | None = None
    # movie
    title: str | None = None
    original_title: str | None = None
    release_date: str | None = None
    # tv
    name: str | None = None
    original_name: str | None = None
    first_air_date: str | None = None
    media_info: MediaInfo | None = None

    @property
    def display_title(self) -> str:
        return self.title or self.name or "Unknown"

    @property
    def display_year(self) -> str:
        return (self.release_date or self.first_air_date or "")[:4]

    @property
    def resolved_media_type(self) -> MediaType:
        """The declared media type, inferred from the title field when absent."""
        if self.media_type is not None and self.media_type is not MediaType.UNKNOWN:
            return self.media_type
        return MediaType.MOVIE if self.title is not None else MediaType.TV

    @property
    def poster_url(self) -> str | None:
        if not self.poster_path:
            return None
        return f"{TMDB_IMAGE_BASE}/w500{self.poster_path}"


class SearchResults(CamelModel):
    page: int = 1
    total_pages: int = 0
    total_results: int = 0
    results: list[SearchResult] = Field(default_factory=list)


class Genre(CamelModel):
    id: int
    name: str = "Unknown"


class TVSeason(CamelModel):
    id: int | None = None
    season_number: int = 0
    episode_count: int | None = None
    name: str | None = None
    air_date: str | None = None


class MovieDetails(CamelModel):
    id: int
    title: str | None = None
    original_title: str | None = None
    overview: str | None = None
    release_date: str | None = None
    runtime: int | None = None
    status: str | None = None
    tagline: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    imdb_id: str | None = None
    budget: int | None = None
    revenue: int | None = None
    vote_average: float | None = None
    vote_count: int | None = None
    genres: list[Genre] = Field(default_factory=list)
    media_info: MediaInfo | None = None

    @property
    def display_year(self) -> str:
        return (self.release_date or "")[:4]


class TVDetails(CamelModel):
    id: int
    name: str | None = None
    original_name: str | None = None
    overview: str | None = None
    first_air_date: str | None = None
    last_air_date: str | None = None
    number_of_seasons: int | None = None
    number_of_episodes: int | None = None
    episode_run_time: list[int] = Field(default_factory=list)
    in_production: bool | None = None
    status: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_average: float | None = None
    genres: list[Genre] = Field(default_factory=list)
    seasons: list[TVSeason] = Field(default_factory=list)
    media_info: MediaInfo | None = None

    @property
    def display_year(self) -> str:
        return (self.first_air_date or "")[:4]


class PageInfo(CamelModel):
    pages: int = 0
    page_size: int = 0
    results: int = 0
    page: int = 1


class RequestsPage(CamelModel):
    page_info: PageInfo = Field(default_factory=PageInfo)
    results: list[MediaRequest] = Field(default_factory=list)
