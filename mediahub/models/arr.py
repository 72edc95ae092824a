"""
Normalized payloads for the Radarr and Sonarr v3 APIs.

Both library managers share most of their resource shapes (system status, quality
profiles, root folders, queue, commands); the movie and series resources differ.
Sizes are integers in bytes, as the services report them.
"""

from pydantic import Field

from .base import CamelModel


class SystemStatus(CamelModel):
    version: str = "unknown"
    app_name: str | None = None
    instance_name: str | None = None
    os_name: str | None = None
    is_docker: bool | None = None
    start_time: str | None = None


class Image(CamelModel):
    cover_type: str = "unknown"
    url: str | None = None
    remote_url: str | None = None


def _image_url(images: list[Image], cover_type: str) -> str | None:
    for image in images:
        if image.cover_type == cover_type:
            return image.remote_url or image.url
    return None


class QualityProfile(CamelModel):
    id: int
    name: str = "Unknown"
    upgrade_allowed: bool | None = None
    cutoff: int | None = None


class RootFolder(CamelModel):
    id: int
    path: str
    accessible: bool | None = None
    free_space: int | None = None
    total_space: int | None = None


class StatusMessage(CamelModel):
    title: str | None = None
    messages: list[str] = Field(default_factory=list)


class QueueRecord(CamelModel):
    id: int
    movie_id: int | None = None
    series_id: int | None = None
    episode_id: int | None = None
    season_number: int | None = None
    title: str | None = None
    status: str = "unknown"
    tracked_download_status: str | None = None
    tracked_download_state: str | None = None
    status_messages: list[StatusMessage] = Field(default_factory=list)
    download_id: str | None = None
    protocol: str | None = None
    download_client: str | None = None
    indexer: str | None = None
    output_path: str | None = None
    size: int | None = None
    sizeleft: int | None = None
    timeleft: str | None = None

    @property
    def progress(self) -> float:
        """Completion percentage, 0 when the sizes are unknown."""
        if not self.size or self.sizeleft is None:
            return 0.0
        return (self.size - self.sizeleft) / self.size * 100


class Queue(CamelModel):
    page: int = 1
    page_size: int = 0
    total_records: int = 0
    records: list[QueueRecord] = Field(default_factory=list)


class Command(CamelModel):
    id: int | None = None
    name: str = "unknown"
    command_name: str | None = None
    status: str = "unknown"
    queued: str | None = None


class Movie(CamelModel):
    id: int
    title: str
    year: int | None = None
    original_title: str | None = None
    sort_title: str | None = None
    status: str = "unknown"
    overview: str | None = None
    size_on_disk: int | None = None
    has_file: bool | None = None
    monitored: bool | None = None
    is_available: bool | None = None
    path: str | None = None
    quality_profile_id: int | None = None
    minimum_availability: str | None = None
    runtime: int | None = None
    imdb_id: str | None = None
    tmdb_id: int | None = None
    title_slug: str | None = None
    genres: list[str] = Field(default_factory=list)
    added: str | None = None
    images: list[Image] = Field(default_factory=list)

    @property
    def poster_url(self) -> str | None:
        return _image_url(self.images, "poster")

    @property
    def fanart_url(self) -> str | None:
        return _image_url(self.images, "fanart")


class MovieLookup(CamelModel):
    """A Radarr lookup hit. ``id`` is only set when the movie is already in the library."""

    id: int | None = None
    title: str
    tmdb_id: int
    year: int | None = None
    overview: str | None = None
    status: str = "unknown"
    imdb_id: str | None = None
    title_slug: str | None = None
    runtime: int | None = None
    genres: list[str] = Field(default_factory=list)
    images: list[Image] = Field(default_factory=list)

    @property
    def stable_id(self) -> int:
        return self.id if self.id is not None else self.tmdb_id

    @property
    def in_library(self) -> bool:
        return self.id is not None and self.id > 0

    @property
    def poster_url(self) -> str | None:
        return _image_url(self.images, "poster")


class SeasonStatistics(CamelModel):
    episode_file_count: int | None = None
    episode_count: int | None = None
    total_episode_count: int | None = None
    size_on_disk: int | None = None
    percent_of_episodes: float | None = None


class Season(CamelModel):
    season_number: int
    monitored: bool | None = None
    statistics: SeasonStatistics | None = None


class SeriesStatistics(SeasonStatistics):
    season_count: int | None = None


class Series(CamelModel):
    id: int
    title: str
    year: int | None = None
    sort_title: str | None = None
    status: str = "unknown"
    ended: bool | None = None
    overview: str | None = None
    network: str | None = None
    path: str | None = None
    quality_profile_id: int | None = None
    language_profile_id: int | None = None
    season_folder: bool | None = None
    monitored: bool | None = None
    runtime: int | None = None
    tvdb_id: int | None = None
    imdb_id: str | None = None
    title_slug: str | None = None
    series_type: str | None = None
    genres: list[str] = Field(default_factory=list)
    added: str | None = None
    images: list[Image] = Field(default_factory=list)
    seasons: list[Season] = Field(default_factory=list)
    statistics: SeriesStatistics | None = None

    @property
    def poster_url(self) -> str | None:
        return _image_url(self.images, "poster")

    @property
    def size_on_disk(self) -> int | None:
        return self.statistics.size_on_disk if self.statistics else None


class SeriesLookup(CamelModel):
    id: int | None = None
    title: str
    tvdb_id: int
    year: int | None = None
    overview: str | None = None
    status: str = "unknown"
    network: str | None = None
    title_slug: str | None = None
    images: list[Image] = Field(default_factory=list)
    seasons: list[Season] = Field(default_factory=list)

    @property
    def stable_id(self) -> int:
        return self.id if self.id is not None else self.tvdb_id

    @property
    def in_library(self) -> bool:
        return self.id is not None and self.id > 0


class CalendarEpisode(CamelModel):
    id: int
    series_id: int | None = None
    season_number: int = 0
    episode_number: int = 0
    title: str | None = None
    air_date_utc: str | None = None
    has_file: bool | None = None
    monitored: bool | None = None
    series: Series | None = None
