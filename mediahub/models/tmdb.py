"""
Minimal TMDB payloads used by the metadata-provider client.
"""

from pydantic import Field

from .base import TolerantModel


class TMDBImagesConfiguration(TolerantModel):
    secure_base_url: str | None = None
    poster_sizes: list[str] = Field(default_factory=list)


class TMDBConfiguration(TolerantModel):
    images: TMDBImagesConfiguration | None = None


class TMDBResult(TolerantModel):
    id: int
    media_type: str = "unknown"
    title: str | None = None
    name: str | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    popularity: float | None = None

    @property
    def display_title(self) -> str:
        return self.title or self.name or "Unknown"


class TMDBSearchResults(TolerantModel):
    page: int = 1
    total_pages: int = 0
    total_results: int = 0
    results: list[TMDBResult] = Field(default_factory=list)
