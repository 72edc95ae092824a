"""
Client for Radarr, the movie library manager.
"""

from mediahub.models.arr import Command, Movie, MovieLookup

from .arr import ArrClient


class RadarrClient(ArrClient[Movie, MovieLookup]):
    SERVICE_NAME = "Radarr"
    LIBRARY_RESOURCE = "movie"
    MEDIA_MODEL = Movie
    LOOKUP_MODEL = MovieLookup

    async def add_movie(
        self,
        movie: MovieLookup,
        quality_profile_id: int,
        root_folder_path: str,
        monitored: bool = True,
        minimum_availability: str = "announced",
        search_for_movie: bool = True,
    ) -> Movie:
        """Adds a lookup hit to the library and optionally starts a search for it."""
        body = {
            "title": movie.title,
            "tmdbId": movie.tmdb_id,
            "year": movie.year,
            "titleSlug": movie.title_slug,
            "images": [i.model_dump(by_alias=True) for i in movie.images],
            "qualityProfileId": quality_profile_id,
            "rootFolderPath": root_folder_path,
            "monitored": monitored,
            "minimumAvailability": minimum_availability,
            "addOptions": {"searchForMovie": search_for_movie},
        }
        return await self._add_media(body)

    async def search_movie(self, movie_ids: list[int]) -> Command:
        return await self.issue_command("MoviesSearch", movieIds=movie_ids)

    async def refresh_movie(self, movie_id: int | None = None) -> Command:
        if movie_id is None:
            return await self.issue_command("RefreshMovie")
        return await self.issue_command("RefreshMovie", movieIds=[movie_id])
