"""
Client for The Movie Database (TMDB) v3 API, authenticated with the global key.
"""

from mediahub.models.tmdb import TMDBConfiguration, TMDBSearchResults

from .base import ServiceClient

TMDB_BASE_URL = "https://api.themoviedb.org"


class TMDBClient(ServiceClient):
    SERVICE_NAME = "TMDB"
    API_PREFIX = "/3"
    AUTH_SUGGESTION = "Check that your TMDB API key is correct."

    def __init__(
        self,
        api_key: str,
        language: str = "en-US",
        base_url: str = TMDB_BASE_URL,
        **kwargs,
    ):
        super().__init__(base_url, **kwargs)
        self.api_key = api_key
        self.language = language

    def _params(self, **extra) -> dict:
        return {"api_key": self.api_key, "language": self.language, **extra}

    async def _probe(self) -> str:
        await self.get_configuration()
        return "3"

    async def get_configuration(self) -> TMDBConfiguration:
        return await self._get("/configuration", TMDBConfiguration, self._params())

    async def search_multi(self, query: str, page: int = 1) -> TMDBSearchResults:
        params = self._params(query=query.strip(), page=page, include_adult="false")
        return await self._get("/search/multi", TMDBSearchResults, params)
