"""
Client for the Overseerr request/discovery API (v1).
"""

import logging
from urllib.parse import quote

from mediahub.models.overseerr import (
    MediaRequest,
    MediaType,
    MovieDetails,
    OverseerrStatus,
    OverseerrUser,
    RequestFilter,
    RequestsPage,
    SearchResults,
    TVDetails,
)
from mediahub.storage.cache import CacheKeys

from .base import ServiceClient

log = logging.getLogger(__name__)


class OverseerrClient(ServiceClient):
    """Search, discover and request media through an Overseerr instance."""

    SERVICE_NAME = "Overseerr"
    API_PREFIX = "/api/v1"

    def __init__(self, base_url: str, api_key: str, **kwargs):
        super().__init__(base_url, **kwargs)
        self.api_key = api_key

    def _auth_headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key, "Accept": "application/json"}

    async def _probe(self) -> str:
        status = await self.get_status()
        # /status is public, so the key is only verified by an authenticated call.
        await self.current_user()
        return status.version

    async def get_status(self) -> OverseerrStatus:
        return await self._get("/status", OverseerrStatus)

    async def current_user(self) -> OverseerrUser:
        return await self._get("/auth/me", OverseerrUser)

    async def search(self, query: str, page: int = 1) -> SearchResults:
        """
        Searches movies, series and people. Results are ranked by the backend and
        cached per instance, query and page.
        """
        # Overseerr rejects '+' as a space, so the query is percent-encoded here.
        path = f"/search?query={quote(query.strip(), safe='')}&page={page}"

        async def fetch() -> SearchResults:
            return await self._get(path, SearchResults)

        return await self._cached(
            CacheKeys.search(self.cache_namespace, query, page),
            SearchResults,
            fetch,
            self.cache_ttls.search,
        )

    async def _discover(self, kind: str, page: int) -> SearchResults:
        async def fetch() -> SearchResults:
            return await self._get(f"/discover/{kind}", SearchResults, {"page": page})

        return await self._cached(
            CacheKeys.discover(self.cache_namespace, kind, page),
            SearchResults,
            fetch,
            self.cache_ttls.discover,
        )

    async def discover_movies(self, page: int = 1) -> SearchResults:
        return await self._discover("movies", page)

    async def discover_tv(self, page: int = 1) -> SearchResults:
        return await self._discover("tv", page)

    async def trending(self, page: int = 1) -> SearchResults:
        return await self._discover("trending", page)

    async def movie_details(self, tmdb_id: int) -> MovieDetails:
        return await self._get(f"/movie/{tmdb_id}", MovieDetails)

    async def tv_details(self, tmdb_id: int) -> TVDetails:
        return await self._get(f"/tv/{tmdb_id}", TVDetails)

    async def list_requests(
        self,
        take: int = 20,
        skip: int = 0,
        filter: RequestFilter = RequestFilter.ALL,
    ) -> RequestsPage:
        params = {"take": take, "skip": skip, "filter": filter.value, "sort": "added"}
        return await self._get("/request", RequestsPage, params)

    async def create_request(
        self,
        media_type: MediaType,
        media_id: int,
        is_4k: bool = False,
        seasons: list[int] | None = None,
        server_id: int | None = None,
        profile_id: int | None = None,
        root_folder: str | None = None,
    ) -> MediaRequest:
        """
        Creates a request for a movie or a series.

        Duplicate requests are not filtered here; the backend decides whether a
        repeated request is rejected.

        Args:
            media_type: ``MediaType.MOVIE`` or ``MediaType.TV``.
            media_id: The TMDB id of the media.
            is_4k: Request the 4K version.
            seasons: Season numbers for a series; None requests every season.
            server_id: Optional target Radarr/Sonarr server configured in Overseerr.
            profile_id: Optional quality profile override.
            root_folder: Optional root folder override.
        """
        if media_type not in (MediaType.MOVIE, MediaType.TV):
            raise ValueError(f"Cannot request media of type '{media_type.value}'.")

        body: dict = {
            "mediaType": media_type.value,
            "mediaId": media_id,
            "is4k": is_4k,
        }
        if media_type is MediaType.TV:
            body["seasons"] = seasons if seasons else "all"
        if server_id is not None:
            body["serverId"] = server_id
        if profile_id is not None:
            body["profileId"] = profile_id
        if root_folder is not None:
            body["rootFolder"] = root_folder

        log.debug(f"Creating {media_type.value} request for TMDB id {media_id}.")
        payload = await self._request("POST", "/request", json=body)
        return self._decode(payload, MediaRequest)

    async def delete_request(self, request_id: int) -> None:
        await self._request("DELETE", f"/request/{request_id}", expect="none")
