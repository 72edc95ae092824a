"""
Shared client for the Radarr and Sonarr v3 APIs.

Both library managers expose the same resource layout under ``/api/v3``; only the
library resource (``movie`` or ``series``) and its payload models differ.
"""

import logging
from typing import Any, ClassVar, Generic, TypeVar

from mediahub.models.arr import (
    Command,
    Queue,
    QualityProfile,
    RootFolder,
    SystemStatus,
)
from mediahub.storage.cache import CacheKeys

from .base import ServiceClient

log = logging.getLogger(__name__)

MediaT = TypeVar("MediaT")
LookupT = TypeVar("LookupT")


class ArrClient(ServiceClient, Generic[MediaT, LookupT]):
    """Library-manager operations common to Radarr and Sonarr."""

    API_PREFIX = "/api/v3"
    LIBRARY_RESOURCE: ClassVar[str] = ""
    MEDIA_MODEL: ClassVar[type] = object
    LOOKUP_MODEL: ClassVar[type] = object

    def __init__(self, base_url: str, api_key: str, **kwargs):
        super().__init__(base_url, **kwargs)
        self.api_key = api_key

    def _auth_headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key, "Accept": "application/json"}

    async def _probe(self) -> str:
        status = await self.get_system_status()
        return status.version

    async def get_system_status(self) -> SystemStatus:
        return await self._get("/system/status", SystemStatus)

    async def lookup_media(self, term: str) -> list[LookupT]:
        """Searches the metadata provider of the service for new media."""
        return await self._get(
            f"/{self.LIBRARY_RESOURCE}/lookup",
            list[self.LOOKUP_MODEL],
            {"term": term.strip()},
        )

    async def list_library(self, refresh: bool = False) -> list[MediaT]:
        """Returns every item in the library, cached per instance."""
        key = CacheKeys.library(self.cache_namespace, self.LIBRARY_RESOURCE)
        expected_type = list[self.MEDIA_MODEL]
        if refresh and self.cache is not None:
            await self.cache.remove(key)

        async def fetch() -> list[MediaT]:
            return await self._get(f"/{self.LIBRARY_RESOURCE}", expected_type)

        return await self._cached(key, expected_type, fetch, self.cache_ttls.library)

    async def get_media(self, media_id: int) -> MediaT:
        return await self._get(f"/{self.LIBRARY_RESOURCE}/{media_id}", self.MEDIA_MODEL)

    async def _add_media(self, body: dict[str, Any]) -> MediaT:
        payload = await self._request("POST", f"/{self.LIBRARY_RESOURCE}", json=body)
        await self._invalidate_library()
        return self._decode(payload, self.MEDIA_MODEL)

    async def delete_media(
        self,
        media_id: int,
        delete_files: bool = False,
        add_import_exclusion: bool = False,
    ) -> None:
        params = {
            "deleteFiles": str(delete_files).lower(),
            "addImportExclusion": str(add_import_exclusion).lower(),
        }
        await self._request(
            "DELETE",
            f"/{self.LIBRARY_RESOURCE}/{media_id}",
            params=params,
            expect="none",
        )
        await self._invalidate_library()

    async def _invalidate_library(self) -> None:
        if self.cache is not None:
            await self.cache.remove(
                CacheKeys.library(self.cache_namespace, self.LIBRARY_RESOURCE)
            )

    async def list_quality_profiles(self) -> list[QualityProfile]:
        return await self._get("/qualityprofile", list[QualityProfile])

    async def list_root_folders(self) -> list[RootFolder]:
        return await self._get("/rootfolder", list[RootFolder])

    async def list_queue(self, page: int = 1, page_size: int = 20) -> Queue:
        params = {
            "page": page,
            "pageSize": page_size,
            "sortKey": "timeleft",
            "sortDirection": "ascending",
        }
        return await self._get("/queue", Queue, params)

    async def issue_command(self, name: str, **body: Any) -> Command:
        """
        Triggers a background command such as ``RefreshMovie`` or ``SeriesSearch``.

        Keyword arguments are sent as-is in the command body.
        """
        log.debug(f"{self.SERVICE_NAME}: issuing command '{name}'.")
        payload = await self._request("POST", "/command", json={"name": name, **body})
        return self._decode(payload, Command)
