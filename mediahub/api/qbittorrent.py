"""
Client for the qBittorrent Web API v2.

qBittorrent authenticates with a session cookie: ``login`` posts the credentials
and keeps the returned ``SID``, which is then sent explicitly on every call. An
expired session (HTTP 403) triggers one transparent re-login.
"""

import logging
import re
from typing import Any

import aiohttp

from mediahub.exceptions import AuthRejectedError, NotFoundError
from mediahub.models.qbittorrent import MainData, ServerState, Torrent, TorrentFilter

from .base import ServiceClient

log = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
CREDENTIALS_SUGGESTION = "Check that your username and password are correct."


def parse_version(raw: str) -> tuple[int, int, int] | None:
    """Parses ``v4.6.2`` or ``5.0`` into a comparable tuple."""
    cleaned = raw.strip().lstrip("vV")
    parts = []
    for piece in cleaned.split("."):
        match = re.match(r"\d+", piece)
        if match is None:
            break
        parts.append(int(match.group()))
    if len(parts) < 2:
        return None
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def _join_hashes(hashes: str | list[str]) -> str:
    if isinstance(hashes, str):
        return hashes
    return "|".join(hashes)


class QBittorrentClient(ServiceClient):
    """Lists and controls torrents on a qBittorrent instance."""

    SERVICE_NAME = "qBittorrent"
    API_PREFIX = "/api/v2"
    AUTH_SUGGESTION = CREDENTIALS_SUGGESTION

    def __init__(self, base_url: str, username: str, password: str, **kwargs):
        super().__init__(base_url, **kwargs)
        self.username = username
        self.password = password
        self.sid: str | None = None
        self.version: tuple[int, int, int] | None = None
        self._authenticated = False

    @property
    def uses_stop_start_api(self) -> bool:
        """qBittorrent 5 renamed pause/resume to stop/start."""
        return self.version is not None and self.version[0] >= 5

    def _auth_headers(self) -> dict[str, str]:
        if self.sid:
            return {"Cookie": f"SID={self.sid}"}
        return {}

    def _on_response(self, response: aiohttp.ClientResponse) -> None:
        cookie = response.cookies.get("SID")
        if cookie is not None and cookie.value:
            self.sid = cookie.value

    # Authentication

    async def login(self) -> None:
        """
        Opens a session and detects the server version.

        Raises:
            AuthRejectedError: If the credentials are refused or the IP is banned.
        """
        self.sid = None
        self._authenticated = False
        body = await super()._request(
            "POST",
            LOGIN_PATH,
            data={"username": self.username, "password": self.password},
            expect="text",
        )
        if "ok" not in body.lower():
            raise AuthRejectedError(
                403, "Invalid username or password", CREDENTIALS_SUGGESTION
            )
        self._authenticated = True
        log.debug(f"Logged in to qBittorrent at {self.base_url}.")
        await self._detect_version()

    async def _detect_version(self) -> None:
        raw = await super()._request("GET", "/app/version", expect="text")
        self.version = parse_version(raw)
        if self.version is None:
            log.debug(f"Unrecognized qBittorrent version string '{raw}'.")

    async def logout(self) -> None:
        if self._authenticated:
            await super()._request("POST", "/auth/logout", expect="none")
        self.sid = None
        self.version = None
        self._authenticated = False

    async def _ensure_authenticated(self) -> None:
        if not self._authenticated:
            await self.login()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        await self._ensure_authenticated()
        try:
            return await super()._request(method, path, **kwargs)
        except AuthRejectedError:
            log.debug("qBittorrent session rejected, logging in again.")
            await self.login()
            return await super()._request(method, path, **kwargs)

    async def close(self) -> None:
        self.sid = None
        self._authenticated = False
        await super().close()

    # Application

    async def _probe(self) -> str:
        version = await self.get_version()
        suffix = " (API v5+)" if self.uses_stop_start_api else ""
        return f"{version.lstrip('vV')}{suffix}"

    async def get_version(self) -> str:
        return (await self._request("GET", "/app/version", expect="text")).strip()

    async def get_webapi_version(self) -> str:
        return (await self._request("GET", "/app/webapiVersion", expect="text")).strip()

    # Torrents

    async def list_torrents(
        self,
        filter: TorrentFilter = TorrentFilter.ALL,
        category: str | None = None,
        sort: str = "added_on",
        reverse: bool = True,
    ) -> list[Torrent]:
        params = {"filter": filter.value, "sort": sort, "reverse": str(reverse).lower()}
        if category is not None:
            params["category"] = category
        payload = await self._request("GET", "/torrents/info", params=params)
        return self._decode(payload, list[Torrent])

    async def get_torrent(self, torrent_hash: str) -> Torrent:
        payload = await self._request(
            "GET", "/torrents/info", params={"hashes": torrent_hash}
        )
        torrents = self._decode(payload, list[Torrent])
        if not torrents:
            raise NotFoundError(404, f"No torrent with hash {torrent_hash}")
        return torrents[0]

    async def _post_with_fallback(
        self, modern: str, legacy: str, hashes: str | list[str]
    ) -> None:
        # The server version is only known once logged in.
        await self._ensure_authenticated()
        if self.uses_stop_start_api:
            primary, alternate = modern, legacy
        else:
            primary, alternate = legacy, modern
        form = {"hashes": _join_hashes(hashes)}
        try:
            await self._request("POST", primary, data=form, expect="none")
        except NotFoundError:
            log.debug(f"{primary} not available, falling back to {alternate}.")
            await self._request("POST", alternate, data=form, expect="none")

    async def pause(self, hashes: str | list[str]) -> None:
        """Pauses (stops, on v5+) one or more torrents. ``"all"`` targets every torrent."""
        await self._post_with_fallback("/torrents/stop", "/torrents/pause", hashes)

    async def resume(self, hashes: str | list[str]) -> None:
        """Resumes (starts, on v5+) one or more torrents."""
        await self._post_with_fallback("/torrents/start", "/torrents/resume", hashes)

    async def delete(self, hashes: str | list[str], delete_files: bool = False) -> None:
        form = {"hashes": _join_hashes(hashes), "deleteFiles": str(delete_files).lower()}
        await self._request("POST", "/torrents/delete", data=form, expect="none")

    async def recheck(self, hashes: str | list[str]) -> None:
        form = {"hashes": _join_hashes(hashes)}
        await self._request("POST", "/torrents/recheck", data=form, expect="none")

    # Transfer & sync

    async def transfer_info(self) -> ServerState:
        payload = await self._request("GET", "/transfer/info")
        return self._decode(payload, ServerState)

    async def main_data(self, rid: int = 0) -> MainData:
        payload = await self._request("GET", "/sync/maindata", params={"rid": rid})
        return self._decode(payload, MainData)
