"""
Normalized payloads for the qBittorrent Web API v2 (snake_case JSON).
"""

from enum import Enum

from pydantic import Field

from .base import TolerantModel

PAUSED_STATES = {"pausedDL", "pausedUP", "stoppedDL", "stoppedUP", "stopped"}
DOWNLOADING_STATES = {
    "downloading",
    "forcedDL",
    "metaDL",
    "stalledDL",
    "queuedDL",
    "checkingDL",
    "allocating",
}
UPLOADING_STATES = {"uploading", "forcedUP", "stalledUP", "queuedUP", "checkingUP"}
ERROR_STATES = {"error", "missingFiles"}


class TorrentFilter(str, Enum):
    ALL = "all"
    DOWNLOADING = "downloading"
    SEEDING = "seeding"
    COMPLETED = "completed"
    PAUSED = "paused"
    ACTIVE = "active"
    INACTIVE = "inactive"
    RESUMED = "resumed"
    STALLED = "stalled"
    STALLED_UPLOADING = "stalled_uploading"
    STALLED_DOWNLOADING = "stalled_downloading"
    ERRORED = "errored"


class Torrent(TolerantModel):
    hash: str
    name: str = "Unknown"
    size: int | None = None
    progress: float = 0.0
    dlspeed: int = 0
    upspeed: int = 0
    eta: int | None = None
    ratio: float | None = None
    state: str = "unknown"
    category: str | None = None
    tags: str | None = None
    num_seeds: int | None = None
    num_leechs: int | None = None
    save_path: str | None = None
    content_path: str | None = None
    added_on: int | None = None
    completion_on: int | None = None
    downloaded: int | None = None
    uploaded: int | None = None
    amount_left: int | None = None
    tracker: str | None = None

    @property
    def is_paused(self) -> bool:
        # qBittorrent 5 reports "stopped*" where 4.x reported "paused*"
        lowered = self.state.lower()
        return self.state in PAUSED_STATES or "paused" in lowered or "stopped" in lowered

    @property
    def is_downloading(self) -> bool:
        return self.state in DOWNLOADING_STATES

    @property
    def is_uploading(self) -> bool:
        return self.state in UPLOADING_STATES

    @property
    def has_error(self) -> bool:
        return self.state in ERROR_STATES

    @property
    def can_resume(self) -> bool:
        return self.is_paused or self.state == "error"

    @property
    def can_pause(self) -> bool:
        return not self.is_paused and self.state != "error"


class ServerState(TolerantModel):
    alltime_dl: int | None = None
    alltime_ul: int | None = None
    connection_status: str = "unknown"
    dht_nodes: int | None = None
    dl_info_data: int | None = None
    dl_info_speed: int | None = None
    up_info_data: int | None = None
    up_info_speed: int | None = None
    dl_rate_limit: int | None = None
    up_rate_limit: int | None = None
    free_space_on_disk: int | None = None
    total_peer_connections: int | None = None
    use_alt_speed_limits: bool | None = None


class Category(TolerantModel):
    name: str | None = None
    save_path: str | None = Field(default=None, alias="savePath")


class MainData(TolerantModel):
    rid: int = 0
    full_update: bool = False
    torrents: dict[str, dict] = Field(default_factory=dict)
    torrents_removed: list[str] = Field(default_factory=list)
    categories: dict[str, Category] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    server_state: ServerState | None = None
