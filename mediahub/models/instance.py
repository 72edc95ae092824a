"""
Models for configured service instances, their groups, and connection tests.
"""

from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mediahub.exceptions import MediaHubError


class ServiceType(str, Enum):
    """The four kinds of backend an instance can point at."""

    OVERSEERR = "overseerr"
    RADARR = "radarr"
    SONARR = "sonarr"
    QBITTORRENT = "qbittorrent"

    @property
    def display_name(self) -> str:
        return {
            ServiceType.OVERSEERR: "Overseerr",
            ServiceType.RADARR: "Radarr",
            ServiceType.SONARR: "Sonarr",
            ServiceType.QBITTORRENT: "qBittorrent",
        }[self]

    @property
    def uses_api_key(self) -> bool:
        """qBittorrent authenticates with username/password, the others with a key."""
        return self is not ServiceType.QBITTORRENT


class ServiceInstance(BaseModel):
    """One configured, user-named connection to a backend service."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4, frozen=True)
    name: str
    base_url: str
    service_type: ServiceType
    is_enabled: bool = True
    group_id: UUID | None = None

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Instance name cannot be empty.")
        return v

    @property
    def display_url(self) -> str:
        return self.base_url.replace("https://", "").replace("http://", "")


GROUP_COLORS = ["red", "orange", "yellow", "green", "blue", "purple", "pink", "gray"]


class InstanceGroup(BaseModel):
    """A non-owning, ordered classification of instances."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4, frozen=True)
    name: str
    icon: str = "server.rack"
    color: str = "blue"
    order: int = 0

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        return v if v in GROUP_COLORS else "blue"


class ConnectionTestResult(BaseModel):
    """Outcome of a connection test. Never persisted."""

    success: bool
    message: str
    response_time: float | None = None
    http_status_code: int | None = None
    recovery_suggestion: str | None = None

    @classmethod
    def from_error(cls, error: Exception) -> "ConnectionTestResult":
        """Renders any failure into a failed result."""
        if isinstance(error, MediaHubError):
            return cls(
                success=False,
                message=str(error),
                http_status_code=getattr(error, "status", None),
                recovery_suggestion=error.recovery_suggestion,
            )
        return cls(success=False, message=f"Unexpected error: {error}")
