"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Network
    request_timeout: float = 30.0
    connection_test_timeout: float = 15.0
    max_concurrent_requests: int = 8

    # Response cache (seconds)
    cache_default_ttl: float = 60.0
    cache_sweep_interval: float = 60.0
    search_cache_ttl: float = 120.0
    discover_cache_ttl: float = 300.0
    library_cache_ttl: float = 60.0

    # Metadata provider
    tmdb_language: str = "en-US"

    # Security & logging
    secret_key: str = Field(default="", repr=False)
    json_log_dir: str = ""

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    @field_validator(
        "request_timeout",
        "connection_test_timeout",
        "cache_default_ttl",
        "cache_sweep_interval",
        "search_cache_ttl",
        "discover_cache_ttl",
        "library_cache_ttl",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Ensures durations are strictly positive."""
        if v <= 0:
            raise ValueError("Durations must be greater than zero.")
        return v

    @field_validator("max_concurrent_requests")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent requests."""
        if v < 1 or v > 32:
            raise ValueError("Max concurrent requests must be between 1 and 32.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
