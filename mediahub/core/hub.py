"""
Single construction point for the long-lived application objects.
"""

import logging
from pathlib import Path
from typing import Any

from mediahub.models.config import AppConfig
from mediahub.storage.cache import ResponseCache
from mediahub.storage.config_manager import CONFIG_FILE_NAME, ConfigManager, get_config_dir
from mediahub.storage.credentials import CredentialStore
from mediahub.storage.registry import InstanceRegistry
from mediahub.utils.structured_logger import create_structured_logger

from .orchestrator import InstanceOrchestrator

log = logging.getLogger(__name__)


class MediaHub:
    """
    Owns the credential store, registry, response cache and orchestrator.

    Use as an async context manager: entering loads the registry and starts the
    cache sweep, leaving stops the sweep and closes every HTTP session.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        config_dir = Path(config.config_path)
        log_dir = Path(config.json_log_dir).expanduser() if config.json_log_dir else None
        self.structured_logger, api_logger, connection_logger = create_structured_logger(
            log_dir, enable_json=log_dir is not None
        )
        self.credentials = CredentialStore(config_dir, config.secret_key)
        self.registry = InstanceRegistry(config_dir, self.credentials)
        self.cache = ResponseCache(
            default_ttl=config.cache_default_ttl,
            sweep_interval=config.cache_sweep_interval,
        )
        self.orchestrator = InstanceOrchestrator(
            self.registry,
            self.credentials,
            self.cache,
            config,
            api_logger=api_logger,
            connection_logger=connection_logger,
        )

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Path | None = None,
        cli_options: dict[str, Any] | None = None,
    ) -> "MediaHub":
        """Loads ``config.ini`` from ``config_dir`` (default location if None)."""
        config_dir = config_dir or get_config_dir()
        config = ConfigManager(config_dir / CONFIG_FILE_NAME).load_config(cli_options)
        return cls(config)

    async def start(self) -> None:
        await self.registry.load()
        await self.cache.start_background_cleanup()

    async def close(self) -> None:
        try:
            await self.cache.stop_background_cleanup()
            await self.orchestrator.close()
        finally:
            self.structured_logger.close()

    async def __aenter__(self) -> "MediaHub":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
