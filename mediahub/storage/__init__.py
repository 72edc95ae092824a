"""
Storage Layer.

This package handles all data persistence: the configuration file, the encrypted
credential store, the instance registry, and the in-memory response cache.
"""

from .cache import CacheKeys, ResponseCache
from .config_manager import ConfigManager
from .credentials import CredentialKind, CredentialStore
from .registry import InstanceRegistry

__all__ = [
    "CacheKeys",
    "ConfigManager",
    "CredentialKind",
    "CredentialStore",
    "InstanceRegistry",
    "ResponseCache",
]
