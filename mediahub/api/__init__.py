"""
Service API Layer.

This package handles all communication with the backend services: one client per
service kind, sharing the transport and error mapping of ``ServiceClient``.
"""

from .base import CacheTTLs, ServiceClient
from .overseerr import OverseerrClient
from .qbittorrent import QBittorrentClient
from .radarr import RadarrClient
from .sonarr import SonarrClient
from .tmdb import TMDBClient

__all__ = [
    "CacheTTLs",
    "OverseerrClient",
    "QBittorrentClient",
    "RadarrClient",
    "ServiceClient",
    "SonarrClient",
    "TMDBClient",
]
