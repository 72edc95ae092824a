"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application: configuration, instances and groups, and the
normalized payloads of every backend service.
"""

from .config import AppConfig
from .instance import ConnectionTestResult, InstanceGroup, ServiceInstance, ServiceType

__all__ = [
    "AppConfig",
    "ConnectionTestResult",
    "InstanceGroup",
    "ServiceInstance",
    "ServiceType",
]
