"""
Ports - Interfaces for the directory session and the result cache.

Hexagonal architecture: These define WHAT we need, not HOW.
Adapters provide the HOW.
"""

from ufds_client.ports.cache_port import CachePort
from ufds_client.ports.directory_port import DirectoryPort, SCOPES

__all__ = [
    "CachePort",
    "DirectoryPort",
    "SCOPES",
]
