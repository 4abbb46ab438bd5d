"""
Adapters - Implementations of ports.

Directory Sessions:
- Ldap3DirectoryAdapter: LDAP session over ldap3
- MemoryDirectoryAdapter: In-memory directory tree (testing)

Result Caches:
- MemoryCacheAdapter: In-process LRU cache
- RedisCacheAdapter: Redis-backed cache
"""

# Directory Sessions
from ufds_client.adapters.ldap3_directory import Ldap3DirectoryAdapter
from ufds_client.adapters.memory_directory import MemoryDirectoryAdapter

# Result Caches
from ufds_client.adapters.memory_cache import MemoryCacheAdapter
from ufds_client.adapters.redis_cache import RedisCacheAdapter

__all__ = [
    # Directory Sessions
    "Ldap3DirectoryAdapter",
    "MemoryDirectoryAdapter",
    # Result Caches
    "MemoryCacheAdapter",
    "RedisCacheAdapter",
]
