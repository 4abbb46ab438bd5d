"""
UFDS Client - Directory client for accounts, keys, limits and groups

Hexagonal architecture: domain records and the naming scheme sit behind
ports for the directory session and the search cache.

Usage:
    from ufds_client import DirectoryClient, DirectoryConfig

    config = DirectoryConfig.from_env()

    async with DirectoryClient(config) as ufds:
        # Look up and authenticate
        user = await ufds.authenticate("admin", "secret")

        # Manage keys
        key = await user.add_key(public_key)
"""

__version__ = "0.1.0"

from ufds_client.sdk.client import DirectoryClient
from ufds_client.sdk.live_user import LiveUser
from ufds_client.config import DirectoryConfig, RetryPolicy, CacheConfig
from ufds_client.domain.user import User
from ufds_client.domain.key import SSHKey
from ufds_client.domain.records import Limit, VmUsage, Metadata, ForeignDatacenter
from ufds_client.errors import (
    DirectoryError,
    ResourceNotFoundError,
    InvalidArgumentError,
    MissingParameterError,
    NotAllowedError,
    InvalidCredentialsError,
    InternalError,
)

__all__ = [
    "DirectoryClient",
    "LiveUser",
    "DirectoryConfig",
    "RetryPolicy",
    "CacheConfig",
    "User",
    "SSHKey",
    "Limit",
    "VmUsage",
    "Metadata",
    "ForeignDatacenter",
    "DirectoryError",
    "ResourceNotFoundError",
    "InvalidArgumentError",
    "MissingParameterError",
    "NotAllowedError",
    "InvalidCredentialsError",
    "InternalError",
]
