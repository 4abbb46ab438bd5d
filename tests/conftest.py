"""
Shared fixtures: an in-memory directory and a client bound to it.
"""

import base64
import hashlib
import struct

import pytest
import pytest_asyncio

from ufds_client import DirectoryClient, DirectoryConfig, RetryPolicy
from ufds_client.adapters import MemoryCacheAdapter, MemoryDirectoryAdapter


def make_key(seed: int, comment: str = "test@example") -> str:
    """Build a well-formed ssh-ed25519 public key line."""
    blob = struct.pack(">I", 11) + b"ssh-ed25519" + struct.pack(">I", 32) + bytes([seed]) * 32
    return f"ssh-ed25519 {base64.b64encode(blob).decode()} {comment}"


def fingerprint_of(openssh: str) -> str:
    digest = hashlib.md5(base64.b64decode(openssh.split()[1])).hexdigest()
    return ":".join(digest[i:i + 2] for i in range(0, 32, 2))


@pytest.fixture
def config():
    return DirectoryConfig(
        url="ldap://127.0.0.1:1389",
        bind_dn="cn=root",
        bind_password="secret",
        retry=RetryPolicy(retries=3, min_timeout=1, max_timeout=5),
    )


@pytest.fixture
def directory():
    """Directory seeded with the operators and readers groups."""
    adapter = MemoryDirectoryAdapter(bind_dn="cn=root", bind_password="secret")
    for name in ("operators", "readers"):
        adapter.seed(f"cn={name}, ou=groups, o=smartdc", {
            "objectclass": "groupofuniquenames",
            "cn": name,
        })
    return adapter


@pytest.fixture
def cache():
    return MemoryCacheAdapter(size=100, expiry=60)


@pytest_asyncio.fixture
async def client(config, directory, cache):
    """Bound client over the in-memory directory."""
    ufds = DirectoryClient(config, transport=directory, cache=cache)
    await ufds.connect()
    yield ufds
    await ufds.close()


@pytest.fixture
def user_attrs():
    return {
        "login": "a1234567",
        "email": "a1234567@example.com",
        "userpassword": "secret123",
        "cn": "Test User",
    }


@pytest.fixture
def key_factory():
    """make_key(seed) -> public key line."""
    return make_key


@pytest.fixture
def fingerprint():
    """fingerprint(openssh) -> expected MD5 fingerprint."""
    return fingerprint_of
