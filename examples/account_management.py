"""
Account Management Example - accounts, keys, limits and groups against an in-memory directory.

Swap MemoryDirectoryAdapter for a real server by dropping the `transport`
argument and setting UFDS_URL / UFDS_BIND_DN / UFDS_BIND_PASSWORD.
"""

import asyncio
import base64
import logging
import struct

from ufds_client import CacheConfig, DirectoryClient, DirectoryConfig, RetryPolicy
from ufds_client.adapters import MemoryDirectoryAdapter


def sample_key() -> str:
    blob = b"".join(
        struct.pack(">I", len(part)) + part
        for part in (b"ssh-ed25519", bytes(range(32)))
    )
    return "ssh-ed25519 " + base64.b64encode(blob).decode() + " demo@example"


async def main():
    logging.basicConfig(level=logging.INFO)

    directory = MemoryDirectoryAdapter()
    directory.seed("cn=operators, ou=groups, o=smartdc", {
        "objectclass": "groupofuniquenames", "cn": "operators",
    })

    config = DirectoryConfig(
        url="ldap://127.0.0.1:389",
        bind_dn="cn=root",
        bind_password="secret",
        retry=RetryPolicy(retries=3),
        cache=CacheConfig(size=100, expiry=30),
    )

    async with DirectoryClient(config, transport=directory) as ufds:
        # Create an account
        user = await ufds.add_user({
            "login": "alice",
            "email": "alice@example.com",
            "userpassword": "secret123",
        })
        print(f"Created user: {user.login} ({user.uuid})")

        # Authenticate
        user = await ufds.authenticate("alice", "secret123")
        print(f"Authenticated: {user.login}")

        # Keys
        key = await user.add_key({"name": "laptop", "openssh": sample_key()})
        print(f"\nAdded key {key.name}: {key.fingerprint}")
        print(f"Keys on account: {[k.name for k in await user.list_keys()]}")

        # Limits
        await user.add_limit({"datacenter": "us-east-1", "smartos": 10})
        await user.update_limit({"datacenter": "us-east-1", "smartos": 20})
        limit = await user.get_limit("us-east-1")
        print(f"\nLimit for {limit.datacenter}: {limit.values}")

        # Groups
        await user.add_to_group("operators")
        print(f"\nGroups: {user.groups()}  admin={user.is_admin()}")

        # Metadata
        await ufds.add_metadata(user, "portal", {"theme": "dark"})
        meta = await ufds.get_metadata(user, "portal")
        print(f"Metadata {meta.key}: {meta.attributes.get('theme')}")

        # Cleanup: an account with children cannot be deleted
        await user.remove_from_group("operators")
        await user.delete_key(key)
        await user.delete_limit("us-east-1")
        await ufds.delete(meta.dn)
        await user.destroy()
        print("\nAccount removed")


if __name__ == "__main__":
    asyncio.run(main())
