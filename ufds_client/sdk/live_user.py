"""
Live User - Account snapshot bound to the client that fetched it.

    user = await ufds.get_user("admin")
    if not user.is_admin():
        await user.add_to_group("operators")
    await user.add_key(open("id_rsa.pub").read())
"""

import dataclasses
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from ufds_client.domain.dn import group_dn, normalize_dn
from ufds_client.domain.key import SSHKey
from ufds_client.domain.records import Limit, VmUsage
from ufds_client.domain.refs import AccountRef, Resolved, account_ref
from ufds_client.domain.user import User

if TYPE_CHECKING:
    from ufds_client.sdk.client import DirectoryClient


class LiveUser:
    """
    An account record plus the operations that act on it.

    Reads come from the snapshot taken at fetch time; every method call
    goes to the directory with this account pre-resolved (no re-fetch).
    """

    def __init__(self, user: User, client: "DirectoryClient"):
        self._user = user
        self._client = client

    def __repr__(self) -> str:
        return f"LiveUser(login={self.login!r}, uuid={self.uuid!r})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, LiveUser):
            return self._user == other._user
        return NotImplemented

    # --- Snapshot

    @property
    def user(self) -> User:
        return self._user

    @property
    def uuid(self) -> str:
        return self._user.uuid

    @property
    def login(self) -> str:
        return self._user.login

    @property
    def dn(self) -> str:
        return self._user.dn

    @property
    def email(self) -> Optional[str]:
        return self._user.email

    @property
    def memberof(self) -> List[str]:
        return list(self._user.memberof)

    def get(self, name: str, default: Any = None) -> Any:
        return self._user.get(name, default)

    def to_dict(self) -> Dict[str, Any]:
        return self._user.to_dict()

    def is_admin(self) -> bool:
        return self._user.is_admin()

    def is_reader(self) -> bool:
        return self._user.is_reader()

    def groups(self) -> List[str]:
        return self._user.groups()

    # --- Directory operations

    async def authenticate(self, password: str) -> "LiveUser":
        return await self._client.authenticate(self, password)

    async def add_key(self, key: Union[str, Dict[str, Any]]) -> SSHKey:
        return await self._client.add_key(self, key)

    async def get_key(self, fingerprint: str) -> SSHKey:
        return await self._client.get_key(self, fingerprint)

    async def list_keys(self) -> List[SSHKey]:
        return await self._client.list_keys(self)

    async def delete_key(self, key: Union[str, SSHKey]) -> None:
        await self._client.delete_key(self, key)

    async def add_limit(self, limit: Union[Dict[str, Any], Limit]) -> Limit:
        return await self._client.add_limit(self, limit)

    async def get_limit(self, datacenter: Union[str, Limit]) -> Limit:
        return await self._client.get_limit(self, datacenter)

    async def list_limits(self) -> List[Limit]:
        return await self._client.list_limits(self)

    async def update_limit(self, limit: Union[Dict[str, Any], Limit]) -> None:
        await self._client.update_limit(self, limit)

    async def delete_limit(self, limit: Union[str, Dict[str, Any], Limit]) -> None:
        await self._client.delete_limit(self, limit)

    async def list_vms_usage(self) -> List[VmUsage]:
        return await self._client.list_vms_usage(self)

    async def add_to_group(self, group: str) -> None:
        """Join a group; the snapshot's memberof is updated to match."""
        await self._client.add_to_group(self, group)
        dn = group_dn(group)
        if not self._user.is_member(dn):
            self._user = dataclasses.replace(self._user, memberof=self._user.memberof + [dn])

    async def remove_from_group(self, group: str) -> None:
        """Leave a group; the snapshot's memberof is updated to match."""
        await self._client.remove_from_group(self, group)
        target = normalize_dn(group_dn(group))
        self._user = dataclasses.replace(
            self._user,
            memberof=[g for g in self._user.memberof if normalize_dn(g) != target],
        )

    async def unlock(self) -> None:
        await self._client.unlock(self)

    async def destroy(self) -> None:
        """Delete this account."""
        await self._client.delete_user(self)


@account_ref.register
def _(account: LiveUser) -> AccountRef:
    return Resolved(account.user)
