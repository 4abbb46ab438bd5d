"""
Directory Client - High-level SDK for UFDS account operations.

Combines the connection manager, the search cache and the naming scheme
into account, key, limit, group, metadata and federation operations.
"""

import copy
import json
import logging
import threading
import uuid as uuidlib
from typing import Any, Callable, Dict, List, Optional, Union

from ldap3.core import results
from ldap3.utils.conv import escape_filter_chars

from ufds_client.config import DirectoryConfig
from ufds_client.domain.changes import IMMUTABLE, Change, diff_changes, limit_changes
from ufds_client.domain.dn import (
    ADMIN_GROUP,
    GROUPS,
    READERS_GROUP,
    USERS,
    EntityKind,
    authdev_dn,
    foreigndc_dn,
    group_dn,
    is_parent_of,
    key_dn,
    limit_dn,
    metadata_dn,
    user_dn,
)
from ufds_client.domain.key import InvalidKeyError, SSHKey, compute_fingerprint
from ufds_client.domain.records import ForeignDatacenter, Limit, Metadata, VmUsage
from ufds_client.domain.refs import account_ref
from ufds_client.domain.user import User
from ufds_client.errors import (
    InternalError,
    InvalidArgumentError,
    InvalidCredentialsError,
    MissingParameterError,
    NotAllowedError,
    ResourceNotFoundError,
    translate_error,
)
from ufds_client.ports.cache_port import CachePort
from ufds_client.ports.directory_port import SCOPES, DirectoryPort
from ufds_client.sdk.connection import ConnectionManager
from ufds_client.sdk.live_user import LiveUser

logger = logging.getLogger(__name__)

Account = Union[str, User, LiveUser]

_USER_IMMUTABLE = IMMUTABLE | {"memberof"}
_METADATA_IMMUTABLE = frozenset({"dn", "objectclass"})


def _cause_code(err: Exception) -> Optional[int]:
    return getattr(getattr(err, "cause", None), "result", None)


class DirectoryClient:
    """
    UFDS directory client.

    Every operation is a coroutine; failures raise DirectoryError
    subclasses (see ufds_client.errors).

    Example:
        from ufds_client import DirectoryClient, DirectoryConfig

        config = DirectoryConfig(
            url="ldaps://10.99.99.18",
            bind_dn="cn=root",
            bind_password="secret",
        )

        async with DirectoryClient(config) as ufds:
            user = await ufds.get_user("admin")
            keys = await user.list_keys()
    """

    def __init__(
        self,
        config: DirectoryConfig,
        transport: Optional[DirectoryPort] = None,
        cache: Optional[CachePort] = None,
    ):
        """
        Initialize directory client.

        Args:
            config: Connection, retry and cache settings
            transport: Directory session adapter (default: ldap3 session for config.url)
            cache: Search cache (default: built from config.cache; None disables)
        """
        self._config = config
        self._log = config.log.getChild("ufds") if config.log else logger

        if transport is None:
            from ufds_client.adapters.ldap3_directory import Ldap3DirectoryAdapter
            transport = Ldap3DirectoryAdapter(
                url=config.url,
                bind_dn=config.bind_dn,
                bind_password=config.bind_password,
                timeout=config.client_timeout,
                connect_timeout=config.connect_timeout,
                hidden=config.hidden,
            )

        self._manager = ConnectionManager(
            transport,
            retry=config.retry,
            max_connections=config.max_connections,
            bind_dn=config.bind_dn,
            log=self._log,
        )

        self._cache = cache if cache is not None else config.build_cache()
        self._cache_lock = threading.Lock()

    async def __aenter__(self) -> "DirectoryClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --- Lifecycle

    @property
    def connected(self) -> bool:
        return self._manager.bound

    @property
    def cache(self) -> Optional[CachePort]:
        """Current cache instance (replaced on every write)."""
        with self._cache_lock:
            return self._cache

    def on(self, signal: str, callback: Callable) -> Callable:
        """Subscribe to connect, ready, error, timeout or close."""
        return self._manager.on(signal, callback)

    async def connect(self) -> None:
        """Bind to the directory (retries per config.retry)."""
        await self._manager.connect()

    async def close(self) -> None:
        """Unbind, or abort a bind still in progress."""
        await self._manager.close()

    def set_log_level(self, level: Union[int, str]) -> None:
        """
        Set the client's log level.

        Args:
            level: logging level number or name ("debug", "INFO", ...)
        """
        if isinstance(level, str):
            level = level.upper()
        self._log.setLevel(level)

    # --- Cache

    @staticmethod
    def _cache_key(base: str, scope: str, search_filter: str) -> str:
        return base + "::" + json.dumps({"scope": scope, "filter": search_filter}, sort_keys=True)

    def _invalidate(self) -> None:
        with self._cache_lock:
            if self._cache is not None:
                self._cache = self._cache.fresh()
                self._log.debug("ufds: cache invalidated")

    async def _cache_call(self, method: Callable, *args: Any) -> Any:
        if getattr(method.__self__, "blocking", False):
            return await self._manager.offload(method, *args)
        return method(*args)

    def _require_connection(self) -> None:
        if not self._manager.bound:
            raise InternalError("not connected")

    # --- Low-level operations

    async def add(self, dn: str, attributes: Dict[str, Any]) -> None:
        """
        Add an entry.

        Args:
            dn: DN of the new entry
            attributes: Entry attributes (must include objectclass)
        """
        self._require_connection()
        try:
            await self._manager.call("add", dn, attributes)
        except Exception as e:
            raise translate_error(e)
        self._invalidate()

    async def delete(self, dn: str) -> None:
        """Delete a leaf entry."""
        self._require_connection()
        try:
            await self._manager.call("delete", dn)
        except Exception as e:
            raise translate_error(e)
        self._invalidate()

    async def modify(self, dn: str, changes: List[Change]) -> None:
        """
        Apply a change list to an entry.

        Args:
            dn: DN of the entry
            changes: Changes applied atomically, in order
        """
        self._require_connection()
        try:
            await self._manager.call("modify", dn, list(changes))
        except Exception as e:
            raise translate_error(e)
        self._invalidate()

    async def search(
        self,
        base: str,
        scope: str = "sub",
        search_filter: str = "(objectclass=*)",
    ) -> List[Dict[str, Any]]:
        """
        Search the directory, consulting the cache first.

        Args:
            base: Search base DN
            scope: base, one or sub
            search_filter: LDAP filter string

        Returns:
            Matching entries (flat dicts, lower-cased attribute names, plus dn)
        """
        if scope not in SCOPES:
            raise InvalidArgumentError(f"scope must be one of {', '.join(SCOPES)}")
        self._require_connection()

        key = self._cache_key(base, scope, search_filter)
        cache = self.cache
        if cache is not None:
            hit = await self._cache_call(cache.get, key)
            if hit is not None:
                return copy.deepcopy(hit)

        try:
            entries = await self._manager.call("search", base, scope, search_filter)
        except Exception as e:
            raise translate_error(e)

        if entries and cache is not None:
            await self._cache_call(cache.put, key, copy.deepcopy(entries))
        return entries

    async def compare(self, dn: str, attribute: str, value: str) -> bool:
        """Check an attribute value on the server without reading it."""
        self._require_connection()
        try:
            return await self._manager.call("compare", dn, attribute, value)
        except Exception as e:
            raise translate_error(e)

    # --- Accounts

    async def _lookup(self, login: str) -> User:
        found = await self.search(
            USERS,
            "one",
            "(&(objectclass={oc})(|(login={v})(uuid={v})))".format(
                oc=EntityKind.USER.object_class, v=escape_filter_chars(login),
            ),
        )
        if not found:
            raise ResourceNotFoundError(f"{login} does not exist")

        entry = found[0]
        groups = await self.search(
            GROUPS,
            "one",
            "(&(objectclass={oc})(uniquemember={dn}))".format(
                oc=EntityKind.GROUP.object_class, dn=escape_filter_chars(entry["dn"]),
            ),
        )
        return User.from_entry(entry, memberof=[g["dn"] for g in groups])

    async def _resolve(self, account: Account) -> User:
        try:
            ref = account_ref(account)
        except TypeError as e:
            raise InvalidArgumentError(str(e))
        return await ref.resolve(self._lookup)

    def _live(self, account: Account, user: User) -> LiveUser:
        if isinstance(account, LiveUser):
            return account
        return LiveUser(user, self)

    async def get_user(self, account: Account) -> LiveUser:
        """
        Look up an account by login or uuid.

        Args:
            account: Login, uuid, User or LiveUser (records pass through)

        Returns:
            LiveUser with memberof computed from the groups tree

        Raises:
            ResourceNotFoundError: No such account
        """
        user = await self._resolve(account)
        return self._live(account, user)

    async def add_user(self, user: Dict[str, Any]) -> LiveUser:
        """
        Create an account.

        Args:
            user: sdcperson attributes (login, email, userpassword, ...);
                uuid is generated when not supplied

        Returns:
            The created account, freshly fetched
        """
        entry = {k: v for k, v in user.items() if k not in ("dn", "objectclass", "memberof")}
        entry["uuid"] = entry.get("uuid") or str(uuidlib.uuid4())
        entry["objectclass"] = EntityKind.USER.object_class

        await self.add(user_dn(entry["uuid"]), entry)
        self._log.info("ufds: added user %s (%s)", entry.get("login"), entry["uuid"])
        return await self.get_user(entry["uuid"])

    async def update_user(self, account: Account, changes: Dict[str, Any]) -> None:
        """
        Merge changes into an account.

        A None value deletes the attribute; dn, objectclass and uuid are
        never modified. Nothing is sent when nothing differs.
        """
        user = await self._resolve(account)
        diff = diff_changes(
            user.to_dict(),
            {k.lower(): v for k, v in changes.items()},
            immutable=_USER_IMMUTABLE,
        )
        if not diff:
            return
        await self.modify(user.dn, diff)

    async def delete_user(self, account: Account) -> None:
        """Delete an account (fails with NotAllowed while it has children)."""
        user = await self._resolve(account)
        await self.delete(user.dn)
        self._log.info("ufds: deleted user %s", user.login)

    async def authenticate(self, account: Account, password: str) -> LiveUser:
        """
        Check an account's password.

        Returns:
            The resolved account

        Raises:
            ResourceNotFoundError: No such account
            InvalidCredentialsError: Password mismatch
        """
        user = await self._resolve(account)
        if not await self.compare(user.dn, "userpassword", password):
            raise InvalidCredentialsError("The credentials provided are invalid")
        return self._live(account, user)

    async def unlock(self, account: Account) -> None:
        """
        Clear password failure and lockout state.

        Always sent to the server: the lockout attributes are written by the
        server itself, so a fetched record may not show them yet.
        """
        user = await self._resolve(account)
        for attribute in ("pwdfailuretime", "pwdaccountlockedtime"):
            try:
                await self.modify(user.dn, [Change.delete(attribute)])
            except ResourceNotFoundError as e:
                if _cause_code(e) != results.RESULT_NO_SUCH_ATTRIBUTE:
                    raise

    # --- Groups

    async def is_admin(self, account: Account) -> bool:
        return (await self._resolve(account)).is_member(ADMIN_GROUP)

    async def is_reader(self, account: Account) -> bool:
        return (await self._resolve(account)).is_member(READERS_GROUP)

    async def add_to_group(self, account: Account, group: str) -> None:
        """Add an account to a group; a no-op for members."""
        user = await self._resolve(account)
        dn = group_dn(group)
        if user.is_member(dn):
            return

        try:
            await self.modify(dn, [Change.add("uniquemember", user.dn)])
        except InvalidArgumentError as e:
            if _cause_code(e) != results.RESULT_ATTRIBUTE_OR_VALUE_EXISTS:
                raise

    async def remove_from_group(self, account: Account, group: str) -> None:
        """Remove an account from a group; a no-op for non-members."""
        user = await self._resolve(account)
        dn = group_dn(group)
        if not user.is_member(dn):
            return

        try:
            await self.modify(dn, [Change.delete("uniquemember", user.dn)])
        except ResourceNotFoundError as e:
            if _cause_code(e) != results.RESULT_NO_SUCH_ATTRIBUTE:
                raise

    # --- Keys

    async def list_keys(self, account: Account) -> List[SSHKey]:
        user = await self._resolve(account)
        entries = await self.search(user.dn, "one", f"(objectclass={EntityKind.KEY.object_class})")
        return [SSHKey.from_entry(e) for e in entries]

    async def get_key(self, account: Account, fingerprint: str) -> SSHKey:
        """
        Find a key by fingerprint or by name.

        Raises:
            ResourceNotFoundError: No key matches
        """
        for key in await self.list_keys(account):
            if key.matches(fingerprint):
                return key
        raise ResourceNotFoundError(f"{fingerprint} does not exist")

    async def add_key(self, account: Account, key: Union[str, Dict[str, Any]]) -> SSHKey:
        """
        Add an SSH public key to an account.

        Args:
            account: Target account
            key: OpenSSH public key line, or {"openssh": ..., "name": ...};
                name defaults to the fingerprint

        Returns:
            The stored key

        Raises:
            InvalidArgumentError: Malformed key, or fingerprint/name already used
        """
        if isinstance(key, str):
            key = {"openssh": key}
        openssh = key.get("openssh")
        if not openssh:
            raise MissingParameterError("key.openssh is required")

        try:
            fingerprint = compute_fingerprint(openssh)
        except InvalidKeyError as e:
            raise InvalidArgumentError(str(e), cause=e)
        name = key.get("name") or fingerprint

        user = await self._resolve(account)
        for existing in await self.list_keys(user):
            if existing.matches(fingerprint) or existing.matches(name):
                raise InvalidArgumentError(
                    f"Key with name={name}, fingerprint={fingerprint} already exists"
                )

        await self.add(key_dn(user.uuid, fingerprint), {
            "openssh": openssh,
            "fingerprint": fingerprint,
            "name": name,
            "objectclass": EntityKind.KEY.object_class,
        })
        return await self.get_key(user, fingerprint)

    async def delete_key(self, account: Account, key: Union[str, SSHKey]) -> None:
        """
        Delete a key given by fingerprint, name or record.

        Raises:
            NotAllowedError: The key does not belong to the account
        """
        user = await self._resolve(account)
        if not isinstance(key, SSHKey):
            key = await self.get_key(user, key)

        if not is_parent_of(user.dn, key.dn):
            raise NotAllowedError(f"{key.dn} not a child of {user.dn}")
        await self.delete(key.dn)

    # --- Limits

    async def list_limits(self, account: Account) -> List[Limit]:
        user = await self._resolve(account)
        entries = await self.search(user.dn, "one", f"(objectclass={EntityKind.LIMIT.object_class})")
        return [Limit.from_entry(e) for e in entries]

    async def get_limit(self, account: Account, datacenter: Union[str, Limit]) -> Limit:
        """
        Get an account's limit for one datacenter.

        A Limit passed as `datacenter` is returned as-is.

        Raises:
            ResourceNotFoundError: No limit for that datacenter
        """
        if isinstance(datacenter, Limit):
            return datacenter

        user = await self._resolve(account)
        for limit in await self.list_limits(user):
            if limit.datacenter == datacenter:
                return limit
        raise ResourceNotFoundError(f"No limit found for {user.login}/{datacenter}")

    @staticmethod
    def _limit_fields(limit: Union[Dict[str, Any], Limit]) -> Dict[str, Any]:
        data = limit.to_dict() if isinstance(limit, Limit) else dict(limit)
        if not data.get("datacenter"):
            raise MissingParameterError("limit.datacenter is required")
        data.pop("dn", None)
        return data

    async def add_limit(self, account: Account, limit: Union[Dict[str, Any], Limit]) -> Limit:
        """
        Create a per-datacenter limit.

        Args:
            account: Target account
            limit: {"datacenter": ..., <quota field>: <number>, ...}

        Returns:
            The stored limit
        """
        data = self._limit_fields(limit)
        data["objectclass"] = EntityKind.LIMIT.object_class

        user = await self._resolve(account)
        await self.add(limit_dn(user.uuid, data["datacenter"]), data)
        return await self.get_limit(user, data["datacenter"])

    async def update_limit(self, account: Account, limit: Union[Dict[str, Any], Limit]) -> None:
        """
        Update a limit in place.

        A field given a falsy value while currently set is removed.
        """
        data = self._limit_fields(limit)
        user = await self._resolve(account)
        current = await self.get_limit(user, data["datacenter"])

        changes = limit_changes(current.to_dict(), data)
        if not changes:
            return
        await self.modify(limit_dn(user.uuid, data["datacenter"]), changes)

    async def delete_limit(self, account: Account, limit: Union[str, Dict[str, Any], Limit]) -> None:
        """Delete every quota for a datacenter."""
        datacenter = limit if isinstance(limit, str) else self._limit_fields(limit)["datacenter"]
        user = await self._resolve(account)
        await self.delete(limit_dn(user.uuid, datacenter))

    # --- VM usage

    async def list_vms_usage(self, account: Account) -> List[VmUsage]:
        user = await self._resolve(account)
        entries = await self.search(user.dn, "one", f"(objectclass={EntityKind.VM.object_class})")
        return [VmUsage.from_entry(e) for e in entries]

    # --- Metadata

    async def get_metadata(self, account: Account, key: str) -> Metadata:
        """
        Get an application's metadata bag.

        Raises:
            ResourceNotFoundError: No metadata under that key
        """
        user = await self._resolve(account)
        found = await self.search(
            metadata_dn(user.uuid, key), "base",
            f"(objectclass={EntityKind.METADATA.object_class})",
        )
        if not found:
            raise ResourceNotFoundError(f"metadata {key} does not exist")
        return Metadata.from_entry(found[0], key=key)

    async def add_metadata(self, account: Account, key: str, metadata: Dict[str, Any]) -> Metadata:
        """
        Create an application's metadata bag.

        Raises:
            InvalidArgumentError: Metadata already exists under that key
        """
        user = await self._resolve(account)
        try:
            await self.get_metadata(user, key)
        except ResourceNotFoundError:
            pass
        else:
            raise InvalidArgumentError(f"Metadata with key {key} already exists")

        return await self._insert_metadata(user, key, metadata)

    async def _insert_metadata(self, user: User, key: str, metadata: Dict[str, Any]) -> Metadata:
        entry = {k: v for k, v in metadata.items()
                 if k not in _METADATA_IMMUTABLE and v is not None and not callable(v)}
        entry["objectclass"] = EntityKind.METADATA.object_class
        await self.add(metadata_dn(user.uuid, key), entry)
        return await self.get_metadata(user, key)

    async def modify_metadata(self, account: Account, key: str, metadata: Dict[str, Any]) -> Metadata:
        """
        Merge fields into an application's metadata bag, creating it if absent.

        A None value deletes the field.

        Returns:
            The metadata after the change
        """
        user = await self._resolve(account)
        try:
            current = await self.get_metadata(user, key)
        except ResourceNotFoundError:
            return await self._insert_metadata(user, key, metadata)

        changes = diff_changes(
            current.attributes,
            {k.lower(): v for k, v in metadata.items()},
            immutable=_METADATA_IMMUTABLE,
        )
        if not changes:
            return current
        await self.modify(metadata_dn(user.uuid, key), changes)
        return await self.get_metadata(user, key)

    # --- Foreign datacenters

    async def list_foreigndc(self, account: Account, authdev: str) -> List[ForeignDatacenter]:
        """List the foreign datacenter credentials of an authorized developer."""
        user = await self._resolve(account)
        entries = await self.search(
            authdev_dn(user.uuid, authdev), "one",
            f"(objectclass={EntityKind.FOREIGNDC.object_class})",
        )
        return [ForeignDatacenter.from_entry(e) for e in entries]

    async def add_foreigndc(
        self,
        account: Account,
        authdev: str,
        dc: Union[Dict[str, Any], ForeignDatacenter],
    ) -> None:
        """
        Store (or replace) a foreign datacenter credential.

        The authdev entry is created first when it does not exist yet.

        Args:
            account: Target account
            authdev: Authorized developer key
            dc: {"name": ..., "url": ..., "token": ...}
        """
        data = dc.to_dict() if isinstance(dc, ForeignDatacenter) else dict(dc)
        for field_name in ("name", "url", "token"):
            if not data.get(field_name):
                raise MissingParameterError(f"dc.{field_name} is required")

        user = await self._resolve(account)
        devs = await self.search(
            user.dn, "one",
            "(&(objectclass={oc})(authdev={v}))".format(
                oc=EntityKind.AUTHDEV.object_class, v=escape_filter_chars(authdev),
            ),
        )
        if not devs:
            await self.add(authdev_dn(user.uuid, authdev), {
                "authdev": authdev,
                "objectclass": EntityKind.AUTHDEV.object_class,
            })
            existing = []
        else:
            existing = await self.search(
                authdev_dn(user.uuid, authdev), "one",
                "(&(objectclass={oc})(foreigndc={v}))".format(
                    oc=EntityKind.FOREIGNDC.object_class, v=escape_filter_chars(data["name"]),
                ),
            )

        dn = foreigndc_dn(user.uuid, authdev, data["name"])
        if existing:
            await self.modify(dn, [
                Change.replace("url", data["url"]),
                Change.replace("token", data["token"]),
            ])
        else:
            await self.add(dn, {
                "foreigndc": data["name"],
                "url": data["url"],
                "token": data["token"],
                "objectclass": EntityKind.FOREIGNDC.object_class,
            })
