"""
Naming Scheme - Table-driven distinguished names for every entity kind.

All entries live under a single root naming context. Child entries embed
their parent's key attribute, so an entry's DN alone tells which account
owns it.
"""

from enum import Enum
from typing import List, Optional

from ldap3.utils.dn import escape_rdn, parse_dn

SUFFIX = "o=smartdc"
USERS = f"ou=users, {SUFFIX}"
GROUPS = f"ou=groups, {SUFFIX}"


class EntityKind(Enum):
    """Kinds of directory entries the client knows how to name."""
    USER = "sdcperson"
    KEY = "sdckey"
    LIMIT = "capilimit"
    VM = "vmusage"
    METADATA = "capimetadata"
    AUTHDEV = "authdev"
    FOREIGNDC = "foreigndc"
    GROUP = "groupofuniquenames"

    @property
    def object_class(self) -> str:
        return self.value


_USER = "uuid={uuid}, " + USERS
_AUTHDEV = "authdev={authdev}, " + _USER

_TEMPLATES = {
    EntityKind.USER: _USER,
    EntityKind.KEY: "fingerprint={fingerprint}, " + _USER,
    EntityKind.LIMIT: "dclimit={datacenter}, " + _USER,
    EntityKind.VM: "vm={vm}, " + _USER,
    EntityKind.METADATA: "metadata={key}, " + _USER,
    EntityKind.AUTHDEV: _AUTHDEV,
    EntityKind.FOREIGNDC: "foreigndc={name}, " + _AUTHDEV,
    EntityKind.GROUP: "cn={name}, " + GROUPS,
}


def build_dn(kind: EntityKind, **parts: str) -> str:
    """
    Build the DN of an entity from its key attribute(s).

    Args:
        kind: Entity kind
        **parts: Key values named after the template fields

    Returns:
        DN string

    Raises:
        KeyError: If a key value required by the template is missing
    """
    return _TEMPLATES[kind].format(**{k: escape_rdn(str(v)) for k, v in parts.items()})


def user_dn(uuid: str) -> str:
    return build_dn(EntityKind.USER, uuid=uuid)


def key_dn(uuid: str, fingerprint: str) -> str:
    return build_dn(EntityKind.KEY, uuid=uuid, fingerprint=fingerprint)


def limit_dn(uuid: str, datacenter: str) -> str:
    return build_dn(EntityKind.LIMIT, uuid=uuid, datacenter=datacenter)


def metadata_dn(uuid: str, key: str) -> str:
    return build_dn(EntityKind.METADATA, uuid=uuid, key=key)


def authdev_dn(uuid: str, authdev: str) -> str:
    return build_dn(EntityKind.AUTHDEV, uuid=uuid, authdev=authdev)


def foreigndc_dn(uuid: str, authdev: str, name: str) -> str:
    return build_dn(EntityKind.FOREIGNDC, uuid=uuid, authdev=authdev, name=name)


def group_dn(name: str) -> str:
    return build_dn(EntityKind.GROUP, name=name)


ADMIN_GROUP = group_dn("operators")
READERS_GROUP = group_dn("readers")


def normalize_dn(dn: str) -> str:
    """Canonical form used for DN comparison (no padding, lower-cased)."""
    if not dn.strip():
        return ""
    return ",".join(
        f"{attr.strip().lower()}={value.strip().lower()}"
        for attr, value, _ in parse_dn(dn, escape=False, strip=True)
    )


def rdns(dn: str) -> List[tuple]:
    """Split a DN into (attribute, value) pairs, leftmost first."""
    return [(attr.strip().lower(), value.strip()) for attr, value, _ in parse_dn(dn, strip=True)]


def parent_dn(dn: str) -> str:
    return ", ".join(f"{attr}={value}" for attr, value in rdns(dn)[1:])


def is_parent_of(parent: str, child: str) -> bool:
    """True if `child` sits directly below `parent`."""
    return normalize_dn(parent_dn(child)) == normalize_dn(parent)


def group_name(dn: str) -> Optional[str]:
    """Return the `cn` of a group DN, or None if it is not a cn= entry."""
    pairs = rdns(dn)
    if pairs and pairs[0][0] == "cn":
        return pairs[0][1]
    return None
