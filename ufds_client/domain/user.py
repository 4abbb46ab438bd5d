"""
User Domain Model - Account record fetched from the directory.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from ufds_client.domain.dn import ADMIN_GROUP, READERS_GROUP, group_name, normalize_dn

# Attributes that are accepted on write but never surfaced on a record.
WRITE_ONLY = frozenset({"userpassword"})


@dataclass
class User:
    """
    User entity - an `sdcperson` entry plus its computed group set.

    Domain rules:
    - uuid is immutable and names the entry (uuid=<uuid>, ou=users, ...)
    - login is unique (enforced by the directory)
    - userpassword is write-only and never kept on the record
    - memberof is derived from group entries, never stored on the account
    """
    uuid: str
    login: str
    dn: str

    # Optional fields
    email: Optional[str] = None
    memberof: List[str] = field(default_factory=list)

    # Remaining profile attributes, lower-cased names
    attributes: Dict[str, Any] = field(default_factory=dict)

    def is_member(self, group: str) -> bool:
        """Check membership against a group DN."""
        target = normalize_dn(group)
        return any(normalize_dn(g) == target for g in self.memberof)

    def is_admin(self) -> bool:
        """Member of the operators group."""
        return self.is_member(ADMIN_GROUP)

    def is_reader(self) -> bool:
        """Member of the readers group."""
        return self.is_member(READERS_GROUP)

    def groups(self) -> List[str]:
        """Names (cn) of the groups this user belongs to."""
        names = []
        for dn in self.memberof:
            name = group_name(dn)
            if name:
                names.append(name)
        return names

    def get(self, name: str, default: Any = None) -> Any:
        """Look up any attribute by name."""
        return self.to_dict().get(name.lower(), default)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a flat dict (the before-image used by diffs)."""
        data = dict(self.attributes)
        data.update({
            "dn": self.dn,
            "uuid": self.uuid,
            "login": self.login,
            "email": self.email,
            "memberof": list(self.memberof),
        })
        return data

    @classmethod
    def from_entry(cls, entry: Dict[str, Any], memberof: Optional[List[str]] = None) -> "User":
        """
        Build a user from a search result entry.

        Args:
            entry: Flat entry dict (lower-cased attribute names, plus `dn`)
            memberof: Group DNs computed by a membership search

        Returns:
            User record
        """
        attributes = {
            k.lower(): v for k, v in entry.items()
            if k.lower() not in WRITE_ONLY
            and k.lower() not in ("dn", "uuid", "login", "email", "memberof")
        }
        return cls(
            uuid=entry["uuid"],
            login=entry["login"],
            dn=entry["dn"],
            email=entry.get("email"),
            memberof=list(memberof if memberof is not None else entry.get("memberof", [])),
            attributes=attributes,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """Deserialize from dict."""
        return cls.from_entry(data)
