"""
Account Child Records - Limits, VM usage, metadata and federation entries.

These are plain snapshots; unlike accounts they carry no bound operations.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional

_STRUCTURAL = ("dn", "objectclass")


def _numeric(value: Any) -> Any:
    """Directory values come back as strings; quota fields are numbers."""
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            try:
                return float(value)
            except ValueError:
                return value
    return value


def _bag(entry: Dict[str, Any], *skip: str) -> Dict[str, Any]:
    return {k: v for k, v in entry.items() if k not in _STRUCTURAL + skip}


@dataclass
class Limit:
    """
    Per-datacenter quota limit (`capilimit`).

    Domain rules:
    - at most one limit per (account, datacenter)
    - every field other than datacenter is a named numeric quota
    """
    datacenter: str
    values: Dict[str, Any] = field(default_factory=dict)
    dn: Optional[str] = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.to_dict().get(name, default)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a flat dict."""
        data = dict(self.values)
        data["datacenter"] = self.datacenter
        if self.dn:
            data["dn"] = self.dn
        return data

    @classmethod
    def from_entry(cls, entry: Dict[str, Any]) -> "Limit":
        return cls(
            datacenter=entry["datacenter"],
            values={k: _numeric(v) for k, v in _bag(entry, "datacenter", "dclimit").items()},
            dn=entry.get("dn"),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Limit":
        """Deserialize from dict."""
        return cls.from_entry(data)


@dataclass
class VmUsage:
    """Informational VM usage record (`vmusage`)."""
    dn: str
    uuid: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def ram(self) -> Optional[Any]:
        return self.attributes.get("ram")

    @property
    def quota(self) -> Optional[Any]:
        return self.attributes.get("quota")

    @property
    def image_uuid(self) -> Optional[str]:
        return self.attributes.get("image_uuid")

    @property
    def billing_id(self) -> Optional[str]:
        return self.attributes.get("billing_id")

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.attributes)
        data.update({"dn": self.dn, "uuid": self.uuid})
        return data

    @classmethod
    def from_entry(cls, entry: Dict[str, Any]) -> "VmUsage":
        return cls(
            dn=entry["dn"],
            uuid=entry.get("uuid") or entry.get("vm"),
            attributes={k: _numeric(v) if k in ("ram", "quota") else v
                        for k, v in _bag(entry, "uuid").items()},
        )


@dataclass
class Metadata:
    """Application metadata bag (`capimetadata`), keyed by application key."""
    key: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    dn: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.attributes)
        if self.dn:
            data["dn"] = self.dn
        return data

    @classmethod
    def from_entry(cls, entry: Dict[str, Any], key: Optional[str] = None) -> "Metadata":
        return cls(
            key=key or entry.get("metadata", ""),
            attributes=_bag(entry, "metadata"),
            dn=entry.get("dn"),
        )


@dataclass
class ForeignDatacenter:
    """Cross-datacenter federation credential (`foreigndc`)."""
    name: str
    url: str
    token: str
    dn: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"dn": self.dn, "name": self.name, "url": self.url, "token": self.token}

    @classmethod
    def from_entry(cls, entry: Dict[str, Any]) -> "ForeignDatacenter":
        return cls(
            name=entry["foreigndc"],
            url=entry.get("url", ""),
            token=entry.get("token", ""),
            dn=entry.get("dn"),
        )
