"""
SSH Key Domain Model - Public keys stored under an account.
"""

from dataclasses import dataclass, field
from typing import Dict, Any

import paramiko
from paramiko.pkey import PublicBlob, UnknownKeyType


class InvalidKeyError(ValueError):
    """Public key material could not be parsed."""


def load_public_key(openssh: str) -> paramiko.PKey:
    """
    Parse an OpenSSH public key line.

    Args:
        openssh: Public key line ("<type> <base64 blob> [comment]")

    Returns:
        paramiko key object

    Raises:
        InvalidKeyError: If the line, its blob or the declared type is malformed
    """
    try:
        blob = PublicBlob.from_string(openssh.strip())
        return paramiko.PKey.from_type_string(blob.key_type, blob.key_blob)
    except UnknownKeyType as e:
        raise InvalidKeyError(f"unsupported public key type {e.key_type}")
    except (paramiko.SSHException, ValueError, TypeError, IndexError) as e:
        raise InvalidKeyError(f"invalid public key: {e}")


def compute_fingerprint(openssh: str) -> str:
    """
    Compute the MD5 fingerprint of an OpenSSH public key.

    Written as colon-separated lower-case hex pairs (aa:bb:cc:...).

    Raises:
        InvalidKeyError: If the key is malformed
    """
    return ":".join(f"{b:02x}" for b in load_public_key(openssh).get_fingerprint())


@dataclass
class SSHKey:
    """
    SSH key entity - an `sdckey` entry under an account.

    Domain rules:
    - fingerprint is derived from the key material and names the entry
    - name defaults to the fingerprint
    - fingerprint and name are each unique per account
    """
    dn: str
    fingerprint: str
    name: str
    openssh: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def matches(self, fingerprint_or_name: str) -> bool:
        return fingerprint_or_name in (self.fingerprint, self.name)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        data = dict(self.attributes)
        data.update({
            "dn": self.dn,
            "fingerprint": self.fingerprint,
            "name": self.name,
            "openssh": self.openssh,
        })
        return data

    @classmethod
    def from_entry(cls, entry: Dict[str, Any]) -> "SSHKey":
        """Build a key from a search result entry."""
        return cls(
            dn=entry["dn"],
            fingerprint=entry["fingerprint"],
            name=entry.get("name") or entry["fingerprint"],
            openssh=entry["openssh"],
            attributes={
                k: v for k, v in entry.items()
                if k not in ("dn", "fingerprint", "name", "openssh")
            },
        )
