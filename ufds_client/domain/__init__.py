"""
Domain Models - Directory entities, naming and change lists.

No connection or cache handling. Domain logic only.
"""

from ufds_client.domain.user import User
from ufds_client.domain.key import SSHKey, InvalidKeyError, compute_fingerprint
from ufds_client.domain.records import Limit, VmUsage, Metadata, ForeignDatacenter
from ufds_client.domain.changes import Change, Operation, diff_changes, limit_changes
from ufds_client.domain.refs import AccountRef, Identifier, Resolved, account_ref

__all__ = [
    "User",
    "SSHKey",
    "InvalidKeyError",
    "compute_fingerprint",
    "Limit",
    "VmUsage",
    "Metadata",
    "ForeignDatacenter",
    "Change",
    "Operation",
    "diff_changes",
    "limit_changes",
    "AccountRef",
    "Identifier",
    "Resolved",
    "account_ref",
]
