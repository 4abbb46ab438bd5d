"""
Directory Port - Interface for the directory protocol session.

Implementations:
- Ldap3DirectoryAdapter: LDAP over the ldap3 library
- MemoryDirectoryAdapter: In-memory directory tree (testing only)

Methods are blocking; the client runs them on worker threads. Failures
are raised as ldap3 exceptions and translated by the client.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ufds_client.domain.changes import Change

SCOPES = ("base", "one", "sub")


class DirectoryPort(ABC):
    """Port: Authenticated session against a directory endpoint."""

    @abstractmethod
    def bind(self) -> None:
        """
        Open the session and authenticate with the service identity.

        Raises:
            LDAPBindError / LDAPInvalidCredentialsResult: Bad credentials
            LDAPCommunicationError: Endpoint unreachable
        """
        pass

    @abstractmethod
    def unbind(self) -> None:
        """Release the session."""
        pass

    @abstractmethod
    def add(self, dn: str, attributes: Dict[str, Any]) -> None:
        """
        Add an entry.

        Args:
            dn: DN of the new entry
            attributes: Attribute values, including objectclass
        """
        pass

    @abstractmethod
    def delete(self, dn: str) -> None:
        """
        Delete a leaf entry.

        Args:
            dn: DN of the entry
        """
        pass

    @abstractmethod
    def modify(self, dn: str, changes: List[Change]) -> None:
        """
        Apply a change list to an entry.

        Args:
            dn: DN of the entry
            changes: Ordered attribute changes
        """
        pass

    @abstractmethod
    def search(self, base: str, scope: str, search_filter: str) -> List[Dict[str, Any]]:
        """
        Search below a base DN.

        Args:
            base: Search base DN
            scope: "base", "one" or "sub"
            search_filter: LDAP filter string

        Returns:
            Flat entry dicts (lower-cased attribute names, single values
            collapsed, plus `dn`)
        """
        pass

    @abstractmethod
    def compare(self, dn: str, attribute: str, value: str) -> bool:
        """
        Compare an attribute value on an entry.

        Returns:
            True if the entry holds the value, False otherwise
        """
        pass
