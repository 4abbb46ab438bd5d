"""
ldap3 Directory Adapter - LDAP session over the ldap3 library.
"""

import logging
import socket
from typing import Any, Dict, List, Optional, Tuple

from ldap3 import (
    ALL_ATTRIBUTES,
    AUTO_BIND_NONE,
    BASE,
    LEVEL,
    MODIFY_ADD,
    MODIFY_DELETE,
    MODIFY_REPLACE,
    NONE,
    SAFE_SYNC,
    SUBTREE,
    Connection,
    Server,
)
from ldap3.core import results
from ldap3.core.exceptions import LDAPBindError, LDAPException, LDAPOperationResult

from ufds_client.domain.changes import Change, Operation
from ufds_client.ports.directory_port import DirectoryPort

logger = logging.getLogger(__name__)

# UFDS control asking the server to return hidden attributes
HIDDEN_CONTROL = ("1.3.6.1.4.1.38678.1", True, None)

_SCOPES = {"base": BASE, "one": LEVEL, "sub": SUBTREE}

_OPERATIONS = {
    Operation.ADD: MODIFY_ADD,
    Operation.DELETE: MODIFY_DELETE,
    Operation.REPLACE: MODIFY_REPLACE,
}

_OK = {results.RESULT_SUCCESS, results.RESULT_COMPARE_TRUE, results.RESULT_COMPARE_FALSE}


def encode_value(value: Any) -> str:
    """Directory values are strings; booleans follow LDAP's TRUE/FALSE casing."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_values(value: Any) -> List[str]:
    if isinstance(value, (list, tuple, set)):
        return [encode_value(v) for v in value]
    return [encode_value(value)]


def _decode(raw: Any) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return str(raw)


def to_entry(dn: str, raw_attributes: Dict[str, List[Any]]) -> Dict[str, Any]:
    """
    Flatten a search result entry.

    Attribute names are lower-cased, single values collapsed to scalars,
    and the entry DN is added under `dn`.
    """
    entry: Dict[str, Any] = {}
    for name, values in raw_attributes.items():
        decoded = [_decode(v) for v in values]
        if not decoded:
            continue
        entry[name.lower()] = decoded[0] if len(decoded) == 1 else decoded
    entry["dn"] = dn
    return entry


class Ldap3DirectoryAdapter(DirectoryPort):
    """
    LDAP session built on ldap3.

    Uses the thread-safe SAFE_SYNC strategy so several operations can be
    in flight on one session from the client's worker threads.
    Requires: pip install ldap3
    """

    def __init__(
        self,
        url: str,
        bind_dn: str,
        bind_password: str,
        timeout: Optional[int] = 5000,
        connect_timeout: Optional[int] = None,
        hidden: bool = True,
    ):
        """
        Initialize ldap3 adapter.

        Args:
            url: Directory URL (ldap:// or ldaps://)
            bind_dn: Service identity DN
            bind_password: Service identity password
            timeout: Receive timeout in milliseconds (None for no timeout)
            connect_timeout: Connect timeout in milliseconds
            hidden: Send the hidden-attributes control on searches
        """
        self._url = url
        self._bind_dn = bind_dn
        self._bind_password = bind_password
        self._timeout = timeout
        self._hidden = hidden
        self._server = Server(
            url,
            get_info=NONE,
            connect_timeout=connect_timeout / 1000 if connect_timeout else None,
        )
        self._connection: Optional[Connection] = None

    @property
    def url(self) -> str:
        return self._url

    def _conn(self) -> Connection:
        if self._connection is None:
            raise LDAPOperationResult(
                result=results.RESULT_UNAVAILABLE,
                description="unavailable",
                message="session is not bound",
            )
        return self._connection

    def _outcome(self, conn: Connection, returned: Any) -> Tuple[bool, Dict[str, Any], List[Dict[str, Any]]]:
        """Unpack an operation outcome and raise on a failed result code."""
        if isinstance(returned, tuple):
            status, result, response = returned[0], returned[1], returned[2]
        else:
            status, result, response = returned, conn.result, conn.response

        result = result or {}
        code = result.get("result", results.RESULT_SUCCESS)
        if code not in _OK:
            raise LDAPOperationResult(
                result=code,
                description=result.get("description"),
                dn=result.get("dn"),
                message=result.get("message"),
                response_type=result.get("type"),
            )
        return bool(status), result, response or []

    def bind(self) -> None:
        """Open the session and authenticate."""
        conn = Connection(
            self._server,
            user=self._bind_dn,
            password=self._bind_password,
            auto_bind=AUTO_BIND_NONE,
            client_strategy=SAFE_SYNC,
            raise_exceptions=True,
            receive_timeout=self._timeout / 1000 if self._timeout else None,
        )

        try:
            returned = conn.bind()
            bound = returned[0] if isinstance(returned, tuple) else returned
            if not bound:
                raise LDAPBindError(f"bind as {self._bind_dn} failed")
        except Exception:
            self._release(conn)
            raise

        if conn.socket is not None:
            conn.socket.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

        self._connection = conn

    def _release(self, conn: Connection) -> None:
        """Close a connection whose bind failed; the bind error is what the caller sees."""
        try:
            conn.unbind()
        except LDAPException as e:
            logger.debug("ufds: unbind after failed bind raised: %s", e)

    def unbind(self) -> None:
        """Release the session."""
        conn, self._connection = self._connection, None
        if conn is not None:
            conn.unbind()

    def add(self, dn: str, attributes: Dict[str, Any]) -> None:
        conn = self._conn()
        payload = {k: encode_values(v) for k, v in attributes.items() if v is not None}
        self._outcome(conn, conn.add(dn, attributes=payload))

    def delete(self, dn: str) -> None:
        conn = self._conn()
        self._outcome(conn, conn.delete(dn))

    def modify(self, dn: str, changes: List[Change]) -> None:
        conn = self._conn()
        payload: Dict[str, List[Tuple[str, List[str]]]] = {}
        for change in changes:
            payload.setdefault(change.attribute, []).append(
                (_OPERATIONS[change.operation], [encode_value(v) for v in change.values])
            )
        self._outcome(conn, conn.modify(dn, payload))

    def search(self, base: str, scope: str, search_filter: str) -> List[Dict[str, Any]]:
        conn = self._conn()
        returned = conn.search(
            search_base=base,
            search_filter=search_filter,
            search_scope=_SCOPES[scope],
            attributes=ALL_ATTRIBUTES,
            controls=[HIDDEN_CONTROL] if self._hidden else None,
        )
        _, _, response = self._outcome(conn, returned)

        return [
            to_entry(item["dn"], item.get("raw_attributes") or {})
            for item in response
            if item.get("type") == "searchResEntry"
        ]

    def compare(self, dn: str, attribute: str, value: str) -> bool:
        conn = self._conn()
        _, result, _ = self._outcome(conn, conn.compare(dn, attribute, value))
        return result.get("result") == results.RESULT_COMPARE_TRUE
