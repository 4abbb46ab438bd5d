"""
Memory Directory Adapter - In-memory directory tree (testing only).
"""

import re
import threading
from typing import Any, Dict, List, Optional, Tuple

from ldap3.core import results
from ldap3.core.exceptions import LDAPException, LDAPOperationResult, LDAPSocketOpenError

from ufds_client.adapters.ldap3_directory import encode_values
from ufds_client.domain.changes import Change, Operation
from ufds_client.domain.dn import GROUPS, SUFFIX, USERS, normalize_dn, parent_dn, rdns
from ufds_client.ports.directory_port import DirectoryPort

# Attributes a new entry of each object class must carry.
REQUIRED = {
    "sdcperson": ("uuid", "login", "email", "userpassword"),
    "sdckey": ("fingerprint", "openssh", "name"),
    "capilimit": ("datacenter",),
    "authdev": ("authdev",),
    "foreigndc": ("foreigndc", "url", "token"),
    "groupofuniquenames": ("cn",),
}

# Attributes unique across all entries of an object class.
UNIQUE = {
    "sdcperson": ("login", "email"),
}

WRITE_ONLY = ("userpassword",)


def _fail(code: int, description: str, dn: str = "", message: str = "") -> LDAPOperationResult:
    return LDAPOperationResult(result=code, description=description, dn=dn, message=message or description)


def _norm_value(value: str) -> str:
    if "=" in value:
        try:
            return normalize_dn(value)
        except (LDAPException, ValueError):
            pass
    return value.lower()


class _Filter:
    """Parser/evaluator for the filter subset: &, |, !, equality, presence."""

    _ESCAPE = re.compile(r"\\([0-9a-fA-F]{2})")

    def __init__(self, text: str):
        self._text = text.strip()
        self._pos = 0
        self._tree = self._parse()
        if self._pos != len(self._text):
            raise _fail(results.RESULT_PROTOCOL_ERROR, "protocolError", message=f"bad filter {text}")

    def _parse(self) -> Tuple:
        text = self._text
        if self._pos >= len(text) or text[self._pos] != "(":
            raise _fail(results.RESULT_PROTOCOL_ERROR, "protocolError", message=f"bad filter {text}")
        self._pos += 1

        op = text[self._pos]
        if op in "&|":
            self._pos += 1
            children = []
            while text[self._pos] == "(":
                children.append(self._parse())
            node: Tuple = (op, children)
        elif op == "!":
            self._pos += 1
            node = ("!", self._parse())
        else:
            end = text.index(")", self._pos)
            attr, _, value = text[self._pos:end].partition("=")
            self._pos = end
            if value == "*":
                node = ("*", attr.strip().lower())
            else:
                node = ("=", attr.strip().lower(), self._unescape(value))

        if text[self._pos] != ")":
            raise _fail(results.RESULT_PROTOCOL_ERROR, "protocolError", message=f"bad filter {text}")
        self._pos += 1
        return node

    def _unescape(self, value: str) -> str:
        return self._ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), value)

    def matches(self, attrs: Dict[str, List[str]]) -> bool:
        return self._eval(self._tree, attrs)

    def _eval(self, node: Tuple, attrs: Dict[str, List[str]]) -> bool:
        op = node[0]
        if op == "&":
            return all(self._eval(child, attrs) for child in node[1])
        if op == "|":
            return any(self._eval(child, attrs) for child in node[1])
        if op == "!":
            return not self._eval(node[1], attrs)
        if op == "*":
            return bool(attrs.get(node[1]))

        wanted = _norm_value(node[2])
        return any(_norm_value(v) == wanted for v in attrs.get(node[1], []))


class MemoryDirectoryAdapter(DirectoryPort):
    """
    In-memory directory tree.

    Enforces the parts of the UFDS schema the client relies on and fails
    with the same ldap3 result exceptions as a real server.

    WARNING: Only for testing. Data is lost on restart.
    """

    def __init__(
        self,
        bind_dn: str = "cn=root",
        bind_password: str = "secret",
        credentials: Optional[Dict[str, str]] = None,
        fail_binds: int = 0,
    ):
        """
        Initialize in-memory directory.

        Args:
            bind_dn: Identity presented on bind
            bind_password: Password presented on bind
            credentials: Identities the directory accepts {dn: password}
                (default: the presented identity)
            fail_binds: Number of initial binds that fail as unreachable
        """
        self._bind_dn = bind_dn
        self._bind_password = bind_password
        self._credentials = credentials if credentials is not None else {bind_dn: bind_password}
        self._fail_binds = fail_binds
        self._bound = False
        self._lock = threading.RLock()

        # Format: {normalized dn: (dn, {attribute: [values]})}
        self._entries: Dict[str, Tuple[str, Dict[str, List[str]]]] = {}
        for dn, attrs in (
            (SUFFIX, {"objectclass": "organization", "o": "smartdc"}),
            (USERS, {"objectclass": "organizationalunit", "ou": "users"}),
            (GROUPS, {"objectclass": "organizationalunit", "ou": "groups"}),
        ):
            self._store(dn, attrs)

        self.bind_attempts = 0

    @property
    def bound(self) -> bool:
        return self._bound

    def _store(self, dn: str, attributes: Dict[str, Any]) -> None:
        attrs = {k.lower(): encode_values(v) for k, v in attributes.items() if v is not None}
        self._entries[normalize_dn(dn)] = (dn, attrs)

    def _require_bound(self) -> None:
        if not self._bound:
            raise _fail(results.RESULT_UNAVAILABLE, "unavailable", message="session is not bound")

    def _get(self, dn: str) -> Tuple[str, Dict[str, List[str]]]:
        try:
            key = normalize_dn(dn)
        except LDAPException:
            raise _fail(results.RESULT_INVALID_DN_SYNTAX, "invalidDNSyntax", dn, f"invalid DN {dn}")
        if key not in self._entries:
            raise _fail(results.RESULT_NO_SUCH_OBJECT, "noSuchObject", dn, f"{dn} does not exist")
        return self._entries[key]

    def _children(self, dn: str) -> List[str]:
        key = normalize_dn(dn)
        children = []
        for k, (stored, _) in self._entries.items():
            parent = parent_dn(stored)
            # The suffix entry has no parent
            if k != key and parent and normalize_dn(parent) == key:
                children.append(k)
        return children

    def seed(self, dn: str, attributes: Dict[str, Any]) -> None:
        """Insert an entry directly, bypassing schema checks."""
        with self._lock:
            self._store(dn, attributes)

    def bind(self) -> None:
        with self._lock:
            self.bind_attempts += 1
            if self._fail_binds > 0:
                self._fail_binds -= 1
                raise LDAPSocketOpenError("unable to open socket: connection refused")

            if self._credentials.get(self._bind_dn) != self._bind_password:
                raise _fail(results.RESULT_INVALID_CREDENTIALS, "invalidCredentials",
                            self._bind_dn, "invalid credentials")
            self._bound = True

    def unbind(self) -> None:
        with self._lock:
            self._bound = False

    def add(self, dn: str, attributes: Dict[str, Any]) -> None:
        with self._lock:
            self._require_bound()
            try:
                key = normalize_dn(dn)
                pairs = rdns(dn)
            except LDAPException:
                raise _fail(results.RESULT_INVALID_DN_SYNTAX, "invalidDNSyntax", dn, f"invalid DN {dn}")

            if key in self._entries:
                raise _fail(results.RESULT_ENTRY_ALREADY_EXISTS, "entryAlreadyExists", dn, dn)
            self._get(parent_dn(dn))

            attrs = {k.lower(): encode_values(v) for k, v in attributes.items() if v is not None}
            classes = [c.lower() for c in attrs.get("objectclass", [])]
            if not classes:
                raise _fail(results.RESULT_OBJECT_CLASS_VIOLATION, "objectClassViolation",
                            dn, "objectclass")

            for object_class in classes:
                missing = [a for a in REQUIRED.get(object_class, ()) if not attrs.get(a)]
                if missing:
                    raise _fail(results.RESULT_OBJECT_CLASS_VIOLATION, "objectClassViolation",
                                dn, ", ".join(missing))

                for unique in UNIQUE.get(object_class, ()):
                    for _, other in self._entries.values():
                        if object_class in other.get("objectclass", []) and \
                                other.get(unique) == attrs.get(unique):
                            raise _fail(results.RESULT_CONSTRAINT_VIOLATION, "constraintViolation",
                                        dn, f"{unique} {attrs[unique][0]} already taken")

            rdn_attr, rdn_value = pairs[0]
            attrs.setdefault(rdn_attr, [rdn_value])
            self._entries[key] = (dn, attrs)

    def delete(self, dn: str) -> None:
        with self._lock:
            self._require_bound()
            self._get(dn)
            if self._children(dn):
                raise _fail(results.RESULT_NOT_ALLOWED_ON_NON_LEAF, "notAllowedOnNonLeaf", dn, dn)
            del self._entries[normalize_dn(dn)]

    def modify(self, dn: str, changes: List[Change]) -> None:
        with self._lock:
            self._require_bound()
            stored, current = self._get(dn)
            attrs = {k: list(v) for k, v in current.items()}
            rdn_attr = rdns(stored)[0][0]

            for change in changes:
                name = change.attribute.lower()
                values = [str(v) for v in change.values]

                if name == "objectclass":
                    raise _fail(results.RESULT_OBJECT_CLASS_MODS_PROHIBITED,
                                "objectClassModsProhibited", dn, name)
                if name == rdn_attr:
                    raise _fail(results.RESULT_NOT_ALLOWED_ON_RDN, "notAllowedOnRDN", dn, name)

                if change.operation is Operation.REPLACE:
                    if values:
                        attrs[name] = values
                    else:
                        attrs.pop(name, None)
                elif change.operation is Operation.ADD:
                    existing = attrs.setdefault(name, [])
                    for value in values:
                        if _norm_value(value) in [_norm_value(v) for v in existing]:
                            raise _fail(results.RESULT_ATTRIBUTE_OR_VALUE_EXISTS,
                                        "attributeOrValueExists", dn, f"{name}={value}")
                        existing.append(value)
                else:
                    if name not in attrs:
                        raise _fail(results.RESULT_NO_SUCH_ATTRIBUTE, "noSuchAttribute", dn, name)
                    if not values:
                        del attrs[name]
                        continue
                    for value in values:
                        remaining = [v for v in attrs[name] if _norm_value(v) != _norm_value(value)]
                        if len(remaining) == len(attrs[name]):
                            raise _fail(results.RESULT_NO_SUCH_ATTRIBUTE, "noSuchAttribute",
                                        dn, f"{name}={value}")
                        attrs[name] = remaining
                    if not attrs[name]:
                        del attrs[name]

            self._entries[normalize_dn(dn)] = (stored, attrs)

    def search(self, base: str, scope: str, search_filter: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._require_bound()
            stored, _ = self._get(base)
            base_key = normalize_dn(stored)
            matcher = _Filter(search_filter)

            if scope == "base":
                candidates = [base_key]
            elif scope == "one":
                candidates = self._children(stored)
            else:
                suffix = "," + base_key
                candidates = [k for k in self._entries if k == base_key or k.endswith(suffix)]

            found = []
            for key in candidates:
                dn, attrs = self._entries[key]
                if not matcher.matches(attrs):
                    continue
                entry: Dict[str, Any] = {
                    k: (v[0] if len(v) == 1 else list(v))
                    for k, v in attrs.items() if k not in WRITE_ONLY
                }
                entry["dn"] = dn
                found.append(entry)
            return found

    def compare(self, dn: str, attribute: str, value: str) -> bool:
        with self._lock:
            self._require_bound()
            _, attrs = self._get(dn)
            name = attribute.lower()
            if name not in attrs:
                raise _fail(results.RESULT_NO_SUCH_ATTRIBUTE, "noSuchAttribute", dn, name)
            return str(value) in attrs[name]
