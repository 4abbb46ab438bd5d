"""
Unit tests for the in-memory directory adapter.
"""

import pytest
from ldap3.core import results
from ldap3.core.exceptions import LDAPOperationResult, LDAPSocketOpenError

from ufds_client.adapters import MemoryDirectoryAdapter
from ufds_client.domain.changes import Change

USER_DN = "uuid=1, ou=users, o=smartdc"
PERSON = {
    "objectclass": "sdcperson",
    "uuid": "1",
    "login": "alice",
    "email": "alice@example.com",
    "userpassword": "secret",
}


@pytest.fixture
def tree():
    adapter = MemoryDirectoryAdapter()
    adapter.bind()
    adapter.add(USER_DN, PERSON)
    return adapter


def result_code(excinfo):
    assert isinstance(excinfo.value, LDAPOperationResult)
    return excinfo.value.result


def test_bind_and_unbind():
    adapter = MemoryDirectoryAdapter()
    assert not adapter.bound

    adapter.bind()
    assert adapter.bound

    adapter.unbind()
    assert not adapter.bound


def test_bind_wrong_password():
    adapter = MemoryDirectoryAdapter(bind_password="wrong", credentials={"cn=root": "secret"})

    with pytest.raises(LDAPOperationResult) as excinfo:
        adapter.bind()
    assert result_code(excinfo) == results.RESULT_INVALID_CREDENTIALS


def test_bind_unreachable():
    adapter = MemoryDirectoryAdapter(fail_binds=1)

    with pytest.raises(LDAPSocketOpenError):
        adapter.bind()
    adapter.bind()
    assert adapter.bind_attempts == 2


def test_operations_require_bind():
    adapter = MemoryDirectoryAdapter()

    with pytest.raises(LDAPOperationResult) as excinfo:
        adapter.search("o=smartdc", "base", "(objectclass=*)")
    assert result_code(excinfo) == results.RESULT_UNAVAILABLE


def test_search_hides_password(tree):
    entries = tree.search("ou=users, o=smartdc", "one", "(login=alice)")

    assert len(entries) == 1
    assert entries[0]["dn"] == USER_DN
    assert entries[0]["uuid"] == "1"
    assert "userpassword" not in entries[0]


def test_search_filters(tree):
    base = "ou=users, o=smartdc"

    assert tree.search(base, "one", "(&(objectclass=sdcperson)(|(login=bob)(uuid=1)))")
    assert not tree.search(base, "one", "(&(objectclass=sdcperson)(login=bob))")
    assert not tree.search(base, "one", "(!(login=alice))")
    assert tree.search(base, "one", "(email=*)")
    # Case-insensitive equality
    assert tree.search(base, "one", "(LOGIN=ALICE)")


def test_search_escaped_value(tree):
    tree.add("uuid=2, ou=users, o=smartdc", dict(PERSON, uuid="2", login="a*b", email="b@example.com"))

    found = tree.search("ou=users, o=smartdc", "one", "(login=a\\2ab)")
    assert [e["uuid"] for e in found] == ["2"]


def test_search_scopes(tree):
    tree.add("fingerprint=aa, " + USER_DN, {
        "objectclass": "sdckey", "fingerprint": "aa", "name": "k", "openssh": "ssh-ed25519 AAAA",
    })

    assert len(tree.search("o=smartdc", "base", "(objectclass=*)")) == 1
    assert len(tree.search("ou=users, o=smartdc", "one", "(objectclass=*)")) == 1
    assert len(tree.search("ou=users, o=smartdc", "sub", "(objectclass=*)")) == 3


def test_search_missing_base(tree):
    with pytest.raises(LDAPOperationResult) as excinfo:
        tree.search("uuid=nope, ou=users, o=smartdc", "one", "(objectclass=*)")
    assert result_code(excinfo) == results.RESULT_NO_SUCH_OBJECT


def test_add_duplicate(tree):
    with pytest.raises(LDAPOperationResult) as excinfo:
        tree.add(USER_DN, PERSON)
    assert result_code(excinfo) == results.RESULT_ENTRY_ALREADY_EXISTS


def test_add_without_parent(tree):
    with pytest.raises(LDAPOperationResult) as excinfo:
        tree.add("fingerprint=aa, uuid=nope, ou=users, o=smartdc", {
            "objectclass": "sdckey", "fingerprint": "aa", "name": "k", "openssh": "x",
        })
    assert result_code(excinfo) == results.RESULT_NO_SUCH_OBJECT


def test_add_missing_required(tree):
    with pytest.raises(LDAPOperationResult) as excinfo:
        tree.add("uuid=2, ou=users, o=smartdc", {"objectclass": "sdcperson", "uuid": "2", "login": "bob"})
    assert result_code(excinfo) == results.RESULT_OBJECT_CLASS_VIOLATION


def test_add_duplicate_login(tree):
    with pytest.raises(LDAPOperationResult) as excinfo:
        tree.add("uuid=2, ou=users, o=smartdc", dict(PERSON, uuid="2", email="other@example.com"))
    assert result_code(excinfo) == results.RESULT_CONSTRAINT_VIOLATION


def test_delete_non_leaf(tree):
    tree.add("dclimit=east, " + USER_DN, {"objectclass": "capilimit", "datacenter": "east"})

    with pytest.raises(LDAPOperationResult) as excinfo:
        tree.delete(USER_DN)
    assert result_code(excinfo) == results.RESULT_NOT_ALLOWED_ON_NON_LEAF


def test_rdn_value_added(tree):
    tree.add("dclimit=east, " + USER_DN, {"objectclass": "capilimit", "datacenter": "east"})

    entry = tree.search("dclimit=east, " + USER_DN, "base", "(objectclass=*)")[0]
    assert entry["dclimit"] == "east"


def test_modify(tree):
    tree.modify(USER_DN, [Change.replace("cn", "Alice"), Change.add("tags", ["a", "b"])])
    tree.modify(USER_DN, [Change.delete("tags", "a")])

    entry = tree.search(USER_DN, "base", "(objectclass=*)")[0]
    assert entry["cn"] == "Alice"
    assert entry["tags"] == "b"


def test_modify_errors(tree):
    cases = [
        (Change.delete("phone"), results.RESULT_NO_SUCH_ATTRIBUTE),
        (Change.add("login", "alice"), results.RESULT_ATTRIBUTE_OR_VALUE_EXISTS),
        (Change.replace("uuid", "2"), results.RESULT_NOT_ALLOWED_ON_RDN),
        (Change.replace("objectclass", "other"), results.RESULT_OBJECT_CLASS_MODS_PROHIBITED),
    ]
    for change, code in cases:
        with pytest.raises(LDAPOperationResult) as excinfo:
            tree.modify(USER_DN, [change])
        assert result_code(excinfo) == code


def test_modify_is_atomic(tree):
    """Test a failing change leaves earlier changes unapplied."""
    with pytest.raises(LDAPOperationResult):
        tree.modify(USER_DN, [Change.replace("cn", "Alice"), Change.delete("phone")])

    assert "cn" not in tree.search(USER_DN, "base", "(objectclass=*)")[0]


def test_compare(tree):
    assert tree.compare(USER_DN, "userpassword", "secret") is True
    assert tree.compare(USER_DN, "userpassword", "SECRET") is False


def test_one_level_search_from_suffix(tree):
    """Test one-level searches and deletes work with the suffix entry in the tree."""
    found = tree.search("o=smartdc", "one", "(objectclass=*)")
    assert sorted(e["dn"] for e in found) == ["ou=groups, o=smartdc", "ou=users, o=smartdc"]

    assert [e["uuid"] for e in tree.search("ou=users, o=smartdc", "one", "(login=alice)")] == ["1"]

    tree.delete(USER_DN)
    assert tree.search("ou=users, o=smartdc", "one", "(objectclass=*)") == []
