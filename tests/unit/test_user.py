"""
Unit tests for User domain model.
"""

import pytest
from ufds_client.domain.user import User
from ufds_client.domain.dn import ADMIN_GROUP, READERS_GROUP


ENTRY = {
    "dn": "uuid=930896af, ou=users, o=smartdc",
    "uuid": "930896af",
    "login": "alice",
    "email": "alice@example.com",
    "userpassword": "secret",
    "objectclass": "sdcperson",
    "cn": "Alice",
    "pwdfailuretime": "1700000000",
}


def test_user_from_entry():
    """Test building a user from a search result entry."""
    user = User.from_entry(ENTRY, memberof=[ADMIN_GROUP])

    assert user.uuid == "930896af"
    assert user.login == "alice"
    assert user.email == "alice@example.com"
    assert user.dn == ENTRY["dn"]
    assert user.memberof == [ADMIN_GROUP]
    assert user.get("cn") == "Alice"


def test_password_never_surfaced():
    """Test the write-only password is dropped from the record."""
    user = User.from_entry(ENTRY)

    assert "userpassword" not in user.attributes
    assert "userpassword" not in user.to_dict()
    assert user.get("userpassword") is None


def test_user_roles():
    """Test admin/reader predicates."""
    admin = User.from_entry(ENTRY, memberof=[ADMIN_GROUP])
    reader = User.from_entry(ENTRY, memberof=[READERS_GROUP])
    nobody = User.from_entry(ENTRY, memberof=[])

    assert admin.is_admin()
    assert not admin.is_reader()

    assert reader.is_reader()
    assert not reader.is_admin()

    assert not nobody.is_admin()
    assert not nobody.is_reader()


def test_membership_ignores_dn_formatting():
    """Test memberof comparison is insensitive to spacing and case."""
    user = User.from_entry(ENTRY, memberof=["CN=operators,ou=groups,o=smartdc"])
    assert user.is_admin()


def test_user_groups():
    """Test group names come from the cn of each memberof DN."""
    user = User.from_entry(ENTRY, memberof=[ADMIN_GROUP, READERS_GROUP])
    assert user.groups() == ["operators", "readers"]


def test_user_serialization():
    """Test user to_dict and from_dict."""
    user = User.from_entry(ENTRY, memberof=[READERS_GROUP])

    # Serialize
    data = user.to_dict()
    assert data["uuid"] == "930896af"
    assert data["login"] == "alice"
    assert data["memberof"] == [READERS_GROUP]
    assert data["pwdfailuretime"] == "1700000000"

    # Deserialize
    restored = User.from_dict(data)
    assert restored == user


def test_missing_login_rejected():
    entry = dict(ENTRY)
    del entry["login"]

    with pytest.raises(KeyError):
        User.from_entry(entry)
