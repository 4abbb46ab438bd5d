"""
Unit tests for the naming scheme.
"""

import pytest

from ufds_client.domain.dn import (
    ADMIN_GROUP,
    READERS_GROUP,
    EntityKind,
    build_dn,
    user_dn,
    key_dn,
    limit_dn,
    metadata_dn,
    authdev_dn,
    foreigndc_dn,
    group_dn,
    normalize_dn,
    parent_dn,
    is_parent_of,
    group_name,
)

UUID = "930896af-bf8c-48d4-885c-6573a94b1853"


def test_user_dn():
    assert user_dn(UUID) == f"uuid={UUID}, ou=users, o=smartdc"


def test_child_dns_embed_account():
    """Test every child entry sits under its account's DN."""
    account = user_dn(UUID)

    assert key_dn(UUID, "aa:bb") == f"fingerprint=aa:bb, {account}"
    assert limit_dn(UUID, "us-east-1") == f"dclimit=us-east-1, {account}"
    assert metadata_dn(UUID, "portal") == f"metadata=portal, {account}"
    assert authdev_dn(UUID, "dev1") == f"authdev=dev1, {account}"
    assert foreigndc_dn(UUID, "dev1", "west") == f"foreigndc=west, authdev=dev1, {account}"


def test_well_known_groups():
    assert ADMIN_GROUP == "cn=operators, ou=groups, o=smartdc"
    assert READERS_GROUP == "cn=readers, ou=groups, o=smartdc"
    assert group_dn("operators") == ADMIN_GROUP


def test_build_dn_escapes_values():
    """Test special characters cannot break out of the RDN."""
    dn = build_dn(EntityKind.GROUP, name="a,b")
    assert dn == "cn=a\\,b, ou=groups, o=smartdc"


def test_build_dn_missing_part():
    with pytest.raises(KeyError):
        build_dn(EntityKind.KEY, uuid=UUID)


def test_object_classes():
    assert EntityKind.USER.object_class == "sdcperson"
    assert EntityKind.KEY.object_class == "sdckey"
    assert EntityKind.LIMIT.object_class == "capilimit"
    assert EntityKind.GROUP.object_class == "groupofuniquenames"


def test_normalize_dn():
    """Test spacing and case do not matter when comparing DNs."""
    assert normalize_dn("CN=Operators, OU=groups,  o=smartdc") == "cn=operators,ou=groups,o=smartdc"
    assert normalize_dn(ADMIN_GROUP) == normalize_dn("cn=operators,ou=groups,o=smartdc")


def test_parent_dn():
    assert normalize_dn(parent_dn(key_dn(UUID, "aa"))) == normalize_dn(user_dn(UUID))
    # The suffix has an empty parent, which normalizes to the empty DN
    assert parent_dn("o=smartdc") == ""
    assert normalize_dn(parent_dn("o=smartdc")) == ""


def test_is_parent_of():
    account = user_dn(UUID)

    assert is_parent_of(account, key_dn(UUID, "aa"))
    assert not is_parent_of(account, key_dn("other", "aa"))
    # Grandchildren are not direct children
    assert not is_parent_of(account, foreigndc_dn(UUID, "dev", "west"))


def test_group_name():
    assert group_name(ADMIN_GROUP) == "operators"
    assert group_name(user_dn(UUID)) is None
