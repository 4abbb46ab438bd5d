"""
Unit tests for account references.
"""

import pytest

from ufds_client.domain.refs import Identifier, Resolved, account_ref
from ufds_client.domain.user import User

USER = User(uuid="1", login="alice", dn="uuid=1, ou=users, o=smartdc")


async def lookup(value):
    return User(uuid=value, login=value, dn=f"uuid={value}, ou=users, o=smartdc")


def test_string_becomes_identifier():
    assert account_ref("alice") == Identifier("alice")


def test_user_becomes_resolved():
    assert account_ref(USER) == Resolved(USER)


def test_refs_pass_through():
    ref = Identifier("alice")
    assert account_ref(ref) is ref


@pytest.mark.parametrize("bad", ["", None, 42])
def test_unusable_arguments(bad):
    with pytest.raises(TypeError):
        account_ref(bad)


@pytest.mark.asyncio
async def test_identifier_is_looked_up():
    user = await Identifier("bob").resolve(lookup)
    assert user.login == "bob"


@pytest.mark.asyncio
async def test_resolved_is_not_refetched():
    """Test a record in hand is used as-is."""
    async def fail(value):
        raise AssertionError("lookup should not run")

    assert await Resolved(USER).resolve(fail) is USER
