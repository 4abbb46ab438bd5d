"""
Account References - "identifier or already-resolved account" inputs.

Every operation that targets an account accepts a login, a uuid or a
previously fetched record. account_ref() lifts the argument into one of
two cases and resolve() turns either case into a User:

- Identifier: looked up through the supplied lookup coroutine
- Resolved: used as-is (no re-fetch, no freshness check)
"""

from dataclasses import dataclass
from functools import singledispatch
from typing import Any, Awaitable, Callable, Union

from ufds_client.domain.user import User

Lookup = Callable[[str], Awaitable[User]]


@dataclass(frozen=True)
class Identifier:
    """A login or uuid still to be looked up."""
    value: str

    async def resolve(self, lookup: Lookup) -> User:
        return await lookup(self.value)


@dataclass(frozen=True)
class Resolved:
    """An account record already in hand."""
    user: User

    async def resolve(self, lookup: Lookup) -> User:
        return self.user


AccountRef = Union[Identifier, Resolved]


@singledispatch
def account_ref(account: Any) -> AccountRef:
    """
    Lift an operation argument into an AccountRef.

    Args:
        account: Login or uuid string, User, or an AccountRef

    Returns:
        Identifier or Resolved

    Raises:
        TypeError: If the argument cannot name an account
    """
    raise TypeError(f"cannot resolve an account from {type(account).__name__}")


@account_ref.register
def _(account: str) -> AccountRef:
    if not account:
        raise TypeError("account identifier must be a non-empty string")
    return Identifier(account)


@account_ref.register
def _(account: User) -> AccountRef:
    return Resolved(account)


@account_ref.register(Identifier)
@account_ref.register(Resolved)
def _(account) -> AccountRef:
    return account
