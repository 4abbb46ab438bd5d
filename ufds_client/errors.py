"""
Directory Errors - Stable error taxonomy surfaced to callers.

Every failure coming out of the protocol layer is translated exactly once,
at the CRUD boundary of the client, by translate_error().
"""

from typing import Optional

from ldap3.core import results
from ldap3.core.exceptions import LDAPOperationResult


class DirectoryError(Exception):
    """Base exception for directory client operations."""

    status_code = 500
    rest_code = "InternalError"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(self.message)


class ResourceNotFoundError(DirectoryError):
    """Entry or attribute does not exist."""

    status_code = 404
    rest_code = "ResourceNotFound"


class InvalidArgumentError(DirectoryError):
    """Malformed DN, duplicate unique value or schema violation."""

    status_code = 409
    rest_code = "InvalidArgument"


class MissingParameterError(DirectoryError):
    """A required attribute is missing from an add."""

    status_code = 409
    rest_code = "MissingParameter"


class NotAllowedError(DirectoryError):
    """Attempt to destroy a non-leaf entry or change an immutable one."""

    status_code = 403
    rest_code = "NotAllowed"


class InvalidCredentialsError(DirectoryError):
    """Password comparison failed (authentication only)."""

    status_code = 401
    rest_code = "InvalidCredentials"


class InternalError(DirectoryError):
    """Anything the taxonomy does not recognise."""

    status_code = 500
    rest_code = "InternalError"


_NOT_FOUND = {
    results.RESULT_NO_SUCH_ATTRIBUTE,
    results.RESULT_NO_SUCH_OBJECT,
    results.RESULT_UNDEFINED_ATTRIBUTE_TYPE,
}

_INVALID = {
    results.RESULT_INVALID_DN_SYNTAX,
    results.RESULT_ATTRIBUTE_OR_VALUE_EXISTS,
    results.RESULT_CONSTRAINT_VIOLATION,
    results.RESULT_OBJECT_CLASS_MODS_PROHIBITED,
}

_NOT_ALLOWED = {
    results.RESULT_NOT_ALLOWED_ON_NON_LEAF,
    results.RESULT_NOT_ALLOWED_ON_RDN,
}


def _describe(exc: LDAPOperationResult) -> str:
    return exc.message or exc.description or str(exc)


def translate_error(exc: BaseException) -> DirectoryError:
    """
    Translate a low-level failure into the directory error taxonomy.

    Args:
        exc: Exception raised by the transport (or already translated)

    Returns:
        DirectoryError subclass; already-translated errors pass through
    """
    if isinstance(exc, DirectoryError):
        return exc

    if not isinstance(exc, LDAPOperationResult):
        return InternalError(str(exc) or exc.__class__.__name__, cause=exc)

    code = exc.result

    if code in _NOT_FOUND:
        return ResourceNotFoundError(
            "The resource you requested does not exist", cause=exc
        )

    if code in _INVALID:
        return InvalidArgumentError(_describe(exc), cause=exc)

    if code == results.RESULT_ENTRY_ALREADY_EXISTS:
        return InvalidArgumentError(f"{exc.dn or _describe(exc)} already exists", cause=exc)

    if code == results.RESULT_OBJECT_CLASS_VIOLATION:
        return MissingParameterError(
            f"Request is missing a required parameter ({_describe(exc)})",
            cause=exc,
        )

    if code in _NOT_ALLOWED:
        return NotAllowedError(
            'The resource in question has "child" elements or is '
            "immutable and cannot be destroyed",
            cause=exc,
        )

    if code == results.RESULT_INVALID_CREDENTIALS:
        return InvalidCredentialsError("The credentials provided are invalid", cause=exc)

    return InternalError(_describe(exc), cause=exc)
