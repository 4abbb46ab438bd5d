"""
Unit tests for error translation.
"""

import pytest
from ldap3.core import results
from ldap3.core.exceptions import LDAPOperationResult, LDAPSocketOpenError

from ufds_client.errors import (
    DirectoryError,
    ResourceNotFoundError,
    InvalidArgumentError,
    MissingParameterError,
    NotAllowedError,
    InvalidCredentialsError,
    InternalError,
    translate_error,
)


def ldap_error(code, message="boom", dn="uuid=1, ou=users, o=smartdc"):
    return LDAPOperationResult(result=code, description="desc", dn=dn, message=message)


@pytest.mark.parametrize("code", [
    results.RESULT_NO_SUCH_ATTRIBUTE,
    results.RESULT_NO_SUCH_OBJECT,
    results.RESULT_UNDEFINED_ATTRIBUTE_TYPE,
])
def test_not_found_codes(code):
    """Test absent entries/attributes become ResourceNotFound."""
    err = translate_error(ldap_error(code))

    assert isinstance(err, ResourceNotFoundError)
    assert err.status_code == 404
    assert err.rest_code == "ResourceNotFound"
    assert err.message == "The resource you requested does not exist"


@pytest.mark.parametrize("code", [
    results.RESULT_INVALID_DN_SYNTAX,
    results.RESULT_ATTRIBUTE_OR_VALUE_EXISTS,
    results.RESULT_CONSTRAINT_VIOLATION,
    results.RESULT_OBJECT_CLASS_MODS_PROHIBITED,
])
def test_invalid_argument_codes(code):
    """Test schema and syntax failures become InvalidArgument with the server message."""
    err = translate_error(ldap_error(code, message="login taken"))

    assert isinstance(err, InvalidArgumentError)
    assert err.status_code == 409
    assert err.message == "login taken"


def test_entry_already_exists():
    """Test duplicate entries name the DN."""
    err = translate_error(ldap_error(results.RESULT_ENTRY_ALREADY_EXISTS))

    assert isinstance(err, InvalidArgumentError)
    assert err.message == "uuid=1, ou=users, o=smartdc already exists"


def test_object_class_violation():
    """Test missing required attributes become MissingParameter."""
    err = translate_error(ldap_error(results.RESULT_OBJECT_CLASS_VIOLATION, message="email"))

    assert isinstance(err, MissingParameterError)
    assert err.rest_code == "MissingParameter"
    assert "email" in err.message


@pytest.mark.parametrize("code", [
    results.RESULT_NOT_ALLOWED_ON_NON_LEAF,
    results.RESULT_NOT_ALLOWED_ON_RDN,
])
def test_not_allowed_codes(code):
    err = translate_error(ldap_error(code))

    assert isinstance(err, NotAllowedError)
    assert err.status_code == 403


def test_invalid_credentials_code():
    err = translate_error(ldap_error(results.RESULT_INVALID_CREDENTIALS))

    assert isinstance(err, InvalidCredentialsError)
    assert err.status_code == 401


def test_unknown_code_preserves_message():
    """Test anything unrecognised becomes Internal, keeping the message."""
    err = translate_error(ldap_error(results.RESULT_BUSY, message="server busy"))

    assert isinstance(err, InternalError)
    assert err.status_code == 500
    assert err.message == "server busy"


def test_non_protocol_exception():
    """Test transport exceptions are wrapped with their message and cause."""
    cause = LDAPSocketOpenError("connection refused")
    err = translate_error(cause)

    assert isinstance(err, InternalError)
    assert "connection refused" in err.message
    assert err.cause is cause


def test_translated_errors_pass_through():
    """Test translation happens exactly once."""
    original = NotAllowedError("nope")
    assert translate_error(original) is original


def test_cause_is_kept():
    cause = ldap_error(results.RESULT_NO_SUCH_OBJECT)
    err = translate_error(cause)

    assert err.cause is cause
    assert isinstance(err, DirectoryError)
