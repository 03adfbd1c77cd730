"""Tests for the legacy login challenge response."""

import pytest

from mikrotik_api_mcp.errors import AuthError
from mikrotik_api_mcp.utils.challenge import legacy_login_response


def test_known_vector():
    """MD5(0x00 + "secret" + challenge bytes), prefixed with "00"."""
    result = legacy_login_response("secret", "0123456789abcdeffedcba9876543210")
    assert result == "003b45289c18627761f0eb67731ebe47fc"


def test_empty_password_and_challenge():
    """Only the zero byte is hashed."""
    assert legacy_login_response("", "") == "0093b885adfe0da089cdf634904fd59f71"


def test_password_is_utf8():
    """Non-ASCII passwords are hashed as UTF-8."""
    assert legacy_login_response("pässword", "deadbeef") == "00d13a6c6841e07a133513189449b786b0"


def test_uppercase_hex_challenge():
    """Challenge hex is case-insensitive."""
    assert legacy_login_response("secret", "0123456789ABCDEFFEDCBA9876543210") == (
        "003b45289c18627761f0eb67731ebe47fc"
    )


def test_malformed_challenge():
    """Invalid hex raises AuthError."""
    with pytest.raises(AuthError):
        legacy_login_response("secret", "not-hex")


def test_response_shape():
    """The response is 00 plus 32 hex digits."""
    result = legacy_login_response("x", "00")
    assert result.startswith("00")
    assert len(result) == 34
