"""MD5 challenge response for the legacy RouterOS login.

Routers older than 6.43 answer a bare ``/login`` with ``=ret=<hex>``. The
client proves the password by sending ``"00"`` followed by the hex MD5 of
``0x00 + password + challenge``.
"""

from __future__ import annotations

import hashlib

from ..errors import AuthError


def legacy_login_response(password: str, challenge_hex: str) -> str:
    """Compute the ``=response=`` value for a legacy login.

    Args:
        password: Plain-text password, encoded as UTF-8.
        challenge_hex: Challenge from the router's ``=ret=`` attribute.

    Raises:
        AuthError: If the challenge is not valid hex.
    """
    try:
        challenge = bytes.fromhex(challenge_hex)
    except ValueError as e:
        raise AuthError(f"Malformed login challenge {challenge_hex!r}") from e

    digest = hashlib.md5()
    digest.update(b"\x00")
    digest.update(password.encode("utf-8"))
    digest.update(challenge)
    return "00" + digest.hexdigest()
