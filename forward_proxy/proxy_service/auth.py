"""HTTP Basic authentication gate."""

import base64
import binascii
import secrets
from collections.abc import Mapping

from forward_proxy.shared.config import Settings

AUTH_REALM = 'Basic realm="Proxy API"'


def parse_basic_credentials(header_value: str | None) -> tuple[str, str] | None:
    """
    Decode an ``Authorization: Basic`` value into ``(user, password)``.

    Returns None for anything that is not a well-formed Basic credential.
    """
    if not header_value:
        return None

    scheme, _, encoded = header_value.strip().partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None

    user, sep, password = decoded.partition(":")
    if not sep:
        return None
    return user, password


def authenticate(headers: Mapping[str, str], settings: Settings) -> bool:
    """Check the request's credentials against the configured user and password."""
    if not settings.require_auth:
        return True

    credentials = parse_basic_credentials(headers.get("authorization"))
    if credentials is None:
        return False

    user, password = credentials
    user_ok = secrets.compare_digest(user.encode(), settings.basic_auth_user.encode())
    pass_ok = secrets.compare_digest(password.encode(), settings.basic_auth_pass.encode())
    return user_ok and pass_ok
