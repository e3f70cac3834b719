"""
Request Trust and Admin Authentication

Two independent checks:

- ``is_trusted_origin``: decides the trust tier of an image request from its
  Referer header. Trusted requests get the long TTL and are persisted to disk;
  untrusted ones only get a short-lived fast tier entry.
- ``require_admin``: bearer-token guard for the ``/cache`` routes.
"""

import secrets
from collections.abc import Sequence

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from og_cache.application.api.dependencies import SettingsDep
from og_cache.core.exceptions import AuthenticationError

_bearer = HTTPBearer(auto_error=False)


def is_trusted_origin(referer: str | None, allowed_origins: Sequence[str], environment: str) -> bool:
    """
    Trust tier of one request.

    Direct access (no Referer) and every non-production environment are
    trusted. In production a Referer is trusted iff it starts with one of the
    allowed origins.
    """
    if not referer or environment != "production":
        return True
    return any(referer.startswith(origin) for origin in allowed_origins if origin)


async def require_admin(
    settings: SettingsDep,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> None:
    """
    Reject the call unless it carries ``Authorization: Bearer <ADMIN_TOKEN>``.

    With no ADMIN_TOKEN configured every call is rejected.

    Raises:
        AuthenticationError: Missing, malformed or wrong credential
    """
    expected = settings.app.ADMIN_TOKEN
    if expected is None:
        raise AuthenticationError("Unauthorized", details={"reason": "admin_token_not_configured"})
    if credentials is None:
        raise AuthenticationError("Unauthorized", details={"reason": "missing_credentials"})
    if not secrets.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise AuthenticationError("Unauthorized", details={"reason": "invalid_token"})
