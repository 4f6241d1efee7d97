"""Optional shared-key guard for the local activity surface.

The tracker serves one user. With ``JOURNEY_API_KEY`` unset every request is
accepted; with it set, a client presents the key as ``X-API-Key`` or as an
``Authorization: Bearer`` credential.
"""

import secrets

from fastapi import HTTPException, Header

from journey.config import settings


def presented_key(x_api_key: str | None, authorization: str | None) -> str | None:
    if x_api_key is not None:
        return x_api_key.strip()
    if authorization:
        scheme, _, credential = authorization.partition(" ")
        if scheme.lower() == "bearer" and credential.strip():
            return credential.strip()
    return None


async def verify_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    authorization: str | None = Header(default=None),
) -> str:
    expected = settings.journey_api_key
    if not expected:
        return ""

    key = presented_key(x_api_key, authorization)
    if key is None or not secrets.compare_digest(key.encode(), expected.encode()):
        raise HTTPException(
            status_code=401,
            detail="This journey is locked; send its key as X-API-Key or a Bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return key
