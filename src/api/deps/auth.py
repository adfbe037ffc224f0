"""API key dependency."""

from __future__ import annotations

import secrets

from fastapi import Depends, Header, HTTPException, status

from ..settings import APISettings, get_settings


def get_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    settings: APISettings = Depends(get_settings),
) -> str:
    """Validate ``X-API-Key``; with no keys configured the API is open."""
    if not settings.api_keys:
        return ""
    if not x_api_key or not any(secrets.compare_digest(x_api_key, key) for key in settings.api_keys):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid or missing API key")
    return x_api_key
