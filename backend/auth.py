from __future__ import annotations

from fastapi import Header, HTTPException

from backend.settings import get_settings


async def require_owner_id(
    x_owner_id: str | None = Header(default=None, alias="X-Owner-Id"),
    x_backend_token: str | None = Header(default=None, alias="X-Backend-Token"),
) -> str:
    settings = get_settings()
    if not x_backend_token or x_backend_token != settings.backend_session_secret:
        raise HTTPException(status_code=401, detail="Invalid backend token")
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(status_code=401, detail="Missing owner id")
    owner_id = x_owner_id.strip()
    if settings.allowed_owner_ids and owner_id not in settings.allowed_owner_ids:
        raise HTTPException(status_code=403, detail="Owner not allowed")
    return owner_id
