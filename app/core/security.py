import secrets
from datetime import UTC, datetime, timedelta
from typing import Annotated, Any

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.models.player import Player

bearer_scheme = HTTPBearer(auto_error=False)


def _get_jwt_secret() -> str:
    """The configured signing secret, or a per-process one in its absence.

    A per-process secret invalidates every token on restart and differs per
    node, so it is only usable for a single local dev server.
    """
    if not settings.jwt_secret:
        logger.warning("JWT_SECRET is not set, signing tokens with an ephemeral secret")
        settings.jwt_secret = secrets.token_urlsafe(32)
    return settings.jwt_secret


def create_access_token(*, sub: str, is_admin: bool) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": sub,
        "is_admin": is_admin,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.access_token_ttl_seconds)).timestamp()),
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Raises ``jwt.InvalidTokenError`` when the token is forged, malformed or expired."""
    return jwt.decode(token, _get_jwt_secret(), algorithms=[settings.jwt_algorithm])


def _player_id_from_token(token: str) -> int:
    try:
        claims = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired") from None
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token") from None

    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject") from None


async def get_current_player(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Player:
    """Resolve the player from ``Authorization: Bearer <jwt>``.

    Roll identity always comes from here, never from the request body.
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Not authenticated")

    player = await db.get(Player, _player_id_from_token(credentials.credentials))
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


def require_admin(player: Annotated[Player, Depends(get_current_player)]) -> Player:
    if not player.is_admin:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return player
