from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.core.runtime import Runtime, get_runtime
from app.core.security import require_admin
from app.models.player import Player
from app.models.roll_token import RollToken
from app.schemas.common import APIResponse
from app.schemas.roll import RollTokenCreate

router = APIRouter(prefix="/roll-tokens", tags=["roll-tokens"])


@router.post("/")
async def issue_roll_token(
    token: RollTokenCreate,
    runtime: Annotated[Runtime, Depends(get_runtime)],
    _admin: Annotated[Player, Depends(require_admin)],
) -> APIResponse[RollToken]:
    """Issue a single-use roll token for a player (admin only)."""
    meta = token.model_dump(exclude={"player_id", "request_id"})
    issued = await runtime.tokens.issue(
        token.player_id, token.request_id, meta, ttl_seconds=settings.roll_token_ttl_seconds
    )
    return APIResponse(data=issued, message="Roll token issued")
