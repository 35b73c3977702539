from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from app.core.runtime import get_roll_service
from app.core.security import get_current_player
from app.models.player import Player
from app.schemas.common import APIResponse
from app.schemas.roll import PityResponse, RollRequest, RollResponse
from app.services.roll import RollService

router = APIRouter(prefix="/rolls", tags=["rolls"])


@router.post(
    "/",
    response_model=APIResponse[RollResponse],
    responses={204: {"description": "Request dropped: invalid, player busy or no token"}},
)
async def roll(
    body: RollRequest,
    service: Annotated[RollService, Depends(get_roll_service)],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[RollResponse] | Response:
    """Spend the admission token issued for ``request_id`` on one roll.

    Every rejected request gets an empty 204, so a client cannot tell a
    missing token from a failed roll.
    """
    result = await service.roll(player.id, player.name or str(player.id), body.request_id)
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return APIResponse(data=result)


@router.get("/pity/{crate_type}")
async def get_pity(
    crate_type: str,
    service: Annotated[RollService, Depends(get_roll_service)],
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[PityResponse]:
    pity = await service.get_pity(player.id, crate_type)
    return APIResponse(data=pity)
