from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from app.core.security import get_current_player, require_admin
from app.models.player import Player
from app.schemas.common import APIResponse
from app.schemas.player import PlayerCreate, PlayerItems, PlayerUpdate
from app.services.player import PlayerService

router = APIRouter(prefix="/players", tags=["players"])

AdminPlayer = Annotated[Player, Depends(require_admin)]


@router.get("/me")
async def get_me(player: Annotated[Player, Depends(get_current_player)]) -> APIResponse[Player]:
    return APIResponse(data=player)


@router.get("/me/items")
async def get_my_items(
    player: Annotated[Player, Depends(get_current_player)],
) -> APIResponse[PlayerItems]:
    return APIResponse(data=PlayerService.get_items(player))


@router.get("/{player_id}")
async def get_player(
    player_id: int, service: Annotated[PlayerService, Depends()], _admin: AdminPlayer
) -> APIResponse[Player]:
    player = await service.get_player(player_id)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return APIResponse(data=player)


@router.post("/")
async def create_player(
    data: PlayerCreate, service: Annotated[PlayerService, Depends()], _admin: AdminPlayer
) -> APIResponse[Player]:
    player = await service.create_player(data)
    if not player:
        raise HTTPException(status_code=409, detail="Player already exists")
    return APIResponse(data=player, message="Player created")


@router.put("/{player_id}")
async def update_player(
    player_id: int,
    data: PlayerUpdate,
    service: Annotated[PlayerService, Depends()],
    _admin: AdminPlayer,
) -> APIResponse[Player]:
    player = await service.update_player(player_id, data)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return APIResponse(data=player, message="Player updated")
