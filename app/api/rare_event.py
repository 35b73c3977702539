from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.runtime import Runtime, get_runtime
from app.schemas.common import APIResponse
from app.schemas.rare_event import Announcement, RareEvent

router = APIRouter(prefix="/rare-events", tags=["rare-events"])


@router.get("/showcase")
async def get_showcase(
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> APIResponse[RareEvent]:
    return APIResponse(data=runtime.showcase.current)


@router.get("/feed")
async def get_feed(
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> APIResponse[list[Announcement]]:
    return APIResponse(data=runtime.feed.items())
