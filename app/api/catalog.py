from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.runtime import get_catalog
from app.core.security import require_admin
from app.models.player import Player
from app.schemas.catalog import CatalogItem
from app.schemas.common import APIResponse
from app.services.catalog_cache import CatalogCache

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/items")
async def get_items(
    catalog: Annotated[CatalogCache, Depends(get_catalog)],
) -> APIResponse[list[CatalogItem]]:
    items = await catalog.get_catalog_items()
    return APIResponse(data=items)


@router.post("/reload")
async def reload_catalog(
    catalog: Annotated[CatalogCache, Depends(get_catalog)],
    _admin: Annotated[Player, Depends(require_admin)],
) -> APIResponse[None]:
    """Drop every cached catalog lookup so edits show up on the next roll."""
    catalog.invalidate()
    return APIResponse(message="Catalog cache cleared")
