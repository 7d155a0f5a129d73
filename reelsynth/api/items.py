"""Catalog item detail endpoint."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.api.deps import get_enricher
from reelsynth.db import get_db
from reelsynth.db.crud.catalog import get_item_detail
from reelsynth.models.schemas import CatalogItemRead
from reelsynth.services.metadata.enrichment import MetadataEnricher

router = APIRouter(prefix="/items", tags=["items"])


@router.get("/{item_id}", response_model=CatalogItemRead)
async def get_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    enricher: MetadataEnricher = Depends(get_enricher),
) -> CatalogItemRead:
    """Catalog item, enriched on first view when metadata is missing."""
    item = await get_item_detail(db, item_id, enricher)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return CatalogItemRead.model_validate(item)
