"""Price resolution endpoint used by the quote editor."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import pricing, schemas
from ..deps import get_db

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("/resolve", response_model=schemas.ResolvedPrice)
def resolve_price(
    item_type: schemas.ItemType = Query(..., alias="itemType"),
    item_id: str = Query(..., alias="itemId"),
    rate_id: str = Query(..., alias="rateId"),
    vehicle_type_id: str = Query(..., alias="vehicleTypeId"),
    client_id: Optional[str] = Query(None, alias="clientId"),
    as_of: Optional[datetime] = Query(None, alias="asOf"),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    db: Session = Depends(get_db),
) -> schemas.ResolvedPrice:
    if as_of is not None and as_of.tzinfo is not None:
        as_of = as_of.astimezone(timezone.utc).replace(tzinfo=None)
    return pricing.resolve_price(
        db,
        item_type,
        item_id,
        rate_id,
        vehicle_type_id,
        client_ref=client_id,
        as_of=as_of,
        expected_currency=currency,
    )
