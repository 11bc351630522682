"""Quote documents and server-side price pinning."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import crud, models, pricing, schemas
from ..deps import get_db

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post("", response_model=schemas.Quote, status_code=status.HTTP_201_CREATED)
def create_quote(quote_in: schemas.QuoteCreate, db: Session = Depends(get_db)) -> models.Quote:
    return crud.create_quote(db, quote_in)


@router.get("/{quote_id}", response_model=schemas.Quote)
def get_quote(quote_id: str, db: Session = Depends(get_db)) -> models.Quote:
    return crud.get_quote(db, quote_id)


@router.put("/{quote_id}/service-items", response_model=schemas.ServiceItems)
def update_service_items(
    quote_id: str, service_items: schemas.ServiceItems, db: Session = Depends(get_db)
) -> schemas.ServiceItems:
    quote = crud.get_quote(db, quote_id)
    pinned = pricing.pin_service_items(db, quote, service_items)
    crud.update_service_items(db, quote, pinned)
    return pinned
