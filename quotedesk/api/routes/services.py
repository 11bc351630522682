"""Transfer services, their base prices and client overrides."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ... import crud, models, pricing, schemas
from ...constants import ITEM_TYPE_SERVICES
from ..deps import get_acting_user, get_db

router = APIRouter(prefix="/services", tags=["services"])


@router.post("", response_model=schemas.Service, status_code=status.HTTP_201_CREATED)
def create_service(service_in: schemas.ServiceCreate, db: Session = Depends(get_db)) -> models.Service:
    return crud.create_service(db, service_in)


@router.get("/by-rate/{rate_id}", response_model=List[schemas.ServiceOption])
def list_services_by_rate(
    rate_id: str,
    number_of_people: Optional[int] = Query(None, alias="numberOfPeople", ge=0),
    db: Session = Depends(get_db),
):
    return crud.list_services_by_rate(db, rate_id, number_of_people)


@router.post("/prices", response_model=schemas.BasePriceRow, status_code=status.HTTP_201_CREATED)
def create_rate_price(price_in: schemas.RatePriceCreate, db: Session = Depends(get_db)) -> models.RatePrice:
    return crud.create_rate_price(db, price_in)


@router.post("/client-prices", response_model=schemas.ClientPriceSaveResult)
def save_client_prices(
    payload: schemas.ServiceClientPricesIn,
    db: Session = Depends(get_db),
    acting_user: models.User = Depends(get_acting_user),
):
    return pricing.save_client_prices(
        db,
        ITEM_TYPE_SERVICES,
        payload.service_id,
        payload.client_id,
        payload.prices,
        acting_user=acting_user.email,
    )


@router.get("/{service_id}", response_model=schemas.Service)
def get_service(service_id: str, db: Session = Depends(get_db)) -> models.Service:
    return crud.get_service(db, service_id)


@router.get("/{service_id}/prices", response_model=List[schemas.PriceCell])
def get_service_prices(
    service_id: str,
    client_id: Optional[str] = Query(None, alias="clientId"),
    db: Session = Depends(get_db),
):
    return pricing.build_price_matrix(db, ITEM_TYPE_SERVICES, service_id, client_id)


@router.patch("/{service_id}/status", response_model=schemas.Service)
def set_service_status(
    service_id: str, toggle: schemas.StatusToggle, db: Session = Depends(get_db)
) -> models.Service:
    return crud.set_service_status(db, service_id, toggle.active)


@router.delete("/{service_id}", response_model=schemas.Service)
def delete_service(
    service_id: str,
    db: Session = Depends(get_db),
    acting_user: models.User = Depends(get_acting_user),
) -> models.Service:
    return crud.delete_service(db, service_id, deleted_by=acting_user.email)
