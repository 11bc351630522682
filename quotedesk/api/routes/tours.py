"""Tour catalog endpoints, filtered by rate, destination, party size and day."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ... import crud, models, pricing, schemas
from ...constants import ITEM_TYPE_TOUR
from ..deps import get_acting_user, get_day_date, get_db

router = APIRouter(prefix="/tours", tags=["tours"])


@router.post("", response_model=schemas.Tour, status_code=status.HTTP_201_CREATED)
def create_tour(tour_in: schemas.TourCreate, db: Session = Depends(get_db)) -> models.Tour:
    return crud.create_tour(db, tour_in)


@router.get("/destinations/by-rate/{rate_id}", response_model=List[schemas.POI])
def list_tour_destinations(
    rate_id: str,
    day_date: Optional[date] = Depends(get_day_date),
    db: Session = Depends(get_db),
) -> List[models.POI]:
    return crud.list_tour_destinations(db, rate_id, day_date)


@router.get(
    "/vehicles/by-rate-destination/{rate_id}/{destination_id}",
    response_model=List[schemas.TourVehicleOption],
)
def list_tour_vehicles(
    rate_id: str,
    destination_id: str,
    number_of_people: Optional[int] = Query(None, alias="numberOfPeople", ge=0),
    day_date: Optional[date] = Depends(get_day_date),
    db: Session = Depends(get_db),
):
    return crud.list_tour_vehicles(db, rate_id, destination_id, number_of_people, day_date)


@router.post("/prices", response_model=schemas.BasePriceRow, status_code=status.HTTP_201_CREATED)
def create_tour_price(price_in: schemas.TourPriceCreate, db: Session = Depends(get_db)) -> models.TourPrice:
    return crud.create_tour_price(db, price_in)


@router.post("/client-prices", response_model=schemas.ClientPriceSaveResult)
def save_client_prices(
    payload: schemas.TourClientPricesIn,
    db: Session = Depends(get_db),
    acting_user: models.User = Depends(get_acting_user),
):
    return pricing.save_client_prices(
        db,
        ITEM_TYPE_TOUR,
        payload.tour_id,
        payload.client_id,
        payload.prices,
        acting_user=acting_user.email,
    )


@router.get("/{tour_id}", response_model=schemas.Tour)
def get_tour(tour_id: str, db: Session = Depends(get_db)) -> models.Tour:
    return crud.get_tour(db, tour_id)


@router.get("/{tour_id}/prices", response_model=List[schemas.PriceCell])
def get_tour_prices(
    tour_id: str,
    client_id: Optional[str] = Query(None, alias="clientId"),
    db: Session = Depends(get_db),
):
    return pricing.build_price_matrix(db, ITEM_TYPE_TOUR, tour_id, client_id)


@router.patch("/{tour_id}/status", response_model=schemas.Tour)
def set_tour_status(tour_id: str, toggle: schemas.StatusToggle, db: Session = Depends(get_db)) -> models.Tour:
    return crud.set_tour_status(db, tour_id, toggle.active)


@router.delete("/{tour_id}", response_model=schemas.Tour)
def delete_tour(
    tour_id: str,
    db: Session = Depends(get_db),
    acting_user: models.User = Depends(get_acting_user),
) -> models.Tour:
    return crud.delete_tour(db, tour_id, deleted_by=acting_user.email)
