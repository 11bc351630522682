"""Rates, vehicle types and points of interest."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import get_db

router = APIRouter(tags=["catalog"])


@router.post("/pois", response_model=schemas.POI, status_code=status.HTTP_201_CREATED)
def create_poi(poi_in: schemas.POICreate, db: Session = Depends(get_db)) -> models.POI:
    return crud.create_poi(db, poi_in)


@router.get("/pois/{poi_id}", response_model=schemas.POI)
def get_poi(poi_id: str, db: Session = Depends(get_db)) -> models.POI:
    return crud.get_poi(db, poi_id)


@router.post("/rates", response_model=schemas.Rate, status_code=status.HTTP_201_CREATED)
def create_rate(rate_in: schemas.RateCreate, db: Session = Depends(get_db)) -> models.Rate:
    return crud.create_rate(db, rate_in)


@router.get("/rates/active", response_model=List[schemas.Rate])
def list_active_rates(db: Session = Depends(get_db)) -> List[models.Rate]:
    return crud.list_rates(db)


@router.get("/rates/{rate_id}", response_model=schemas.Rate)
def get_rate(rate_id: str, db: Session = Depends(get_db)) -> models.Rate:
    return crud.get_rate(db, rate_id)


@router.post("/vehicle-types", response_model=schemas.VehicleType, status_code=status.HTTP_201_CREATED)
def create_vehicle_type(
    vehicle_in: schemas.VehicleTypeCreate, db: Session = Depends(get_db)
) -> models.VehicleType:
    return crud.create_vehicle_type(db, vehicle_in)


@router.get("/vehicle-types/{vehicle_type_id}", response_model=schemas.VehicleType)
def get_vehicle_type(vehicle_type_id: str, db: Session = Depends(get_db)) -> models.VehicleType:
    return crud.get_vehicle_type(db, vehicle_type_id)
