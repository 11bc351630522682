"""Experience catalog endpoints."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...constants import DEFAULT_EXPERIENCE_LENGTH
from ..deps import get_day_date, get_db

router = APIRouter(prefix="/experiences", tags=["experiences"])


@router.post("", response_model=schemas.Experience, status_code=status.HTTP_201_CREATED)
def create_experience(
    experience_in: schemas.ExperienceCreate, db: Session = Depends(get_db)
) -> models.Experience:
    return crud.create_experience(db, experience_in)


@router.get("", response_model=List[schemas.Experience])
def list_experiences(
    experience_type: Optional[str] = Query(None, alias="type"),
    day_date: Optional[date] = Depends(get_day_date),
    length: int = Query(DEFAULT_EXPERIENCE_LENGTH, ge=1),
    db: Session = Depends(get_db),
) -> List[models.Experience]:
    return crud.list_experiences(db, experience_type, day_date, length)
