"""Shared FastAPI dependencies."""
from __future__ import annotations

from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, Query
from sqlalchemy.orm import Session

from .. import crud, models
from ..availability import parse_day_date
from ..constants import ACTING_USER_HEADER
from ..database import SessionLocal
from ..errors import PermissionDenied


def get_db() -> Generator[Session, None, None]:
    """Provide a scoped database session to request handlers."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:  # pragma: no cover - safety rollback
        db.rollback()
        raise
    finally:
        db.close()


def get_acting_user(
    acting_email: Annotated[Optional[str], Header(alias=ACTING_USER_HEADER)] = None,
    db: Session = Depends(get_db),
) -> models.User:
    """Resolve the staff member stamped on client-price writes."""

    if not acting_email:
        raise PermissionDenied(f"{ACTING_USER_HEADER} header is required")
    user = crud.get_user_by_email(db, acting_email)
    if not user or not user.is_active:
        raise PermissionDenied(f"{acting_email} may not modify client prices")
    return user


def get_day_date(
    day_date: Optional[str] = Query(None, alias="dayDate", description="YYYY-MM-DD"),
):
    return parse_day_date(day_date)
