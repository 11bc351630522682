"""SQLAlchemy models for the transport catalog, client overrides and quotes."""
from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from .constants import DEFAULT_CURRENCY, DEFAULT_RATE_COLOR
from .database import Base

_ID_ALPHABET = string.ascii_letters + string.digits
_ALIVE_AND_ACTIVE = '"exists" AND active'


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(10))


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SoftDeleteMixin:
    """Alive rows have ``exists`` set; tombstoned rows remember when and by whom."""

    active = Column(Boolean, nullable=False, default=True)
    exists = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(64), nullable=True)

    @property
    def is_tombstoned(self) -> bool:
        return not self.exists

    def tombstone(self, by: str | None = None) -> None:
        self.exists = False
        self.active = False
        self.deleted_at = utcnow()
        self.deleted_by = by


class POI(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "pois"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(150), nullable=False)
    service_type = Column(
        String(30), nullable=False, doc="Aeropuerto, Punto a Punto, Local or Ciudad"
    )


class Service(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "services"

    id = Column(String(64), primary_key=True, default=new_id)
    origin_poi_id = Column(
        String(64), ForeignKey("pois.id"), nullable=True, doc="Empty for airport returns and local services"
    )
    destination_poi_id = Column(String(64), ForeignKey("pois.id"), nullable=False)
    note = Column(Text, nullable=True)
    availability = Column(JSON, nullable=True)

    origin_poi = relationship("POI", foreign_keys=[origin_poi_id])
    destination_poi = relationship("POI", foreign_keys=[destination_poi_id])
    rate_prices = relationship("RatePrice", back_populates="service")


class Rate(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "rates"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(120), nullable=False)
    color = Column(String(20), nullable=False, default=DEFAULT_RATE_COLOR)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)


class VehicleType(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "vehicle_types"

    id = Column(String(64), primary_key=True, default=new_id)
    code = Column(String(40), nullable=False)
    name = Column(String(120), nullable=False)
    default_capacity = Column(Integer, nullable=False, default=4)
    trunk_capacity = Column(Integer, nullable=False, default=2)

    __table_args__ = (
        CheckConstraint("default_capacity >= 1", name="ck_vehicle_types_capacity"),
        CheckConstraint("trunk_capacity >= 0", name="ck_vehicle_types_trunk"),
    )


class Tour(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "tours"

    id = Column(String(64), primary_key=True, default=new_id)
    destination_poi_id = Column(String(64), ForeignKey("pois.id"), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    availability = Column(JSON, nullable=True, doc="Sorted list of {day, startTime, endTime}")

    destination_poi = relationship("POI")
    tour_prices = relationship("TourPrice", back_populates="tour")

    __table_args__ = (CheckConstraint("duration_minutes > 0", name="ck_tours_duration"),)


class Experience(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "experiences"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(150), nullable=False)
    experience_type = Column(String(50), nullable=False, default="Experience")
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    availability = Column(JSON, nullable=True)


class RatePrice(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "rate_prices"

    id = Column(String(64), primary_key=True, default=new_id)
    service_id = Column(String(64), ForeignKey("services.id"), nullable=False, index=True)
    rate_id = Column(String(64), ForeignKey("rates.id"), nullable=False, index=True)
    vehicle_type_id = Column(String(64), ForeignKey("vehicle_types.id"), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    service = relationship("Service", back_populates="rate_prices")
    rate = relationship("Rate")
    vehicle_type = relationship("VehicleType")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_rate_prices_price"),
        Index(
            "uq_rate_prices_alive",
            "service_id",
            "rate_id",
            "vehicle_type_id",
            unique=True,
            sqlite_where=text(_ALIVE_AND_ACTIVE),
            postgresql_where=text(_ALIVE_AND_ACTIVE),
        ),
    )


class TourPrice(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "tour_prices"

    id = Column(String(64), primary_key=True, default=new_id)
    tour_id = Column(String(64), ForeignKey("tours.id"), nullable=False, index=True)
    rate_id = Column(String(64), ForeignKey("rates.id"), nullable=False, index=True)
    vehicle_type_id = Column(String(64), ForeignKey("vehicle_types.id"), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    tour = relationship("Tour", back_populates="tour_prices")
    rate = relationship("Rate")
    vehicle_type = relationship("VehicleType")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_tour_prices_price"),
        Index(
            "uq_tour_prices_alive",
            "tour_id",
            "rate_id",
            "vehicle_type_id",
            unique=True,
            sqlite_where=text(_ALIVE_AND_ACTIVE),
            postgresql_where=text(_ALIVE_AND_ACTIVE),
        ),
    )


class ClientPrice(Base, TimestampMixin):
    """Per-client override; the row with ``valid_until`` unset is the current one."""

    __tablename__ = "client_prices"

    id = Column(String(64), primary_key=True, default=new_id)
    client_ref = Column(String(64), nullable=False, index=True)
    item_type = Column(String(20), nullable=False, doc="SERVICES or TOUR")
    item_id = Column(String(64), nullable=False)
    rate_id = Column(String(64), ForeignKey("rates.id"), nullable=False)
    vehicle_type_id = Column(String(64), ForeignKey("vehicle_types.id"), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    base_price = Column(
        Numeric(10, 2), nullable=False, default=0, doc="Base price when the override was written"
    )
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    active = Column(Boolean, nullable=False, default=True)
    exists = Column(Boolean, nullable=False, default=True)
    valid_until = Column(DateTime, nullable=True)
    created_by = Column(String(64), nullable=True)
    last_modified_by = Column(String(64), nullable=True)

    rate = relationship("Rate")
    vehicle_type = relationship("VehicleType")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_client_prices_price"),
        Index(
            "uq_client_prices_current",
            "client_ref",
            "item_type",
            "item_id",
            "rate_id",
            "vehicle_type_id",
            unique=True,
            sqlite_where=text("valid_until IS NULL"),
            postgresql_where=text("valid_until IS NULL"),
        ),
    )


class Quote(Base, TimestampMixin):
    __tablename__ = "quotes"

    id = Column(String(64), primary_key=True, default=new_id)
    title = Column(String(150), nullable=True)
    rate_id = Column(String(64), ForeignKey("rates.id"), nullable=True)
    client_ref = Column(String(64), nullable=True)
    number_of_people = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    service_items = Column(JSON, nullable=False, default=dict)

    rate = relationship("Rate")

    __table_args__ = (CheckConstraint("number_of_people >= 0", name="ck_quotes_people"),)

    @property
    def rate_name(self) -> str | None:
        return self.rate.name if self.rate else None


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=new_id)
    email = Column(String(120), nullable=False, unique=True)
    full_name = Column(String(120), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
