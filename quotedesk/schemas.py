"""Pydantic schemas powering the quoting API.

Wire names are camelCase (``numberOfPeople``, ``ratePtr``...) while Python code
keeps snake_case attributes; every model accepts either on input.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PlainSerializer,
    StrictBool,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .constants import DEFAULT_CURRENCY

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
ServiceType = Literal["Aeropuerto", "Punto a Punto", "Local", "Ciudad"]
ItemType = Literal["SERVICES", "TOUR"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class TimestampMixin(CamelModel):
    created_at: datetime
    updated_at: datetime


class DaySchedule(CamelModel):
    day: int = Field(..., ge=1, le=7, description="ISO weekday, 1 = Monday")
    start_time: Optional[str] = Field(None, description="HH:MM")
    end_time: Optional[str] = Field(None, description="HH:MM")


# Catalog


class POIBase(CamelModel):
    name: str
    service_type: ServiceType


class POICreate(POIBase):
    id: Optional[str] = None


class POI(POIBase):
    id: str
    active: bool


class RateBase(CamelModel):
    name: str = Field(..., min_length=1)
    color: Optional[str] = None
    currency: str = Field(DEFAULT_CURRENCY, min_length=3, max_length=3)
    active: bool = True


class RateCreate(RateBase):
    id: Optional[str] = None


class Rate(RateBase, TimestampMixin):
    id: str


class VehicleTypeBase(CamelModel):
    code: str = Field(..., min_length=1)
    name: str
    default_capacity: int = Field(4, ge=1)
    trunk_capacity: int = Field(2, ge=0)
    active: bool = True


class VehicleTypeCreate(VehicleTypeBase):
    id: Optional[str] = None


class VehicleType(VehicleTypeBase):
    id: str


class ServiceCreate(CamelModel):
    id: Optional[str] = None
    origin_poi_id: Optional[str] = Field(None, alias="originPOI")
    destination_poi_id: str = Field(..., alias="destinationPOI")
    note: Optional[str] = None
    availability: Optional[List[DaySchedule]] = None
    active: bool = True


class Service(CamelModel):
    id: str
    origin_poi: Optional[POI] = Field(None, alias="originPOI")
    destination_poi: POI = Field(..., alias="destinationPOI")
    note: Optional[str] = None
    availability: Optional[List[DaySchedule]] = None
    active: bool


class TourCreate(CamelModel):
    id: Optional[str] = None
    destination_poi_id: str = Field(..., alias="destinationPOI")
    duration_minutes: int = Field(..., gt=0, alias="duration")
    availability: Optional[List[DaySchedule]] = None
    active: bool = True


class Tour(CamelModel):
    id: str
    destination_poi: POI = Field(..., alias="destinationPOI")
    duration_minutes: int = Field(..., alias="duration")
    availability: Optional[List[DaySchedule]] = None
    active: bool


class ExperienceCreate(CamelModel):
    id: Optional[str] = None
    name: str
    experience_type: str = Field("Experience", alias="type")
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, gt=0, alias="duration")
    availability: Optional[List[DaySchedule]] = None
    active: bool = True


class Experience(CamelModel):
    id: str
    name: str
    experience_type: str = Field(..., alias="type")
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, alias="duration")
    availability: Optional[List[DaySchedule]] = None
    active: bool


class RatePriceCreate(CamelModel):
    service_id: str
    rate_id: str
    vehicle_type_id: str
    price: Money = Field(..., ge=0)


class TourPriceCreate(CamelModel):
    tour_id: str
    rate_id: str
    vehicle_type_id: str
    price: Money = Field(..., ge=0)


class BasePriceRow(CamelModel):
    id: str
    rate_id: str
    vehicle_type_id: str
    price: Money
    active: bool


class StatusToggle(CamelModel):
    active: StrictBool


class VehicleOption(CamelModel):
    vehicle_type: VehicleType
    price: Money


class ServiceOption(CamelModel):
    service: Service
    admissible_vehicles: List[VehicleOption]


class TourVehicleOption(CamelModel):
    tour: Tour
    vehicle_type: VehicleType
    base_price: Money


# Pricing


class ResolvedPrice(CamelModel):
    price: Money
    base_price: Money
    currency: str
    source: Literal["override", "base"]
    is_client_price: bool
    client_price_id: Optional[str] = None


class PriceCell(CamelModel):
    id: str
    rate: Rate
    vehicle_type: VehicleType
    price: Money
    formatted_price: str
    base_price: Money
    currency: str
    source: Literal["override", "base"]
    is_client_price: bool


class ClientPriceEntry(CamelModel):
    rate_ptr: str
    vehicle_ptr: str
    precio: Money = Field(..., ge=0)
    base_price: Optional[Money] = None


class ServiceClientPricesIn(CamelModel):
    client_id: str
    service_id: str
    prices: List[ClientPriceEntry]


class TourClientPricesIn(CamelModel):
    client_id: str
    tour_id: str
    prices: List[ClientPriceEntry]


class ClientPrice(CamelModel):
    id: str
    client_ref: str
    item_type: ItemType
    item_id: str
    rate_id: str
    vehicle_type_id: str
    price: Money
    base_price: Money
    currency: str
    active: bool
    valid_until: Optional[datetime] = None
    created_by: Optional[str] = None
    last_modified_by: Optional[str] = None
    created_at: datetime


class ClientPriceSaveResult(CamelModel):
    item_type: ItemType
    saved_count: int
    superseded_count: int
    prices: List[ClientPrice]


# Quotes


class Subconcept(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True, extra="allow"
    )

    type: str = Field(..., description="traslado, tour, experiencia...")
    item_id: Optional[str] = None
    rate_ref: Optional[str] = None
    vehicle_ref: Optional[str] = None
    number_of_people: Optional[int] = Field(None, ge=0)
    price: Optional[Money] = None
    base_price: Optional[Money] = None
    is_client_price: bool = False


class Day(CamelModel):
    day_number: int = Field(..., ge=1)
    day_title: Optional[str] = None
    day_date: Optional[date] = None
    subconcepts: List[Subconcept] = Field(default_factory=list)
    day_total: Money = Decimal("0")


class ServiceItems(CamelModel):
    days: List[Day] = Field(default_factory=list)
    subtotal: Money = Decimal("0")
    iva: Money = Decimal("0")
    total: Money = Decimal("0")

    @model_validator(mode="after")
    def check_day_numbers(self) -> "ServiceItems":
        numbers = [day.day_number for day in self.days]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError("dayNumber values must run 1..N in order")
        return self


class QuoteCreate(CamelModel):
    id: Optional[str] = None
    title: Optional[str] = None
    rate_id: Optional[str] = None
    client_ref: Optional[str] = None
    number_of_people: int = Field(0, ge=0)
    currency: str = Field(DEFAULT_CURRENCY, min_length=3, max_length=3)
    service_items: Optional[ServiceItems] = None


class Quote(TimestampMixin):
    id: str
    title: Optional[str] = None
    rate_id: Optional[str] = None
    rate_name: Optional[str] = None
    client_ref: Optional[str] = None
    number_of_people: int
    currency: str
    service_items: ServiceItems

    @field_validator("service_items", mode="before")
    @classmethod
    def default_service_items(cls, value):
        return value or {}


# Users


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None


class User(CamelModel):
    id: str
    email: EmailStr
    full_name: Optional[str] = None
    is_active: bool
