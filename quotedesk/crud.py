"""CRUD helper functions used by the API routers."""
from __future__ import annotations

import re
from datetime import date
from typing import Any, Optional

from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .availability import filter_by_day, normalize_availability
from .constants import DEFAULT_EXPERIENCE_LENGTH, DEFAULT_RATE_COLOR, ITEM_TYPE_SERVICES, ITEM_TYPE_TOUR
from .errors import Conflict, InvalidArgument, NotFound

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def validate_id(value: Any, label: str = "id") -> str:
    if not isinstance(value, str) or not _ID_RE.match(value):
        raise InvalidArgument(f"Malformed {label}: {value!r}", field=label)
    return value


def _alive(model, *, include_inactive: bool = False) -> list:
    clauses = [model.exists.is_(True)]
    if not include_inactive:
        clauses.append(model.active.is_(True))
    return clauses


def _get_alive(session: Session, model, item_id: str, label: str, include_deleted: bool = False):
    validate_id(item_id, label)
    instance = session.get(model, item_id)
    if instance is None or (instance.is_tombstoned and not include_deleted):
        raise NotFound(f"{model.__name__} {item_id} not found", id=item_id)
    return instance


def _availability_payload(schedules: Optional[list[schemas.DaySchedule]]) -> Optional[list[dict]]:
    if schedules is None:
        return None
    return normalize_availability([schedule.model_dump(by_alias=True) for schedule in schedules])


def _optional_id(value: Optional[str], label: str) -> dict[str, str]:
    return {"id": validate_id(value, label)} if value is not None else {}


# Points of interest


def create_poi(session: Session, poi_in: schemas.POICreate) -> models.POI:
    poi = models.POI(name=poi_in.name, service_type=poi_in.service_type, **_optional_id(poi_in.id, "poiId"))
    session.add(poi)
    session.flush()
    return poi


def get_poi(session: Session, poi_id: str) -> models.POI:
    return _get_alive(session, models.POI, poi_id, "poiId")


# Rates


def create_rate(session: Session, rate_in: schemas.RateCreate) -> models.Rate:
    name = rate_in.name.strip()
    duplicate = session.scalar(
        select(models.Rate).where(
            func.lower(models.Rate.name) == name.lower(), models.Rate.exists.is_(True)
        )
    )
    if duplicate:
        raise Conflict(f"A rate named {name!r} already exists", id=duplicate.id)
    rate = models.Rate(
        name=name,
        color=rate_in.color or DEFAULT_RATE_COLOR,
        currency=rate_in.currency.upper(),
        active=rate_in.active,
        **_optional_id(rate_in.id, "rateId"),
    )
    session.add(rate)
    session.flush()
    return rate


def get_rate(session: Session, rate_id: str) -> models.Rate:
    return _get_alive(session, models.Rate, rate_id, "rateId")


def list_rates(session: Session) -> list[models.Rate]:
    statement = select(models.Rate).where(*_alive(models.Rate)).order_by(models.Rate.name)
    return list(session.scalars(statement).all())


# Vehicle types


def create_vehicle_type(session: Session, vehicle_in: schemas.VehicleTypeCreate) -> models.VehicleType:
    if vehicle_in.default_capacity < 1 or vehicle_in.trunk_capacity < 0:
        raise InvalidArgument("Vehicle capacities must be positive")
    code = vehicle_in.code.strip()
    duplicate = session.scalar(
        select(models.VehicleType).where(
            func.lower(models.VehicleType.code) == code.lower(),
            models.VehicleType.exists.is_(True),
        )
    )
    if duplicate:
        raise Conflict(f"Vehicle code {code!r} is already in use", id=duplicate.id)
    vehicle = models.VehicleType(
        code=code,
        name=vehicle_in.name,
        default_capacity=vehicle_in.default_capacity,
        trunk_capacity=vehicle_in.trunk_capacity,
        active=vehicle_in.active,
        **_optional_id(vehicle_in.id, "vehicleTypeId"),
    )
    session.add(vehicle)
    session.flush()
    return vehicle


def get_vehicle_type(session: Session, vehicle_type_id: str) -> models.VehicleType:
    return _get_alive(session, models.VehicleType, vehicle_type_id, "vehicleTypeId")


def _check_capacity(number_of_people: Optional[int]) -> int:
    if number_of_people is None:
        return 0
    if isinstance(number_of_people, bool) or not isinstance(number_of_people, int) or number_of_people < 0:
        raise InvalidArgument("numberOfPeople must be a non-negative integer", field="numberOfPeople")
    return number_of_people


# Services


def create_service(session: Session, service_in: schemas.ServiceCreate) -> models.Service:
    destination = get_poi(session, service_in.destination_poi_id)
    origin = get_poi(session, service_in.origin_poi_id) if service_in.origin_poi_id else None

    if service_in.active:
        origin_clause = (
            models.Service.origin_poi_id.is_(None)
            if origin is None
            else models.Service.origin_poi_id == origin.id
        )
        duplicate = session.scalar(
            select(models.Service).where(
                origin_clause,
                models.Service.destination_poi_id == destination.id,
                *_alive(models.Service),
            )
        )
        if duplicate:
            raise Conflict("An active service already covers this route", id=duplicate.id)

    service = models.Service(
        origin_poi=origin,
        destination_poi=destination,
        note=service_in.note,
        availability=_availability_payload(service_in.availability),
        active=service_in.active,
        **_optional_id(service_in.id, "serviceId"),
    )
    session.add(service)
    session.flush()
    return service


def get_service(session: Session, service_id: str, include_deleted: bool = False) -> models.Service:
    return _get_alive(session, models.Service, service_id, "serviceId", include_deleted)


def list_services_by_rate(
    session: Session, rate_id: str, number_of_people: Optional[int] = None
) -> list[dict[str, Any]]:
    """Services priced under ``rate_id`` with the vehicles able to carry the party."""

    get_rate(session, rate_id)
    people = _check_capacity(number_of_people)
    statement = (
        select(models.RatePrice)
        .join(models.RatePrice.service)
        .join(models.RatePrice.vehicle_type)
        .where(
            models.RatePrice.rate_id == rate_id,
            *_alive(models.RatePrice),
            *_alive(models.Service),
            *_alive(models.VehicleType),
            models.VehicleType.default_capacity >= people,
        )
        .options(selectinload(models.RatePrice.service), selectinload(models.RatePrice.vehicle_type))
        .order_by(models.RatePrice.service_id, models.VehicleType.default_capacity, models.VehicleType.code)
    )
    grouped: dict[str, dict[str, Any]] = {}
    for row in session.scalars(statement).all():
        entry = grouped.setdefault(row.service_id, {"service": row.service, "admissible_vehicles": []})
        entry["admissible_vehicles"].append({"vehicle_type": row.vehicle_type, "price": row.price})
    return list(grouped.values())


def set_service_status(session: Session, service_id: str, active: bool) -> models.Service:
    if not isinstance(active, bool):
        raise InvalidArgument("active must be a boolean", field="active")
    service = get_service(session, service_id)
    service.active = active
    session.add(service)
    session.flush()
    return service


def delete_service(session: Session, service_id: str, deleted_by: Optional[str] = None) -> models.Service:
    service = get_service(session, service_id)
    service.tombstone(deleted_by)
    session.add(service)
    session.flush()
    return service


# Tours


def create_tour(session: Session, tour_in: schemas.TourCreate) -> models.Tour:
    if tour_in.duration_minutes <= 0:
        raise InvalidArgument("Tour duration must be positive", field="duration")
    destination = get_poi(session, tour_in.destination_poi_id)
    tour = models.Tour(
        destination_poi=destination,
        duration_minutes=tour_in.duration_minutes,
        availability=_availability_payload(tour_in.availability),
        active=tour_in.active,
        **_optional_id(tour_in.id, "tourId"),
    )
    session.add(tour)
    session.flush()
    return tour


def get_tour(session: Session, tour_id: str, include_deleted: bool = False) -> models.Tour:
    return _get_alive(session, models.Tour, tour_id, "tourId", include_deleted)


def _priced_tours(session: Session, rate_id: str, destination_id: Optional[str] = None):
    statement = (
        select(models.TourPrice)
        .join(models.TourPrice.tour)
        .join(models.TourPrice.vehicle_type)
        .where(
            models.TourPrice.rate_id == rate_id,
            *_alive(models.TourPrice),
            *_alive(models.Tour),
            *_alive(models.VehicleType),
        )
        .options(selectinload(models.TourPrice.tour), selectinload(models.TourPrice.vehicle_type))
    )
    if destination_id is not None:
        statement = statement.where(models.Tour.destination_poi_id == destination_id)
    return statement


def list_tour_destinations(session: Session, rate_id: str, day_date: Optional[date] = None) -> list[models.POI]:
    get_rate(session, rate_id)
    rows = session.scalars(_priced_tours(session, rate_id)).all()
    tours = {row.tour_id: row.tour for row in rows}
    destinations: dict[str, models.POI] = {}
    for tour in filter_by_day(tours.values(), day_date):
        poi = tour.destination_poi
        if poi is not None and poi.exists and poi.active:
            destinations[poi.id] = poi
    return sorted(destinations.values(), key=lambda poi: poi.name)


def list_tour_vehicles(
    session: Session,
    rate_id: str,
    destination_id: str,
    number_of_people: Optional[int] = None,
    day_date: Optional[date] = None,
) -> list[dict[str, Any]]:
    get_rate(session, rate_id)
    get_poi(session, destination_id)
    people = _check_capacity(number_of_people)
    statement = (
        _priced_tours(session, rate_id, destination_id)
        .where(models.VehicleType.default_capacity >= people)
        .order_by(models.TourPrice.tour_id, models.VehicleType.default_capacity, models.VehicleType.code)
    )
    rows = session.scalars(statement).all()
    available = {tour.id for tour in filter_by_day({row.tour_id: row.tour for row in rows}.values(), day_date)}
    return [
        {"tour": row.tour, "vehicle_type": row.vehicle_type, "base_price": row.price}
        for row in rows
        if row.tour_id in available
    ]


def set_tour_status(session: Session, tour_id: str, active: bool) -> models.Tour:
    if not isinstance(active, bool):
        raise InvalidArgument("active must be a boolean", field="active")
    tour = get_tour(session, tour_id)
    tour.active = active
    session.add(tour)
    session.flush()
    return tour


def delete_tour(session: Session, tour_id: str, deleted_by: Optional[str] = None) -> models.Tour:
    tour = get_tour(session, tour_id)
    tour.tombstone(deleted_by)
    session.add(tour)
    session.flush()
    return tour


# Experiences


def create_experience(session: Session, experience_in: schemas.ExperienceCreate) -> models.Experience:
    experience = models.Experience(
        name=experience_in.name,
        experience_type=experience_in.experience_type,
        description=experience_in.description,
        duration_minutes=experience_in.duration_minutes,
        availability=_availability_payload(experience_in.availability),
        active=experience_in.active,
        **_optional_id(experience_in.id, "experienceId"),
    )
    session.add(experience)
    session.flush()
    return experience


def list_experiences(
    session: Session,
    experience_type: Optional[str] = None,
    day_date: Optional[date] = None,
    length: int = DEFAULT_EXPERIENCE_LENGTH,
) -> list[models.Experience]:
    if length < 1:
        raise InvalidArgument("length must be positive", field="length")
    statement = select(models.Experience).where(*_alive(models.Experience)).order_by(models.Experience.name)
    if experience_type:
        statement = statement.where(models.Experience.experience_type == experience_type)
    experiences = filter_by_day(session.scalars(statement).all(), day_date)
    return experiences[:length]


# Base prices


def _base_price_model(item_type: str):
    if item_type == ITEM_TYPE_SERVICES:
        return models.RatePrice, models.RatePrice.service_id
    if item_type == ITEM_TYPE_TOUR:
        return models.TourPrice, models.TourPrice.tour_id
    raise InvalidArgument(f"Unknown item type {item_type!r}", field="itemType")


def get_item(session: Session, item_type: str, item_id: str):
    if item_type == ITEM_TYPE_SERVICES:
        return get_service(session, item_id)
    if item_type == ITEM_TYPE_TOUR:
        return get_tour(session, item_id)
    raise InvalidArgument(f"Unknown item type {item_type!r}", field="itemType")


def _ensure_unique_price_key(session: Session, model, item_column, item_id: str, rate_id: str, vehicle_type_id: str) -> None:
    duplicate = session.scalar(
        select(model).where(
            item_column == item_id,
            model.rate_id == rate_id,
            model.vehicle_type_id == vehicle_type_id,
            *_alive(model),
        )
    )
    if duplicate:
        raise Conflict("An active base price already exists for this key", id=duplicate.id)


def create_rate_price(session: Session, price_in: schemas.RatePriceCreate) -> models.RatePrice:
    service = get_service(session, price_in.service_id)
    rate = get_rate(session, price_in.rate_id)
    vehicle = get_vehicle_type(session, price_in.vehicle_type_id)
    _ensure_unique_price_key(
        session, models.RatePrice, models.RatePrice.service_id, service.id, rate.id, vehicle.id
    )
    row = models.RatePrice(service=service, rate=rate, vehicle_type=vehicle, price=price_in.price)
    session.add(row)
    session.flush()
    return row


def create_tour_price(session: Session, price_in: schemas.TourPriceCreate) -> models.TourPrice:
    tour = get_tour(session, price_in.tour_id)
    rate = get_rate(session, price_in.rate_id)
    vehicle = get_vehicle_type(session, price_in.vehicle_type_id)
    _ensure_unique_price_key(session, models.TourPrice, models.TourPrice.tour_id, tour.id, rate.id, vehicle.id)
    row = models.TourPrice(tour=tour, rate=rate, vehicle_type=vehicle, price=price_in.price)
    session.add(row)
    session.flush()
    return row


def get_base_price(session: Session, item_type: str, item_id: str, rate_id: str, vehicle_type_id: str):
    model, item_column = _base_price_model(item_type)
    statement = select(model).where(
        item_column == item_id,
        model.rate_id == rate_id,
        model.vehicle_type_id == vehicle_type_id,
        *_alive(model),
    )
    return session.scalars(statement).first()


def list_base_prices(session: Session, item_type: str, item_id: str) -> list:
    model, item_column = _base_price_model(item_type)
    statement = (
        select(model)
        .where(item_column == item_id, *_alive(model))
        .options(selectinload(model.rate), selectinload(model.vehicle_type))
    )
    return list(session.scalars(statement).all())


# Quotes


def create_quote(session: Session, quote_in: schemas.QuoteCreate) -> models.Quote:
    if quote_in.rate_id:
        get_rate(session, quote_in.rate_id)
    service_items = quote_in.service_items.model_dump(mode="json", by_alias=True) if quote_in.service_items else {}
    quote = models.Quote(
        title=quote_in.title,
        rate_id=quote_in.rate_id,
        client_ref=quote_in.client_ref,
        number_of_people=quote_in.number_of_people,
        currency=quote_in.currency.upper(),
        service_items=service_items,
        **_optional_id(quote_in.id, "quoteId"),
    )
    session.add(quote)
    session.flush()
    return quote


def get_quote(session: Session, quote_id: str) -> models.Quote:
    validate_id(quote_id, "quoteId")
    quote = session.get(models.Quote, quote_id)
    if quote is None:
        raise NotFound(f"Quote {quote_id} not found", id=quote_id)
    return quote


def update_service_items(session: Session, quote: models.Quote, service_items: schemas.ServiceItems) -> models.Quote:
    quote.service_items = service_items.model_dump(mode="json", by_alias=True)
    session.add(quote)
    session.flush()
    return quote


# Users


def create_user(session: Session, user_in: schemas.UserCreate) -> models.User:
    if get_user_by_email(session, user_in.email):
        raise Conflict(f"User {user_in.email} already exists")
    user = models.User(
        email=user_in.email,
        full_name=user_in.full_name,
        hashed_password=hash_password(user_in.password),
    )
    session.add(user)
    session.flush()
    return user


def get_user_by_email(session: Session, email: str) -> models.User | None:
    statement = select(models.User).where(func.lower(models.User.email) == email.lower())
    return session.scalars(statement).first()
