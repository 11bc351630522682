"""Client override and base price resolution, plus the override write protocol."""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import crud, models, schemas
from .constants import DEFAULT_CURRENCY, ITEM_TYPES, SUBCONCEPT_ITEM_TYPES
from .errors import Conflict, CurrencyMismatch, InvalidArgument, NoPrice
from .money import compute_totals, round_money

logger = logging.getLogger(__name__)


def _check_item_type(item_type: str) -> str:
    if item_type not in ITEM_TYPES:
        raise InvalidArgument(f"Unknown item type {item_type!r}", field="itemType")
    return item_type


def _override_key(
    client_ref: str, item_type: str, item_id: str, rate_id: str, vehicle_type_id: str
) -> list:
    return [
        models.ClientPrice.client_ref == client_ref,
        models.ClientPrice.item_type == item_type,
        models.ClientPrice.item_id == item_id,
        models.ClientPrice.rate_id == rate_id,
        models.ClientPrice.vehicle_type_id == vehicle_type_id,
        models.ClientPrice.exists.is_(True),
    ]


def find_overrides(
    session: Session,
    client_ref: str,
    item_type: str,
    item_id: str,
    rate_id: str,
    vehicle_type_id: str,
    as_of: Optional[datetime] = None,
) -> list[models.ClientPrice]:
    """Override rows in force at ``as_of``; ``None`` means the current row only."""

    statement = select(models.ClientPrice).where(
        *_override_key(client_ref, item_type, item_id, rate_id, vehicle_type_id),
        models.ClientPrice.active.is_(True),
    )
    if as_of is None:
        statement = statement.where(models.ClientPrice.valid_until.is_(None))
    else:
        statement = statement.where(
            models.ClientPrice.created_at <= as_of,
            or_(models.ClientPrice.valid_until.is_(None), models.ClientPrice.valid_until > as_of),
        )
    return list(session.scalars(statement).all())


def resolve_price(
    session: Session,
    item_type: str,
    item_id: str,
    rate_id: str,
    vehicle_type_id: str,
    client_ref: Optional[str] = None,
    as_of: Optional[datetime] = None,
    expected_currency: Optional[str] = None,
) -> schemas.ResolvedPrice:
    """Resolve a price for one (item, rate, vehicle) key.

    A client override wins whenever one is in force, even when it is cheaper
    than the base price. Otherwise the base RatePrice/TourPrice row applies.
    Nothing is invented: a miss on both layers raises :class:`NoPrice`.
    """

    _check_item_type(item_type)
    crud.validate_id(item_id, "itemId")
    crud.validate_id(rate_id, "rateId")
    crud.validate_id(vehicle_type_id, "vehicleTypeId")

    if client_ref:
        crud.validate_id(client_ref, "clientId")
        rows = find_overrides(session, client_ref, item_type, item_id, rate_id, vehicle_type_id, as_of)
        if len(rows) > 1:
            raise Conflict(
                f"{len(rows)} client prices are in force for the same key",
                client_ref=client_ref,
                item_id=item_id,
            )
        if rows:
            override = rows[0]
            if expected_currency and override.currency.upper() != expected_currency.upper():
                raise CurrencyMismatch(
                    f"Client price is in {override.currency}, quote expects {expected_currency}",
                    client_price_id=override.id,
                )
            return schemas.ResolvedPrice(
                price=override.price,
                base_price=override.base_price,
                currency=override.currency,
                source="override",
                is_client_price=True,
                client_price_id=override.id,
            )

    base = crud.get_base_price(session, item_type, item_id, rate_id, vehicle_type_id)
    if base is None:
        logger.info(
            "No price for %s %s (rate=%s, vehicle=%s, client=%s)",
            item_type,
            item_id,
            rate_id,
            vehicle_type_id,
            client_ref,
        )
        raise NoPrice(
            f"No price for {item_type} {item_id} with rate {rate_id} and vehicle {vehicle_type_id}",
            item_id=item_id,
        )
    currency = base.rate.currency if base.rate is not None else DEFAULT_CURRENCY
    return schemas.ResolvedPrice(
        price=base.price,
        base_price=base.price,
        currency=currency,
        source="base",
        is_client_price=False,
    )


def format_price(price: Any, currency: str) -> str:
    return f"${int(round_money(price).to_integral_value()):,} {currency}"


def _current_overrides_for_item(
    session: Session, client_ref: str, item_type: str, item_id: str
) -> list[models.ClientPrice]:
    statement = (
        select(models.ClientPrice)
        .where(
            models.ClientPrice.client_ref == client_ref,
            models.ClientPrice.item_type == item_type,
            models.ClientPrice.item_id == item_id,
            models.ClientPrice.exists.is_(True),
            models.ClientPrice.active.is_(True),
            models.ClientPrice.valid_until.is_(None),
        )
        .options(selectinload(models.ClientPrice.rate), selectinload(models.ClientPrice.vehicle_type))
        .order_by(models.ClientPrice.created_at)
    )
    return list(session.scalars(statement).all())


def build_price_matrix(
    session: Session, item_type: str, item_id: str, client_ref: Optional[str] = None
) -> list[dict[str, Any]]:
    """Every (rate, vehicle) cell priced for an item, with client overrides applied."""

    _check_item_type(item_type)
    crud.get_item(session, item_type, item_id)

    overrides: dict[tuple[str, str], models.ClientPrice] = {}
    if client_ref:
        crud.validate_id(client_ref, "clientId")
        for row in _current_overrides_for_item(session, client_ref, item_type, item_id):
            overrides[(row.rate_id, row.vehicle_type_id)] = row

    cells: list[dict[str, Any]] = []
    seen: set[tuple[str, str]] = set()
    for base in crud.list_base_prices(session, item_type, item_id):
        key = (base.rate_id, base.vehicle_type_id)
        seen.add(key)
        override = overrides.get(key)
        price = override.price if override is not None else base.price
        currency = override.currency if override is not None else base.rate.currency
        cells.append(
            {
                "id": base.id,
                "rate": base.rate,
                "vehicle_type": base.vehicle_type,
                "price": price,
                "formatted_price": format_price(price, currency),
                "base_price": base.price,
                "currency": currency,
                "source": "override" if override is not None else "base",
                "is_client_price": override is not None,
            }
        )

    for key, override in overrides.items():
        if key in seen:
            continue
        cells.append(
            {
                "id": f"client_{override.id}",
                "rate": override.rate,
                "vehicle_type": override.vehicle_type,
                "price": override.price,
                "formatted_price": format_price(override.price, override.currency),
                "base_price": Decimal("0"),
                "currency": override.currency,
                "source": "override",
                "is_client_price": True,
            }
        )
    return sorted(cells, key=lambda cell: (cell["rate"].name, cell["vehicle_type"].default_capacity))


def save_client_prices(
    session: Session,
    item_type: str,
    item_id: str,
    client_ref: str,
    prices: Sequence[schemas.ClientPriceEntry],
    acting_user: Optional[str] = None,
) -> dict[str, Any]:
    """Version client overrides: close each current row, then insert its successor.

    Runs inside the caller's transaction. Any failure leaves both the closed
    rows and the new rows unobservable once the caller rolls back.
    """

    _check_item_type(item_type)
    crud.validate_id(client_ref, "clientId")
    crud.get_item(session, item_type, item_id)

    keys: set[tuple[str, str]] = set()
    for entry in prices:
        crud.get_rate(session, entry.rate_ptr)
        crud.get_vehicle_type(session, entry.vehicle_ptr)
        key = (entry.rate_ptr, entry.vehicle_ptr)
        if key in keys:
            raise InvalidArgument(
                f"Duplicate price for rate {entry.rate_ptr} and vehicle {entry.vehicle_ptr}"
            )
        keys.add(key)

    now = models.utcnow()
    superseded = 0
    for entry in prices:
        statement = select(models.ClientPrice).where(
            *_override_key(client_ref, item_type, item_id, entry.rate_ptr, entry.vehicle_ptr),
            models.ClientPrice.valid_until.is_(None),
        )
        current = session.scalars(statement).all()
        if len(current) > 1:
            raise Conflict(
                "More than one current client price for the same key",
                client_ref=client_ref,
                item_id=item_id,
            )
        for row in current:
            row.valid_until = now
            row.last_modified_by = acting_user
            session.add(row)
            superseded += 1

    created: list[models.ClientPrice] = []
    try:
        session.flush()
        for entry in prices:
            row = models.ClientPrice(
                client_ref=client_ref,
                item_type=item_type,
                item_id=item_id,
                rate_id=entry.rate_ptr,
                vehicle_type_id=entry.vehicle_ptr,
                price=entry.precio,
                base_price=entry.base_price if entry.base_price is not None else Decimal("0"),
                currency=DEFAULT_CURRENCY,
                active=True,
                exists=True,
                created_by=acting_user,
                last_modified_by=acting_user,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            created.append(row)
        session.flush()
    except IntegrityError as exc:
        if "UNIQUE" in str(exc.orig).upper():
            raise Conflict("The store rejected a second current client price") from exc
        raise Conflict("The store rejected the client price batch") from exc

    logger.info(
        "Saved %d client prices for %s %s (client=%s, superseded=%d, by=%s)",
        len(created),
        item_type,
        item_id,
        client_ref,
        superseded,
        acting_user,
    )
    return {
        "item_type": item_type,
        "saved_count": len(created),
        "superseded_count": superseded,
        "prices": created,
    }


def _subconcept_item_type(subconcept: schemas.Subconcept) -> Optional[str]:
    return SUBCONCEPT_ITEM_TYPES.get((subconcept.type or "").strip().lower())


def pin_service_items(
    session: Session, quote: models.Quote, service_items: schemas.ServiceItems
) -> schemas.ServiceItems:
    """Fill unpriced subconcepts from the resolver and recompute the totals."""

    pinned = service_items.model_copy(deep=True)
    for day in pinned.days:
        for subconcept in day.subconcepts:
            if subconcept.price is not None:
                continue
            item_type = _subconcept_item_type(subconcept)
            rate_id = subconcept.rate_ref or quote.rate_id
            if not (item_type and subconcept.item_id and rate_id and subconcept.vehicle_ref):
                continue
            resolved = resolve_price(
                session,
                item_type,
                subconcept.item_id,
                rate_id,
                subconcept.vehicle_ref,
                client_ref=quote.client_ref,
                expected_currency=quote.currency,
            )
            subconcept.price = resolved.price
            subconcept.base_price = resolved.base_price
            subconcept.is_client_price = resolved.is_client_price

    totals = compute_totals(pinned.model_dump(mode="python")["days"])
    for day, day_total in zip(pinned.days, totals["day_totals"]):
        day.day_total = day_total
    pinned.subtotal = totals["subtotal"]
    pinned.iva = totals["iva"]
    pinned.total = totals["total"]
    return pinned
