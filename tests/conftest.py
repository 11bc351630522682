from __future__ import annotations

import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from quotedesk import crud, schemas  # noqa: E402
from quotedesk.database import Base, init_db  # noqa: E402
from quotedesk.main import app, get_db  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

STAFF_EMAIL = "staff@quotedesk.example"
MONDAY = "2026-10-19"
TUESDAY = "2026-10-20"
SATURDAY = "2026-10-24"
SUNDAY = "2026-10-25"


def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    init_db(engine)


def override_get_db() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


def seed_catalog(session: Session) -> None:
    """Two rates, three vehicles, two transfer routes, two tours and a few experiences."""

    for poi_id, name, service_type in (
        ("P-CUN", "Cancun Airport", "Aeropuerto"),
        ("P-HOTEL", "Hotel Zone", "Punto a Punto"),
        ("P-TULUM", "Tulum", "Ciudad"),
        ("P-CHICHEN", "Chichen Itza", "Ciudad"),
    ):
        crud.create_poi(session, schemas.POICreate(id=poi_id, name=name, service_type=service_type))

    crud.create_rate(session, schemas.RateCreate(id="R-Premium", name="Premium", color="#1F3A93"))
    crud.create_rate(session, schemas.RateCreate(id="R-Green", name="Green"))

    for vehicle_id, code, capacity in (("V-Sedan", "SED", 4), ("V-Van", "VAN", 10), ("V-SprinterXL", "SPX", 18)):
        crud.create_vehicle_type(
            session,
            schemas.VehicleTypeCreate(id=vehicle_id, code=code, name=code.title(), default_capacity=capacity),
        )

    crud.create_service(session, schemas.ServiceCreate(id="S42", origin_poi_id="P-CUN", destination_poi_id="P-HOTEL"))
    crud.create_service(session, schemas.ServiceCreate(id="S77", origin_poi_id="P-HOTEL", destination_poi_id="P-TULUM"))
    for service_id, rate_id, vehicle_id, price in (
        ("S42", "R-Premium", "V-Sedan", "2000"),
        ("S42", "R-Premium", "V-Van", "3200"),
        ("S77", "R-Green", "V-Sedan", "1500"),
    ):
        crud.create_rate_price(
            session,
            schemas.RatePriceCreate(
                service_id=service_id, rate_id=rate_id, vehicle_type_id=vehicle_id, price=Decimal(price)
            ),
        )

    crud.create_tour(
        session,
        schemas.TourCreate(
            id="T1",
            destination_poi_id="P-TULUM",
            duration_minutes=480,
            availability=[
                schemas.DaySchedule(day=3, start_time="08:00", end_time="16:00"),
                schemas.DaySchedule(day=1, start_time="08:00", end_time="16:00"),
            ],
        ),
    )
    crud.create_tour(
        session,
        schemas.TourCreate(
            id="T2",
            destination_poi_id="P-CHICHEN",
            duration_minutes=600,
            availability=[schemas.DaySchedule(day=6)],
        ),
    )
    for tour_id, vehicle_id, price in (("T1", "V-Sedan", "1800"), ("T1", "V-Van", "2600"), ("T2", "V-Van", "3000")):
        crud.create_tour_price(
            session,
            schemas.TourPriceCreate(tour_id=tour_id, rate_id="R-Premium", vehicle_type_id=vehicle_id, price=Decimal(price)),
        )

    crud.create_experience(
        session,
        schemas.ExperienceCreate(id="E1", name="Snorkel", availability=[schemas.DaySchedule(day=2)]),
    )
    crud.create_experience(session, schemas.ExperienceCreate(id="E2", name="Spa"))
    crud.create_experience(session, schemas.ExperienceCreate(id="E3", name="Dive Shop", experience_type="Provider"))

    crud.create_user(
        session,
        schemas.UserCreate(email=STAFF_EMAIL, password="Quotedesk#2026", full_name="Front Desk"),
    )


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    reset_database()
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_session(db_session: Session) -> Session:
    seed_catalog(db_session)
    db_session.commit()
    return db_session


@pytest.fixture
def api_client(seeded_session: Session) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def staff_headers() -> dict[str, str]:
    return {"X-User-Email": STAFF_EMAIL}
