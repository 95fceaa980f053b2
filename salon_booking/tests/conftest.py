from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from salon_booking import config
from salon_booking.database import Base, get_db
from salon_booking.domain.scheduling.router import get_now
from salon_booking.main import app
from salon_booking.models import (
    Customer,
    OpeningHours,
    Salon,
    Service,
    Staff,
    StaffServiceSkill,
    StaffWorkingHours,
)

# Monday; day_of_week == 1
MONDAY = date(2030, 3, 4)
# The Friday before, 08:00 salon time
NOW = datetime(2030, 3, 1, 8, 0)

ADMIN_TOKEN = "test-admin-token"
CRON_SECRET = "test-cron-secret"


@dataclass
class SeededSalon:
    salon: Salon
    haircut: Service
    color: Service
    anna: Staff
    ben: Staff
    customer: Customer


@pytest.fixture
def session_factory() -> Iterator[sessionmaker]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def add_working_hours(db: Session, staff: Staff, day_of_week: int, start: int, end: int, **kwargs) -> StaffWorkingHours:
    row = StaffWorkingHours(
        staff_id=staff.id,
        day_of_week=day_of_week,
        start_time_minutes=start,
        end_time_minutes=end,
        **kwargs,
    )
    db.add(row)
    db.commit()
    return row


def seed_salon(db: Session) -> SeededSalon:
    """Salon open Mon-Sat 08:00-20:00; Anna and Ben both work Monday 09:00-17:00.

    Anna has lunch 12:00-13:00 and does coloring in 20 instead of 30 minutes.
    Ben only cuts hair.
    """
    salon = Salon(name="Salon Test", slug="salon-test")
    db.add(salon)
    db.flush()

    for day in range(1, 7):
        db.add(OpeningHours(salon_id=salon.id, day_of_week=day, open_time_minutes=480, close_time_minutes=1200))

    haircut = Service(
        salon_id=salon.id,
        name="Haircut",
        duration_minutes=60,
        price_chf=Decimal("80.00"),
        tax_rate_percent=Decimal("8.1"),
        display_order=1,
    )
    color = Service(
        salon_id=salon.id,
        name="Color",
        duration_minutes=30,
        price_chf=Decimal("45.00"),
        display_order=2,
    )
    anna = Staff(salon_id=salon.id, display_name="Anna", display_order=1)
    ben = Staff(salon_id=salon.id, display_name="Ben", display_order=2)
    customer = Customer(salon_id=salon.id, first_name="Mia", last_name="Muster", email="mia@example.com")
    db.add_all([haircut, color, anna, ben, customer])
    db.flush()

    db.add_all(
        [
            StaffServiceSkill(staff_id=anna.id, service_id=haircut.id),
            StaffServiceSkill(staff_id=anna.id, service_id=color.id, custom_duration_minutes=20),
            StaffServiceSkill(staff_id=ben.id, service_id=haircut.id),
        ]
    )
    db.commit()

    add_working_hours(db, anna, 1, 540, 1020, break_start_minutes=720, break_end_minutes=780)
    add_working_hours(db, ben, 1, 540, 1020)
    return SeededSalon(salon=salon, haircut=haircut, color=color, anna=anna, ben=ben, customer=customer)


@pytest.fixture
def seeded(db: Session) -> SeededSalon:
    return seed_salon(db)


@pytest.fixture
def client(session_factory: sessionmaker, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    monkeypatch.setattr(config, "ADMIN_API_TOKEN", ADMIN_TOKEN)
    monkeypatch.setattr(config, "CRON_SECRET", CRON_SECRET)

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: NOW
    # Not used as a context manager: tables come from session_factory, not the lifespan hook
    yield TestClient(app)
    app.dependency_overrides.clear()


def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


def cron_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}
