"""Shared test fixtures.

Service tests run against in-memory SQLite. The pysqlite driver's own
transaction handling breaks SAVEPOINT, so the engine emits BEGIN itself.
"""
import os
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

os.environ.setdefault("APP_ENV", "test")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from prflow.core.security import hash_password
from prflow.db.base import Base
from prflow.models import ApprovalMatrix, User
from prflow.schemas.purchase_request import LineItemIn, PurchaseRequestCreate
from prflow.services import purchase_request as purchase_request_svc
from prflow.services.escalation import EscalationPolicy

# Monday 2026-10-19 10:00 Asia/Kolkata
MONDAY_10_IST = datetime(2026, 10, 19, 4, 30, tzinfo=timezone.utc)

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


# ─── Database ─────────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


# ─── Clock and policy ─────────────────────────────────────────────────────────

class FakeClock:
    """Callable clock that tests move forward explicitly."""

    def __init__(self, start: datetime = MONDAY_10_IST):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy():
    return EscalationPolicy(
        level1_hours=12,
        level2_hours=12,
        level3_timeout_hours=24,
        exclude_sundays=True,
        timezone="Asia/Kolkata",
    )


# ─── Organisation ─────────────────────────────────────────────────────────────

def make_user(db, emp_code, name, role="approver", manager_name=None, manager_email=None, **extra):
    user = User(
        emp_code=emp_code,
        name=name,
        email=f"{emp_code.lower()}@example.com",
        password_hash=PASSWORD_HASH,
        role=role,
        department="Operations",
        location="Chennai",
        entity="ACME",
        manager_name=manager_name,
        manager_email=manager_email,
        is_active=True,
        **extra,
    )
    db.add(user)
    return user


def make_matrix(db, emp_code, approver_1="A1", approver_2="A2", approver_3a="A3A", approver_3b="A3B"):
    matrix = ApprovalMatrix(emp_code=emp_code, department="Operations", site="Chennai")
    for slot, code in (
        ("approver_1", approver_1),
        ("approver_2", approver_2),
        ("approver_3a", approver_3a),
        ("approver_3b", approver_3b),
    ):
        if code:
            setattr(matrix, f"{slot}_emp_code", code)
            setattr(matrix, f"{slot}_name", f"Approver {code}")
            setattr(matrix, f"{slot}_email", f"{code.lower()}@example.com")
    db.add(matrix)
    return matrix


@pytest.fixture
def org(db):
    """Requester R1 with a full chain; A1 and A2 have managers M1 and M2."""
    users = {
        "R1": make_user(db, "R1", "Riya Requester", role="requester"),
        "A1": make_user(db, "A1", "Arun Approver", manager_name="Meera Manager"),
        "A2": make_user(db, "A2", "Bala Approver", manager_name="Kiran Manager"),
        "A3A": make_user(db, "A3A", "Chitra Finance"),
        "A3B": make_user(db, "A3B", "Dev Finance"),
        "M1": make_user(db, "M1", "Meera Manager"),
        "M2": make_user(db, "M2", "Kiran Manager"),
        "X1": make_user(db, "X1", "Outsider"),
        "ADMIN": make_user(db, "ADMIN", "Admin User", role="admin"),
    }
    make_matrix(db, "R1")
    db.commit()
    return users


def pr_payload(**overrides) -> PurchaseRequestCreate:
    data = {
        "title": "Laptops for new joiners",
        "request_date": date(2026, 10, 19),
        "business_justification_code": "CAPEX",
        "business_justification_details": "Three engineers join in November.",
        "line_items": [
            LineItemIn(
                product_name="Laptop",
                required_quantity=Decimal("3"),
                unit_of_measure="EA",
                estimated_cost=Decimal("2400.00"),
            ),
            LineItemIn(
                product_name="Docking station",
                required_quantity=Decimal("3"),
                unit_of_measure="EA",
                estimated_cost=Decimal("450.00"),
            ),
        ],
    }
    data.update(overrides)
    return PurchaseRequestCreate(**data)


@pytest.fixture
def submit(db, org, clock):
    """Submit a purchase request as R1 (or another requester) at the clock's time."""
    def _submit(requester: str = "R1", **overrides):
        return purchase_request_svc.create_purchase_request(
            db, org[requester], pr_payload(**overrides), now=clock()
        )
    return _submit
