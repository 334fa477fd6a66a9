import uuid

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from firewood_bank.db import Base, make_engine
from firewood_bank.models import models  # noqa: F401
from firewood_bank.models.models import Client, InventoryItem, User
from firewood_bank.services.permissions import ActorContext


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_client(db):
    def _make_client(**overrides) -> Client:
        defaults = dict(
            id=uuid.uuid4(),
            name="Ada Lovelace",
            physical_address_line1="12 Pine Rd",
            physical_address_city="Flagstaff",
            physical_address_state="AZ",
            physical_address_postal_code="86001",
            mailing_address_line1="PO Box 7",
            mailing_address_city="Flagstaff",
            mailing_address_state="AZ",
            mailing_address_postal_code="86002",
            telephone="555-0100",
            email="ada@example.org",
            directions="Left at the red barn",
            gate_combo="1234",
            notes="Dog in yard",
            approval_status="approved",
        )
        defaults.update(overrides)
        client = Client(**defaults)
        db.add(client)
        db.commit()
        return client
    return _make_client


@pytest.fixture
def make_stock(db):
    def _make_stock(on_hand: float = 10, reserved: float = 0, **overrides) -> InventoryItem:
        defaults = dict(
            id=uuid.uuid4(),
            name="Split Firewood",
            category="Wood",
            unit="cords",
            quantity_on_hand=on_hand,
            reserved_quantity=reserved,
            reorder_threshold=1,
        )
        defaults.update(overrides)
        item = InventoryItem(**defaults)
        db.add(item)
        db.commit()
        return item
    return _make_stock


@pytest.fixture
def make_user(db):
    def _make_user(username: str = "sam", role: str = "staff", **overrides) -> User:
        defaults = dict(id=uuid.uuid4(), name=username.title(), username=username, role=role)
        defaults.update(overrides)
        user = User(**defaults)
        db.add(user)
        db.commit()
        return user
    return _make_user


def _actor(role: str = "admin", username: str = None, **overrides) -> ActorContext:
    return ActorContext(username=username or f"{role}-user", role=role, **overrides)


@pytest.fixture
def make_actor():
    return _actor


@pytest.fixture
def admin():
    return _actor("admin")


@pytest.fixture
def staff():
    return _actor("staff")


@pytest.fixture
def lead():
    return _actor("lead")
