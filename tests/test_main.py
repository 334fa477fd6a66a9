"""
Tests for main.init_db: schema creation and wood stock seeding.
"""
from sqlalchemy import inspect
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from firewood_bank.db import make_engine
from firewood_bank.main import init_db
from firewood_bank.models.models import InventoryItem


class TestInitDb:
    def test_creates_tables_and_seeds(self):
        engine = make_engine("sqlite://", poolclass=StaticPool)
        factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

        init_db(bind=engine, session_factory=factory, seed=True)
        init_db(bind=engine, session_factory=factory, seed=True)

        assert {"work_orders", "inventory_items", "audit_logs"} <= set(inspect(engine).get_table_names())
        db = factory()
        try:
            assert sorted(i.name for i in db.query(InventoryItem).all()) == ["Split Firewood", "Unsplit Rounds"]
        finally:
            db.close()
        engine.dispose()
