"""
Tests for services.inventory_ledger: reservation and consumption of wood stock.
"""
import random
import uuid

import pytest
from sqlalchemy.orm import sessionmaker
from structlog.testing import capture_logs

from firewood_bank.config import settings
from firewood_bank.db import Base, make_engine
from firewood_bank.errors import InsufficientInventoryError, NoTrackedStockError
from firewood_bank.models.models import InventoryItem
from firewood_bank.services.inventory_ledger import (
    adjust_for_transition,
    reservation_delta,
    resolve_tracked_stock,
)

STATUSES = ["draft", "scheduled", "in_progress", "delivered", "issue", "completed", "cancelled"]


class TestReservationDelta:
    def test_entering_reserving_status_reserves(self):
        assert reservation_delta("draft", "scheduled", 4) == 4

    def test_leaving_reserving_status_releases(self):
        assert reservation_delta("in_progress", "delivered", 4) == -4

    def test_moving_between_reserving_statuses_is_neutral(self):
        assert reservation_delta("scheduled", "in_progress", 4) == 0

    def test_moving_between_non_reserving_statuses_is_neutral(self):
        assert reservation_delta("delivered", "issue", 4) == 0


class TestAdjustForTransition:
    def test_reserve_then_complete(self, db, make_stock):
        item = make_stock(on_hand=10)
        adjust_for_transition(db, "draft", "scheduled", 4, item.id)
        assert (item.quantity_on_hand, item.reserved_quantity) == (10, 4)

        adjust_for_transition(db, "scheduled", "completed", 4, item.id)
        assert (item.quantity_on_hand, item.reserved_quantity) == (6, 0)

    def test_cancel_releases_reservation(self, db, make_stock):
        item = make_stock(on_hand=5)
        adjust_for_transition(db, "draft", "scheduled", 3, item.id)
        adjust_for_transition(db, "scheduled", "cancelled", 3, item.id)
        assert (item.quantity_on_hand, item.reserved_quantity) == (5, 0)

    def test_complete_from_unreserved_status_consumes(self, db, make_stock):
        item = make_stock(on_hand=5)
        adjust_for_transition(db, "delivered", "completed", 2, item.id)
        assert (item.quantity_on_hand, item.reserved_quantity) == (3, 0)

    def test_same_status_is_noop(self, db, make_stock):
        item = make_stock(on_hand=5)
        assert adjust_for_transition(db, "scheduled", "scheduled", 2, item.id) is None
        assert item.reserved_quantity == 0

    @pytest.mark.parametrize("quantity", [None, 0, -1])
    def test_non_positive_quantity_is_noop(self, db, make_stock, quantity):
        item = make_stock(on_hand=5)
        assert adjust_for_transition(db, "draft", "scheduled", quantity, item.id) is None
        assert item.reserved_quantity == 0

    def test_insufficient_stock_rejected_without_mutation(self, db, make_stock):
        item = make_stock(on_hand=3)
        with capture_logs() as logs:
            with pytest.raises(InsufficientInventoryError) as exc:
                adjust_for_transition(db, "draft", "scheduled", 5, item.id)
        assert exc.value.requested == 5
        assert exc.value.available == 3
        assert (item.quantity_on_hand, item.reserved_quantity) == (3, 0)
        assert any(log["event"] == "inventory_rejected" for log in logs)

    def test_other_reservations_reduce_availability(self, db, make_stock):
        item = make_stock(on_hand=5, reserved=4)
        with pytest.raises(InsufficientInventoryError):
            adjust_for_transition(db, "draft", "scheduled", 2, item.id)

    def test_exact_fit_is_allowed(self, db, make_stock):
        item = make_stock(on_hand=5, reserved=3)
        adjust_for_transition(db, "draft", "scheduled", 2, item.id)
        assert item.reserved_quantity == 5

    def test_fractional_cords(self, db, make_stock):
        item = make_stock(on_hand=1)
        for _ in range(3):
            adjust_for_transition(db, "draft", "scheduled", 0.33, item.id)
        assert item.reserved_quantity == pytest.approx(0.99)

    def test_missing_item_raises(self, db):
        with pytest.raises(NoTrackedStockError):
            adjust_for_transition(db, "draft", "scheduled", 1, uuid.uuid4())

    def test_invariant_holds_over_random_walk(self, db, make_stock):
        """Clamping never triggers: every accepted transition keeps 0 <= reserved <= on_hand."""
        item = make_stock(on_hand=20)
        rng = random.Random(7)
        orders = [{"status": "draft", "qty": rng.choice([0.5, 1, 2, 3, 5])} for _ in range(12)]

        with capture_logs() as logs:
            for _ in range(300):
                order = rng.choice(orders)
                if order["status"] in ("completed", "cancelled"):
                    continue
                target = rng.choice(STATUSES)
                try:
                    adjust_for_transition(db, order["status"], target, order["qty"], item.id)
                except InsufficientInventoryError:
                    continue
                order["status"] = target
                assert -1e-9 <= item.reserved_quantity <= item.quantity_on_hand + 1e-9

        assert not any(log["event"] == "inventory_invariant_breach" for log in logs)


class TestResolveTrackedStock:
    def test_matches_by_unit_or_name(self, db, make_stock):
        make_stock(name="Kindling bags", unit="bags", category="Supplies")
        wood = make_stock(name="Split Firewood", unit="cords")
        assert resolve_tracked_stock(db).id == wood.id

    def test_deleted_items_are_skipped(self, db, make_stock):
        make_stock(name="Old Firewood", is_deleted=True)
        with pytest.raises(NoTrackedStockError):
            resolve_tracked_stock(db)

    def test_configured_item_wins(self, db, make_stock, monkeypatch):
        make_stock(name="Split Firewood")
        rounds = make_stock(name="Unsplit Rounds")
        monkeypatch.setattr(settings, "tracked_stock_item_id", str(rounds.id))
        assert resolve_tracked_stock(db).id == rounds.id

    def test_invalid_configured_id(self, db, monkeypatch):
        monkeypatch.setattr(settings, "tracked_stock_item_id", "not-a-uuid")
        with pytest.raises(NoTrackedStockError, match="not a valid id"):
            resolve_tracked_stock(db)


class TestConcurrentReservations:
    def test_stale_session_rereads_stock(self, tmp_path):
        engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
        with factory() as setup:
            item = InventoryItem(name="Split Firewood", unit="cords", quantity_on_hand=10, reserved_quantity=0)
            setup.add(item)
            setup.commit()
            item_id = item.id

        first = factory(expire_on_commit=False)
        second = factory()
        try:
            cached = first.get(InventoryItem, item_id)
            first.commit()
            assert cached.reserved_quantity == 0

            adjust_for_transition(second, "draft", "scheduled", 8, item_id)
            second.commit()

            with pytest.raises(InsufficientInventoryError) as exc:
                adjust_for_transition(first, "draft", "scheduled", 5, item_id)
            assert exc.value.available == 2
            assert cached.reserved_quantity == 8
            first.rollback()
        finally:
            first.close()
            second.close()
            engine.dispose()

        with factory() as check:
            stored = check.get(InventoryItem, item_id)
            assert (stored.quantity_on_hand, stored.reserved_quantity) == (10, 8)
