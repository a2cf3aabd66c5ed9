"""
Tests for the stock ledger: signed movements, replay and availability.
"""

from datetime import date
from decimal import Decimal

import pytest

from garage_books.errors import InsufficientStockError, ValidationError
from garage_books.services import inventory_service
from garage_books.services.inventory_service import polarize
from garage_books.services.record_store import Table


def _move(store, product_id, delta, when=date(2024, 1, 1), enforce=True):
    with store.begin([Table.PRODUCTS, Table.STOCK_TRANSACTIONS]) as tx:
        return inventory_service.apply_stock_movement(
            tx, product_id, delta,
            reference_type="adjustment", reference_id=None, entry_date=when,
            enforce_availability=enforce,
        )


class TestPolarize:
    def test_signed_quantity_passes_through(self):
        assert polarize(-3) == Decimal("-3")
        assert polarize("2.5") == Decimal("2.5")

    def test_legacy_movement_types(self):
        assert polarize(4, "in") == Decimal("4")
        assert polarize(-4, "IN") == Decimal("4")
        assert polarize(4, "out") == Decimal("-4")

    def test_unknown_movement_type(self):
        with pytest.raises(ValidationError):
            polarize(1, "sideways")


def test_counter_matches_replay_after_mixed_movements(store, widget):
    for delta in [10, -3, 5, "-2.5", -4]:
        _move(store, widget.id, delta)

    replayed = inventory_service.calculate_current_stock(widget.id, store=store)
    assert replayed == Decimal("5.5")
    assert store.get_by_id(Table.PRODUCTS, widget.id).current_stock == replayed
    assert inventory_service.check_stock_consistency(widget.id, store=store)["consistent"] is True


def test_outward_movement_beyond_stock_rejected(store, widget):
    _move(store, widget.id, 2)
    with pytest.raises(InsufficientStockError):
        _move(store, widget.id, -3)
    assert inventory_service.calculate_current_stock(widget.id, store=store) == Decimal("2")


def test_zero_movement_rejected(store, widget):
    with pytest.raises(ValidationError):
        _move(store, widget.id, 0)


def test_availability_report(store, widget):
    _move(store, widget.id, 3)
    result = inventory_service.validate_stock_availability(widget.id, 5, store=store)
    assert result.available is False
    assert result.shortfall == Decimal("2")
    assert inventory_service.validate_stock_availability(widget.id, 3, store=store).available is True


def test_legacy_movement_is_stored_signed(store, widget):
    inventory_service.record_legacy_movement(widget.id, 6, "in", store=store)
    movement = inventory_service.record_legacy_movement(widget.id, 2, "out", store=store)
    assert movement.quantity == Decimal("-2")
    assert movement.movement_type == "out"
    assert inventory_service.calculate_current_stock(widget.id, store=store) == Decimal("4")


def test_history_running_stock_in_date_order(store, widget):
    _move(store, widget.id, 5, when=date(2024, 1, 5))
    _move(store, widget.id, 3, when=date(2024, 1, 1))
    _move(store, widget.id, -2, when=date(2024, 1, 9))

    history = inventory_service.get_stock_history(widget.id, store=store)
    assert [Decimal(m["running_stock"]) for m in history["movements"]] == [
        Decimal("3"), Decimal("8"), Decimal("6"),
    ]


def test_drift_is_detected(store, widget):
    _move(store, widget.id, 5)
    store.update(Table.PRODUCTS, widget.id, {"current_stock": Decimal("9")})
    result = inventory_service.check_stock_consistency(widget.id, store=store)
    assert result["consistent"] is False
    assert Decimal(result["replayed_stock"]) == Decimal("5")
