"""
Tests for the journal balance validator and journal writer.
"""

from datetime import date
from decimal import Decimal

import pytest

from garage_books import accounts
from garage_books.errors import JournalImbalanceError, ValidationError
from garage_books.services import journal_service, voucher_service
from garage_books.services.journal_service import (
    JournalLineDraft, assert_balanced, validate_journal_balance, write_journal,
)
from garage_books.services.record_store import Table


class TestValidateJournalBalance:
    def test_balanced_dict_lines(self):
        result = validate_journal_balance([
            {"account_code": "INVENTORY", "debit": 1000, "credit": 0},
            {"account_code": "GST_INPUT", "debit": "180.00"},
            {"account_code": "ACCOUNTS_PAYABLE", "credit": Decimal("1180")},
        ])
        assert result.balanced is True
        assert result.total_debits == Decimal("1180")
        assert result.total_credits == Decimal("1180")
        assert result.difference == Decimal("0")

    def test_missing_and_garbage_amounts_count_as_zero(self):
        result = validate_journal_balance([
            {"debit": None, "credit": "abc"},
            {"debit": 50, "credit": float("nan")},
            {"credit": 50},
        ])
        assert result.balanced is True
        assert result.total_debits == Decimal("50")

    def test_difference_under_one_paisa_is_tolerated(self):
        result = validate_journal_balance([{"debit": "100.004"}, {"credit": "100.00"}])
        assert result.balanced is True

    def test_difference_of_one_paisa_is_imbalanced(self):
        result = validate_journal_balance([{"debit": "100.01"}, {"credit": "100.00"}])
        assert result.balanced is False
        assert result.difference == Decimal("0.01")

    def test_accepts_draft_objects(self):
        lines = [JournalLineDraft.dr("CASH", "10.005"), JournalLineDraft.cr("SALES", "10.01")]
        # dr() rounds half-up, so both sides are 10.01
        assert validate_journal_balance(lines).balanced is True

    def test_empty_input_is_balanced(self):
        assert validate_journal_balance([]).balanced is True

    def test_assert_balanced_raises_with_totals(self):
        with pytest.raises(JournalImbalanceError) as exc_info:
            assert_balanced([{"debit": 100}, {"credit": 90}])
        assert exc_info.value.difference == Decimal("10")
        assert exc_info.value.total_debits == Decimal("100")
        assert exc_info.value.total_credits == Decimal("90")


class TestWriteJournal:
    def test_writes_entry_and_lines_in_order(self, store):
        with store.begin([Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES]) as tx:
            entry = write_journal(
                tx,
                source_type="voucher",
                source_id="v-1",
                entry_date=date(2024, 1, 31),
                description="Cash sale",
                lines=[JournalLineDraft.dr(accounts.CASH, 500), JournalLineDraft.cr(accounts.SALES, 500)],
            )

        saved = store.get_by_id(Table.JOURNAL_ENTRIES, entry.id)
        assert [line.account_code for line in saved.lines] == ["CASH", "SALES"]
        assert saved.lines[0].account_name == "Cash in Hand"

    def test_zero_lines_are_dropped(self, store):
        with store.begin([Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES]) as tx:
            entry = write_journal(
                tx,
                source_type="voucher",
                source_id=None,
                entry_date=date(2024, 1, 31),
                description=None,
                lines=[
                    JournalLineDraft.dr(accounts.CASH, 500),
                    JournalLineDraft.dr(accounts.ROUND_OFF, 0),
                    JournalLineDraft.cr(accounts.SALES, 500),
                ],
            )
        assert len(store.get_by_id(Table.JOURNAL_ENTRIES, entry.id).lines) == 2

    def test_single_line_rejected(self, store):
        with pytest.raises(ValidationError):
            with store.begin([Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES]) as tx:
                write_journal(
                    tx, source_type="voucher", source_id=None, entry_date=date(2024, 1, 1),
                    description=None, lines=[JournalLineDraft.dr(accounts.CASH, 10)],
                )
        assert store.get_all(Table.JOURNAL_ENTRIES) == []

    def test_imbalanced_entry_writes_nothing(self, store):
        with pytest.raises(JournalImbalanceError):
            with store.begin([Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES]) as tx:
                write_journal(
                    tx, source_type="voucher", source_id=None, entry_date=date(2024, 1, 1),
                    description=None,
                    lines=[JournalLineDraft.dr(accounts.CASH, 10), JournalLineDraft.cr(accounts.SALES, 9)],
                )
        assert store.get_all(Table.JOURNAL_ENTRIES) == []
        assert store.get_all(Table.JOURNAL_LINES) == []


class TestAccountReports:
    def _voucher(self, store, when, debit_account, credit_account, amount):
        return voucher_service.create_voucher(
            [
                {"account_code": debit_account, "debit": amount},
                {"account_code": credit_account, "credit": amount},
            ],
            entry_date=when,
            store=store,
        )

    def test_account_ledger_running_balance(self, store):
        self._voucher(store, date(2024, 1, 5), "CASH", "SALES", 300)
        self._voucher(store, date(2024, 1, 10), "SERVICE_EXPENSE", "CASH", 120)

        ledger = journal_service.get_account_ledger("CASH", store=store)
        assert [Decimal(e["balance"]) for e in ledger["entries"]] == [Decimal("300"), Decimal("180")]
        assert Decimal(ledger["closing_balance"]) == Decimal("180")

    def test_account_ledger_date_filter(self, store):
        self._voucher(store, date(2024, 1, 5), "CASH", "SALES", 300)
        self._voucher(store, date(2024, 2, 5), "CASH", "SALES", 200)

        ledger = journal_service.get_account_ledger("CASH", date(2024, 2, 1), None, store=store)
        assert len(ledger["entries"]) == 1
        assert Decimal(ledger["closing_balance"]) == Decimal("200")

    def test_gst_report(self, store):
        self._voucher(store, date(2024, 1, 5), "GST_INPUT", "CASH", 180)
        self._voucher(store, date(2024, 1, 6), "CASH", "GST_OUTPUT", 270)

        report = journal_service.get_gst_report(store=store)
        assert Decimal(report["input_credit"]) == Decimal("180")
        assert Decimal(report["output_tax"]) == Decimal("270")
        assert Decimal(report["net_payable"]) == Decimal("90")
