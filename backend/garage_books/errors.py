# Overview: Exception taxonomy shared by the posting engine, stores and routes.

from __future__ import annotations

from decimal import Decimal


class BooksError(Exception):
    """Base for every caller-facing failure; str(e) is a human-readable message."""


class ValidationError(BooksError, ValueError):
    """400-level input problem (missing field, quantity/rate <= 0, bad state)."""


class NotFoundError(BooksError, LookupError):
    """A referenced party, product or document does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class JournalImbalanceError(BooksError):
    """Debits and credits differ beyond tolerance. Never auto-corrected."""

    def __init__(self, difference: Decimal, total_debits: Decimal, total_credits: Decimal):
        self.difference = difference
        self.total_debits = total_debits
        self.total_credits = total_credits
        super().__init__(
            f"Journal entry does not balance: debits {total_debits} != credits "
            f"{total_credits} (difference {difference})"
        )


class InsufficientStockError(BooksError):
    def __init__(self, product: str, available: Decimal, required: Decimal):
        self.product = product
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient stock for {product}: available {available}, required {required}"
        )


class TransactionError(BooksError):
    """The atomic commit failed for storage reasons; nothing was written."""


class UndeclaredTableError(TransactionError):
    """A transaction body touched a table it did not declare up front."""

    def __init__(self, table: str, declared):
        self.table = table
        self.declared = tuple(declared)
        super().__init__(
            f"Table {table!r} was not declared for this transaction "
            f"(declared: {', '.join(self.declared) or 'none'})"
        )
