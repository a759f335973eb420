# Overview: Closed vocabularies shared by the server and the operator client.

from __future__ import annotations

from enum import Enum


class PaymentType(str, Enum):
    CASH = "Cash"
    CREDIT = "Credit"
    DEBIT = "Debit"

    @classmethod
    def parse(cls, value) -> "PaymentType":
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown payment type: {value!r}")


class TransactionType(str, Enum):
    """
    How a line item moves stock.

    Giveaway and internal-use lines leave the vehicle (they count as sold for
    inventory purposes) but do not contribute to the sale's money total.
    """
    SALE = "Sale"
    GIVEAWAY = "Giveaway"
    INTERNAL_USE = "Internal Use"

    @classmethod
    def parse(cls, value) -> "TransactionType":
        if value is None:
            return cls.SALE
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown transaction type: {value!r}")

    @property
    def is_billable(self) -> bool:
        return self is TransactionType.SALE


class EntryMode(str, Enum):
    """Which screen created a sale. A grid commit only ever replaces grid sales."""
    GRID = "grid"
    EDITOR = "editor"


class ReconciliationStatus(str, Enum):
    PENDING = "Pending"
    RECONCILED = "Reconciled"
    CASH_SHORT = "Cash Short"
    CASH_OVER = "Cash Over"
    PENDING_ADJUSTMENT = "Pending Adjustment"

    @classmethod
    def parse(cls, value) -> "ReconciliationStatus":
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown reconciliation status: {value!r}")

    @property
    def is_final(self) -> bool:
        return self is not ReconciliationStatus.PENDING


# Roles allowed to edit a driver-day after it leaves Pending
PRIVILEGED_ROLES = frozenset({"admin", "manager"})

ROLES = ("admin", "manager", "area_manager", "clerk")


def is_privileged(role: str | None) -> bool:
    return (role or "").strip().lower() in PRIVILEGED_ROLES


# Statuses each status may move to through finalize. A final status never
# returns to Pending; unlock re-opens editing without changing the status.
ALLOWED_TRANSITIONS = {
    ReconciliationStatus.PENDING: frozenset(ReconciliationStatus),
    **{
        status: frozenset(s for s in ReconciliationStatus if s.is_final)
        for status in ReconciliationStatus
        if status.is_final
    },
}


def can_transition(current: ReconciliationStatus, target: ReconciliationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def suggest_status(cash_difference_cents: int) -> ReconciliationStatus:
    """Status implied by the sign of collected minus expected cash."""
    if cash_difference_cents == 0:
        return ReconciliationStatus.RECONCILED
    if cash_difference_cents < 0:
        return ReconciliationStatus.CASH_SHORT
    return ReconciliationStatus.CASH_OVER
