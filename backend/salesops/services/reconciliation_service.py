# Overview: Cash reconciliation state machine for a driver-day; finalize, unlock and audit trail.

"""
Cash Reconciliation Engine

WHY: At the end of a shift office staff count the driver's cash, compare it
with the cash-sale value the day's sales imply, and record a status. Once
recorded the day is locked so figures cannot drift after sign-off.

STATES:
- Pending (initial, editable)
- Reconciled, Cash Short, Cash Over, Pending Adjustment (locked)

RULES:
- finalize recomputes totals from the source logs before computing the
  difference, so an unlocked-and-edited day never reuses stale totals
- The suggested status follows the sign of the difference; the caller may
  still record any status the transition table allows
- Locked days may only be finalized again by admin or manager
- unlock (admin or manager only) re-opens editing but keeps the status; the
  next finalize to a locked status relocks the day
- Every finalize and unlock is written to reconciliation_events
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import DriverDailySummary, ReconciliationEvent
from ..domain import ReconciliationStatus, can_transition, suggest_status
from ..validation import ValidationError, NotFoundError, ConflictError, coerce_int, clean_text, MAX_PRICE_CENTS
from salesops.time_utils import utcnow
from . import summary_service
from .permission_service import ensure_editable, require_privileged
from .concurrency import run_with_retry, lock_for_update

__all__ = ["finalize", "unlock", "list_events", "preview", "suggest_status"]


def _locked_summary(summary_id: int) -> DriverDailySummary | None:
    return lock_for_update(db.session.query(DriverDailySummary).filter_by(id=summary_id)).first()


def _record_event(
    summary: DriverDailySummary,
    event_type: str,
    from_status: ReconciliationStatus,
    *,
    actor_id: int | None,
    role: str | None,
    expected_cash_cents: int | None = None,
    note: str | None = None,
) -> ReconciliationEvent:
    event = ReconciliationEvent(
        driver_daily_summary_id=summary.id,
        event_type=event_type,
        actor_user_id=actor_id,
        actor_role=role,
        from_status=from_status.value,
        to_status=summary.reconciliation_status,
        expected_cash_cents=expected_cash_cents,
        cash_collected_cents=summary.cash_collected_cents,
        cash_difference_cents=summary.cash_difference_cents,
        note=note,
    )
    db.session.add(event)
    return event


def preview(summary_id: int, cash_collected_cents) -> dict:
    """Expected cash, difference and suggested status without writing anything."""
    collected = coerce_int(cash_collected_cents, "cash_collected_cents", minimum=0, maximum=MAX_PRICE_CENTS)
    summary_service.get_summary(summary_id)
    result = summary_service.compute_aggregate(summary_id)
    difference = collected - result.totals.cash_cents
    return {
        "expected_cash_cents": result.totals.cash_cents,
        "cash_collected_cents": collected,
        "cash_difference_cents": difference,
        "suggested_status": suggest_status(difference).value,
    }


def finalize(
    summary_id: int,
    cash_collected_cents,
    status,
    notes=None,
    *,
    role: str | None,
    actor_id: int | None = None,
    expected_version: int | None = None,
) -> DriverDailySummary:
    """
    Record counted cash and a reconciliation status for a driver-day.

    Raises:
        ValidationError: no summary, bad amount, unknown status, or a
            transition the table does not allow
        PermissionDeniedError: the day is locked and role is not privileged
        ConflictError: expected_version no longer matches
    """
    collected = coerce_int(cash_collected_cents, "cash_collected_cents", minimum=0, maximum=MAX_PRICE_CENTS)
    try:
        target = ReconciliationStatus.parse(status)
    except ValueError as exc:
        raise ValidationError(str(exc))
    note = clean_text(notes, "reconciliation_notes")

    def _op():
        summary = _locked_summary(summary_id)
        if not summary:
            raise ValidationError("No driver daily summary exists for this driver and date")

        ensure_editable(summary, role, action="finalize this day")

        current = summary.status
        if not can_transition(current, target):
            raise ValidationError(f"Cannot move a day from {current.value} to {target.value}")

        if expected_version is not None and summary.version_id != expected_version:
            raise ConflictError(
                "This day was changed by someone else since you loaded it; reload and try again"
            )

        result = summary_service.refresh_totals(summary)
        expected_cash = result.totals.cash_cents

        summary.cash_collected_cents = collected
        summary.cash_difference_cents = collected - expected_cash
        summary.reconciliation_status = target.value
        summary.reconciliation_notes = note

        if target.is_final:
            summary.reconciled_at = utcnow()
            summary.reconciled_by_user_id = actor_id
            summary.unlocked_at = None
            summary.unlocked_by_user_id = None

        _record_event(
            summary,
            "FINALIZE",
            current,
            actor_id=actor_id,
            role=role,
            expected_cash_cents=expected_cash,
            note=note,
        )
        db.session.commit()

        current_app.logger.info(
            "Driver day finalized: summary=%s %s -> %s expected=%s collected=%s diff=%s user=%s",
            summary.id, current.value, target.value, expected_cash, collected,
            summary.cash_difference_cents, actor_id,
        )
        return summary

    return run_with_retry(_op)


def unlock(summary_id: int, *, role: str | None, actor_id: int | None = None, note=None) -> DriverDailySummary:
    """
    Re-open a locked day for editing (admin / manager only).

    The status is left as it was. Unlocking a day that is already open is a
    no-op; unlocking a Pending day is a conflict.
    """
    require_privileged(role, "unlock a reconciled day")
    note = clean_text(note, "note")

    def _op():
        summary = _locked_summary(summary_id)
        if not summary:
            raise NotFoundError("Driver daily summary not found")

        current = summary.status
        if not current.is_final:
            raise ConflictError("Day is still Pending; there is nothing to unlock")
        if summary.unlocked_at is not None:
            return summary

        summary.unlocked_at = utcnow()
        summary.unlocked_by_user_id = actor_id
        _record_event(summary, "UNLOCK", current, actor_id=actor_id, role=role, note=note)
        db.session.commit()

        current_app.logger.info(
            "Driver day unlocked: summary=%s status=%s user=%s role=%s",
            summary.id, current.value, actor_id, role,
        )
        return summary

    return run_with_retry(_op)


def list_events(summary_id: int) -> list[ReconciliationEvent]:
    summary_service.get_summary(summary_id)
    return (
        db.session.query(ReconciliationEvent)
        .filter_by(driver_daily_summary_id=summary_id)
        .order_by(ReconciliationEvent.id.asc())
        .all()
    )
