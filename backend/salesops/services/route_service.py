# Overview: Service-layer operations for route customer order; encapsulates business logic and database work.

"""
Route Customer Sequencer (server side)

WHY: The order of stops on a route drives the row order of the batch sales
grid. Office staff drag customers into delivery order and the order must
survive reloads.

DESIGN:
- A route's customer list is its active assignments ordered by route_sequence
- add is idempotent; adding an active customer changes nothing
- reorder must receive exactly the current customer set, once each
- No cross-session locking: the last reorder to commit wins
"""

from __future__ import annotations

from ..extensions import db
from ..models import RouteAssignment, DeliveryRoute, Customer
from ..validation import ValidationError, NotFoundError
from .concurrency import run_with_retry


def _get_route(route_id: int) -> DeliveryRoute:
    route = db.session.get(DeliveryRoute, route_id)
    if not route:
        raise NotFoundError("Route not found")
    return route


def _active_assignments(route_id: int) -> list[RouteAssignment]:
    return (
        db.session.query(RouteAssignment)
        .join(Customer, Customer.id == RouteAssignment.customer_id)
        .filter(RouteAssignment.route_id == route_id, RouteAssignment.is_active.is_(True))
        .order_by(RouteAssignment.route_sequence.asc(), Customer.customer_name.asc())
        .all()
    )


def list_route_customers(route_id: int) -> list[RouteAssignment]:
    """Active customers of a route in stop order."""
    _get_route(route_id)
    return _active_assignments(route_id)


def route_order(route_id: int) -> list[int]:
    return [a.customer_id for a in list_route_customers(route_id)]


def add_customer(route_id: int, customer_id: int, user_id: int | None = None) -> list[RouteAssignment]:
    """
    Append a customer to the end of a route.

    Idempotent: an already-active customer keeps its position. An inactive
    assignment is reactivated at the end of the route.
    """
    def _op():
        _get_route(route_id)
        customer = db.session.get(Customer, customer_id)
        if not customer:
            raise ValidationError(f"Customer {customer_id} does not exist")
        if not customer.is_active:
            raise ValidationError(f"Customer {customer_id} is inactive")

        assignment = db.session.query(RouteAssignment).filter_by(
            route_id=route_id,
            customer_id=customer_id,
        ).first()

        if assignment and assignment.is_active:
            return _active_assignments(route_id)

        max_sequence = db.session.query(db.func.max(RouteAssignment.route_sequence)).filter(
            RouteAssignment.route_id == route_id,
            RouteAssignment.is_active.is_(True),
        ).scalar() or 0

        if assignment:
            assignment.is_active = True
            assignment.route_sequence = max_sequence + 1
        else:
            db.session.add(RouteAssignment(
                route_id=route_id,
                customer_id=customer_id,
                route_sequence=max_sequence + 1,
                is_active=True,
                created_by_user_id=user_id,
            ))

        db.session.commit()
        return _active_assignments(route_id)

    return run_with_retry(_op)


def remove_customer(route_id: int, customer_id: int) -> list[RouteAssignment]:
    """Take a customer off a route (soft deactivate)."""
    def _op():
        _get_route(route_id)
        assignment = db.session.query(RouteAssignment).filter_by(
            route_id=route_id,
            customer_id=customer_id,
            is_active=True,
        ).first()
        if not assignment:
            raise NotFoundError(f"Customer {customer_id} is not on route {route_id}")

        assignment.is_active = False
        db.session.commit()
        return _active_assignments(route_id)

    return run_with_retry(_op)


def validate_permutation(current: list[int], proposed: list[int]) -> None:
    """
    Reject any proposed order that is not a permutation of the current set.

    Raised errors name the offending ids so the operator can see what drifted.
    """
    if not isinstance(proposed, list):
        raise ValidationError("customer_ids must be an array")

    seen: set[int] = set()
    duplicates: list[int] = []
    for customer_id in proposed:
        if customer_id in seen:
            duplicates.append(customer_id)
        seen.add(customer_id)
    if duplicates:
        raise ValidationError(f"Duplicate customer ids in new order: {sorted(set(duplicates))}")

    current_set = set(current)
    missing = sorted(current_set - seen)
    extra = sorted(seen - current_set)
    if missing or extra:
        parts = []
        if missing:
            parts.append(f"missing {missing}")
        if extra:
            parts.append(f"not on route {extra}")
        raise ValidationError("New order must contain exactly the route's customers: " + "; ".join(parts))


def reorder(route_id: int, customer_ids: list[int]) -> list[RouteAssignment]:
    """Persist a full new stop order (1..n) in one transaction."""
    def _op():
        assignments = list_route_customers(route_id)
        validate_permutation([a.customer_id for a in assignments], customer_ids)

        by_customer = {a.customer_id: a for a in assignments}
        for sequence, customer_id in enumerate(customer_ids, start=1):
            by_customer[customer_id].route_sequence = sequence

        db.session.commit()
        return _active_assignments(route_id)

    return run_with_retry(_op)
