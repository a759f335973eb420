# Overview: Operator-side route customer order with debounced persistence.

"""
Route Customer Sequencer (operator side)

Reorders apply to the local order at once. Persisting is debounced through
one timer handle per route: every reorder inside the quiet window cancels
the pending handle and starts a new one, so only the last order of a burst
is written. Writes go out one at a time; a window that closes while an
earlier write is still in flight queues behind it and then sends the newest
order.

The quiet window defaults to the server's ROUTE_ORDER_DEBOUNCE_SECONDS,
reported with the route's customer list.

Two sessions reordering the same route resolve last-write-wins on the server.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from .errors import ClientError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.8


def check_permutation(current: Iterable[int], proposed: Iterable[int]) -> list[int]:
    """Return proposed as a list, or raise ValidationError naming what drifted."""
    current = list(current)
    proposed = list(proposed)

    duplicates = sorted({cid for cid in proposed if proposed.count(cid) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate customers in new order: {duplicates}")

    missing = sorted(set(current) - set(proposed))
    extra = sorted(set(proposed) - set(current))
    if missing or extra:
        parts = []
        if missing:
            parts.append(f"missing {missing}")
        if extra:
            parts.append(f"not on route {extra}")
        raise ValidationError("New order must contain exactly the route's customers: " + "; ".join(parts))
    return proposed


class RouteSequencer:
    def __init__(
        self,
        api,
        route_id: int,
        order: Iterable[int] = (),
        *,
        debounce_seconds: float | None = None,
        on_persist_error: Callable[[ClientError], None] | None = None,
    ):
        self.api = api
        self.route_id = route_id
        # None means "use the server's ROUTE_ORDER_DEBOUNCE_SECONDS once loaded"
        self._debounce_override = debounce_seconds
        self.debounce_seconds = DEFAULT_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.on_persist_error = on_persist_error

        self._order: tuple[int, ...] = tuple(order)
        self.customers: dict[int, dict] = {}
        self._handle: asyncio.TimerHandle | None = None
        self._pending_order: tuple[int, ...] | None = None
        self._inflight: set[asyncio.Task] = set()
        self._write_lock = asyncio.Lock()

        self.last_persisted: tuple[int, ...] | None = None
        self.last_error: ClientError | None = None
        self.write_count = 0

    @property
    def order(self) -> tuple[int, ...]:
        return self._order

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _apply_server_list(self, customers: list[dict]) -> None:
        self.customers = {c["customer_id"]: c for c in customers}
        self._order = tuple(c["customer_id"] for c in customers)

    async def load(self) -> tuple[int, ...]:
        route = await self.api.load_route(self.route_id)
        if self._debounce_override is None and route.get("debounce_seconds") is not None:
            self.debounce_seconds = float(route["debounce_seconds"])
        self._apply_server_list(route["customers"])
        return self._order

    # =========================================================================
    # MEMBERSHIP
    # =========================================================================

    async def add(self, customer_id: int) -> tuple[int, ...]:
        """Append a customer; an already-present customer changes nothing."""
        if customer_id in self._order:
            return self._order
        await self.flush()
        self._apply_server_list(await self.api.add_route_customer(self.route_id, customer_id))
        return self._order

    async def remove(self, customer_id: int) -> tuple[int, ...]:
        if customer_id not in self._order:
            raise ValidationError(f"Customer {customer_id} is not on this route", status=404)
        await self.flush()
        self._apply_server_list(await self.api.remove_route_customer(self.route_id, customer_id))
        return self._order

    # =========================================================================
    # ORDER
    # =========================================================================

    def reorder(self, new_order: Iterable[int]) -> tuple[int, ...]:
        """
        Apply a new order locally and (re)start the debounce window.

        Must be called from a running event loop.
        """
        self._order = tuple(check_permutation(self._order, new_order))
        self._pending_order = self._order

        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.debounce_seconds, self._fire)
        return self._order

    def move(self, customer_id: int, new_index: int) -> tuple[int, ...]:
        order = [cid for cid in self._order if cid != customer_id]
        if len(order) == len(self._order):
            raise ValidationError(f"Customer {customer_id} is not on this route")
        new_index = max(0, min(new_index, len(order)))
        order.insert(new_index, customer_id)
        return self.reorder(order)

    def _fire(self) -> None:
        self._handle = None
        if self._pending_order is None:
            return
        task = asyncio.get_running_loop().create_task(self._persist_in_background())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _write_pending(self) -> None:
        """
        Write the newest pending order, one request at a time.

        The order is read after the lock is taken, so a write queued behind a
        slow one always sends the latest local order, never an older one.
        """
        async with self._write_lock:
            order, self._pending_order = self._pending_order, None
            if order is None:
                return
            self.write_count += 1
            try:
                await self.api.save_customer_order(self.route_id, list(order))
            except ClientError:
                if self._pending_order is None:
                    self._pending_order = order
                raise
            self.last_persisted = order
            self.last_error = None

    async def _persist_in_background(self) -> None:
        try:
            await self._write_pending()
        except ClientError as exc:
            # Local order is kept; the next reorder or flush retries it
            self.last_error = exc
            logger.warning("Saving customer order for route %s failed: %s", self.route_id, exc)
            if self.on_persist_error is not None:
                self.on_persist_error(exc)

    async def flush(self) -> None:
        """Persist a pending order now instead of waiting for the window."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._inflight:
            await asyncio.gather(*self._inflight)
        await self._write_pending()

    def cancel(self) -> None:
        """Drop a pending write; the local order is kept."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending_order = None
