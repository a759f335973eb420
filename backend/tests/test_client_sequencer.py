"""
Route sequencer (operator side) tests.

Verifies:
- A burst of reorders inside the quiet window is written once, with the final order
- Invalid orders are rejected locally without a request
- flush() writes a pending order at once; cancel() drops it
- A failed background write keeps the local order and is retried by flush()
- Writes never overlap: a window closing during a slow write sends the newest order after it
- The quiet window comes from the server unless given explicitly
"""

import asyncio

import pytest

from salesops.client import ConflictOrServerError, RouteSequencer, ValidationError, check_permutation

from conftest import run

ROUTE_ID = 4
DEBOUNCE = 0.05


async def _loaded(fake_api, order=(11, 12, 13), **kwargs):
    fake_api.route_customers[ROUTE_ID] = list(order)
    sequencer = RouteSequencer(fake_api, ROUTE_ID, debounce_seconds=DEBOUNCE, **kwargs)
    await sequencer.load()
    return sequencer


class TestCheckPermutation:

    def test_accepts_permutation(self):
        assert check_permutation([1, 2, 3], (3, 1, 2)) == [3, 1, 2]

    @pytest.mark.parametrize("proposed", [[1, 2], [1, 2, 3, 4], [1, 1, 2, 3]])
    def test_rejects_drift(self, proposed):
        with pytest.raises(ValidationError):
            check_permutation([1, 2, 3], proposed)


class TestDebounce:

    def test_two_quick_reorders_write_once(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            sequencer.reorder([12, 11, 13])
            await asyncio.sleep(DEBOUNCE / 5)
            sequencer.reorder([13, 12, 11])
            assert sequencer.order == (13, 12, 11)
            assert fake_api.calls_to("save_customer_order") == []

            await asyncio.sleep(DEBOUNCE * 4)
            return sequencer

        sequencer = run(scenario())
        assert fake_api.calls_to("save_customer_order") == [(ROUTE_ID, [13, 12, 11])]
        assert sequencer.write_count == 1
        assert sequencer.last_persisted == (13, 12, 11)
        assert not sequencer.pending

    def test_invalid_order_sends_nothing(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            with pytest.raises(ValidationError):
                sequencer.reorder([11, 12])
            await asyncio.sleep(DEBOUNCE * 3)
            return sequencer

        sequencer = run(scenario())
        assert sequencer.order == (11, 12, 13)
        assert fake_api.calls_to("save_customer_order") == []

    def test_move(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            sequencer.move(13, 0)
            await sequencer.flush()
            return sequencer

        sequencer = run(scenario())
        assert sequencer.order == (13, 11, 12)
        assert fake_api.route_customers[ROUTE_ID] == [13, 11, 12]

    def test_flush_writes_immediately(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            sequencer.reorder([13, 11, 12])
            await sequencer.flush()
            assert fake_api.calls_to("save_customer_order") == [(ROUTE_ID, [13, 11, 12])]
            await asyncio.sleep(DEBOUNCE * 3)

        run(scenario())
        assert len(fake_api.calls_to("save_customer_order")) == 1

    def test_cancel_drops_pending_write(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            sequencer.reorder([13, 11, 12])
            sequencer.cancel()
            await asyncio.sleep(DEBOUNCE * 3)
            return sequencer

        sequencer = run(scenario())
        assert sequencer.order == (13, 11, 12)
        assert fake_api.calls_to("save_customer_order") == []

    def test_failed_write_is_retried_by_flush(self, fake_api):
        errors = []

        async def scenario():
            sequencer = await _loaded(fake_api, on_persist_error=errors.append)
            fake_api.fail["save_customer_order"] = ConflictOrServerError("server down", status=503)
            sequencer.reorder([12, 13, 11])
            await asyncio.sleep(DEBOUNCE * 4)
            assert sequencer.order == (12, 13, 11)
            assert sequencer.last_error is not None

            del fake_api.fail["save_customer_order"]
            await sequencer.flush()
            return sequencer

        sequencer = run(scenario())
        assert len(errors) == 1
        assert sequencer.last_persisted == (12, 13, 11)
        assert sequencer.last_error is None
        assert fake_api.route_customers[ROUTE_ID] == [12, 13, 11]


class TestSerializedWrites:

    def test_slow_first_write_does_not_win(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            # First write slow, second fast
            fake_api.delays["save_customer_order"] = [DEBOUNCE * 6, 0]
            sequencer.reorder([12, 11, 13])
            await asyncio.sleep(DEBOUNCE * 2)
            sequencer.reorder([13, 12, 11])
            await asyncio.sleep(DEBOUNCE * 16)
            return sequencer

        sequencer = run(scenario())
        assert fake_api.route_customers[ROUTE_ID] == [13, 12, 11]
        assert sequencer.last_persisted == (13, 12, 11)
        assert sequencer.order == (13, 12, 11)

    def test_window_closing_during_write_waits_for_it(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            gate = asyncio.Event()
            fake_api.gates["save_customer_order"] = gate

            sequencer.reorder([12, 11, 13])
            await asyncio.sleep(DEBOUNCE * 2)
            assert fake_api.calls_to("save_customer_order") == [(ROUTE_ID, [12, 11, 13])]

            sequencer.reorder([11, 13, 12])
            sequencer.reorder([13, 12, 11])
            await asyncio.sleep(DEBOUNCE * 3)
            # Second window has closed but its write is queued behind the first
            assert len(fake_api.calls_to("save_customer_order")) == 1

            gate.set()
            await asyncio.sleep(DEBOUNCE * 2)
            return sequencer

        sequencer = run(scenario())
        assert fake_api.calls_to("save_customer_order") == [
            (ROUTE_ID, [12, 11, 13]),
            (ROUTE_ID, [13, 12, 11]),
        ]
        assert fake_api.route_customers[ROUTE_ID] == [13, 12, 11]
        assert sequencer.write_count == 2

    def test_flush_waits_for_inflight_write(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            gate = asyncio.Event()
            fake_api.gates["save_customer_order"] = gate

            sequencer.reorder([12, 11, 13])
            await asyncio.sleep(DEBOUNCE * 2)
            sequencer.reorder([13, 12, 11])

            flushing = asyncio.create_task(sequencer.flush())
            await asyncio.sleep(0)
            gate.set()
            await flushing
            return sequencer

        sequencer = run(scenario())
        assert [args[1] for args in fake_api.calls_to("save_customer_order")] == [[12, 11, 13], [13, 12, 11]]
        assert fake_api.route_customers[ROUTE_ID] == [13, 12, 11]
        assert not sequencer.pending


class TestDebounceWindow:

    def test_window_comes_from_server(self, fake_api):
        async def scenario():
            fake_api.route_customers[ROUTE_ID] = [11, 12, 13]
            fake_api.debounce_seconds = 0.25
            sequencer = RouteSequencer(fake_api, ROUTE_ID)
            await sequencer.load()
            return sequencer

        assert run(scenario()).debounce_seconds == 0.25

    def test_explicit_window_wins(self, fake_api):
        async def scenario():
            fake_api.route_customers[ROUTE_ID] = [11, 12, 13]
            fake_api.debounce_seconds = 0.25
            sequencer = RouteSequencer(fake_api, ROUTE_ID, debounce_seconds=DEBOUNCE)
            await sequencer.load()
            return sequencer

        assert run(scenario()).debounce_seconds == DEBOUNCE


class TestMembership:

    def test_add_is_idempotent(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            await sequencer.add(14)
            await sequencer.add(14)
            return sequencer

        sequencer = run(scenario())
        assert sequencer.order == (11, 12, 13, 14)
        assert len(fake_api.calls_to("add_route_customer")) == 1

    def test_add_flushes_pending_order_first(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            sequencer.reorder([13, 12, 11])
            await sequencer.add(14)
            return sequencer

        sequencer = run(scenario())
        assert sequencer.order == (13, 12, 11, 14)
        names = [name for name, _ in fake_api.calls if name != "load_route"]
        assert names == ["save_customer_order", "add_route_customer"]

    def test_remove_unknown_customer_is_local_error(self, fake_api):
        async def scenario():
            sequencer = await _loaded(fake_api)
            with pytest.raises(ValidationError):
                await sequencer.remove(99)
            await sequencer.remove(12)
            return sequencer

        sequencer = run(scenario())
        assert sequencer.order == (11, 13)
        assert fake_api.calls_to("remove_route_customer") == [(ROUTE_ID, 12)]
