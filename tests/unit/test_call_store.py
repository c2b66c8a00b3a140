"""Unit tests for the in-memory call store."""
import asyncio
import time
import pytest

from app.services.call_session.models import ResultState, TurnResult
from app.services.call_session.store import InMemoryCallStore


class TestSessions:
    """Test session lifecycle."""

    @pytest.mark.asyncio
    async def test_create_session(self, call_store):
        """New sessions start at turn zero."""
        session = await call_store.create_session("CA1")

        assert session.call_sid == "CA1"
        assert session.turns == 0
        assert await call_store.get_session("CA1") is session

    @pytest.mark.asyncio
    async def test_create_session_idempotent(self, call_store):
        """A retried call-start keeps the existing session."""
        first = await call_store.create_session("CA1")
        first.turns = 3

        second = await call_store.create_session("CA1")

        assert second is first
        assert second.turns == 3

    @pytest.mark.asyncio
    async def test_delete_session_removes_pending(self, call_store):
        """Deleting a session also drops its pending result."""
        await call_store.create_session("CA1")
        await call_store.begin_turn("CA1")

        assert await call_store.delete_session("CA1") is True
        assert await call_store.get_session("CA1") is None
        state, _ = await call_store.take_result("CA1")
        assert state == ResultState.ABSENT

    @pytest.mark.asyncio
    async def test_delete_unknown_session(self, call_store):
        assert await call_store.delete_session("CAnope") is False

    @pytest.mark.asyncio
    async def test_touch_session_refreshes_activity(self, call_store):
        session = await call_store.create_session("CA1")
        session.last_activity = time.monotonic() - 600

        touched = await call_store.touch_session("CA1")

        assert touched is session
        assert time.monotonic() - session.last_activity < 5

    @pytest.mark.asyncio
    async def test_touch_unknown_session(self, call_store):
        assert await call_store.touch_session("CAnope") is None
        assert await call_store.get_session("CAnope") is None


class TestTurns:
    """Test the pending-result slot."""

    @pytest.mark.asyncio
    async def test_begin_turn_increments_and_marks_in_progress(self, call_store):
        await call_store.create_session("CA1")

        session = await call_store.begin_turn("CA1")

        assert session.turns == 1
        state, result = await call_store.take_result("CA1")
        assert state == ResultState.IN_PROGRESS
        assert result is None

    @pytest.mark.asyncio
    async def test_second_turn_rejected_while_in_progress(self, call_store):
        """Only one turn per call may be in flight."""
        await call_store.create_session("CA1")
        assert await call_store.begin_turn("CA1") is not None

        assert await call_store.begin_turn("CA1") is None

        session = await call_store.get_session("CA1")
        assert session.turns == 1

    @pytest.mark.asyncio
    async def test_concurrent_begin_turn_single_winner(self, call_store):
        """Back-to-back recordings never dispatch two turns."""
        await call_store.create_session("CA1")

        results = await asyncio.gather(*[call_store.begin_turn("CA1") for _ in range(10)])

        accepted = [r for r in results if r is not None]
        assert len(accepted) == 1

    @pytest.mark.asyncio
    async def test_begin_turn_without_session_rejected(self, call_store):
        """Turns never create sessions; only call-start does."""
        assert await call_store.begin_turn("CAunknown") is None

        assert await call_store.get_session("CAunknown") is None
        state, _ = await call_store.take_result("CAunknown")
        assert state == ResultState.ABSENT

    @pytest.mark.asyncio
    async def test_next_turn_allowed_after_result_consumed(self, call_store):
        await call_store.create_session("CA1")
        await call_store.begin_turn("CA1")
        await call_store.publish_result("CA1", TurnResult(text="Hi"))
        await call_store.take_result("CA1")

        session = await call_store.begin_turn("CA1")

        assert session is not None
        assert session.turns == 2

    @pytest.mark.asyncio
    async def test_take_result_exactly_once(self, call_store):
        await call_store.create_session("CA1")
        await call_store.begin_turn("CA1")
        assert await call_store.publish_result("CA1", TurnResult(text="Hello there")) is True

        state, result = await call_store.take_result("CA1")
        assert state == ResultState.READY
        assert result.text == "Hello there"

        state, result = await call_store.take_result("CA1")
        assert state == ResultState.ABSENT
        assert result is None

    @pytest.mark.asyncio
    async def test_concurrent_polls_single_delivery(self, call_store):
        """Two polls racing for the same ready result: only one gets it."""
        await call_store.create_session("CA1")
        await call_store.begin_turn("CA1")
        await call_store.publish_result("CA1", TurnResult(text="Only once"))

        outcomes = await asyncio.gather(
            call_store.take_result("CA1"), call_store.take_result("CA1")
        )

        states = [state for state, _ in outcomes]
        assert states.count(ResultState.READY) == 1
        assert states.count(ResultState.ABSENT) == 1

    @pytest.mark.asyncio
    async def test_publish_without_pending_is_noop(self, call_store):
        """Late writes for ended calls are dropped."""
        assert await call_store.publish_result("CA1", TurnResult(text="Too late")) is False

        state, _ = await call_store.take_result("CA1")
        assert state == ResultState.ABSENT

    @pytest.mark.asyncio
    async def test_publish_after_session_deleted_is_noop(self, call_store):
        await call_store.create_session("CA1")
        await call_store.begin_turn("CA1")
        await call_store.delete_session("CA1")

        assert await call_store.publish_result("CA1", TurnResult(text="Too late")) is False

    @pytest.mark.asyncio
    async def test_terminal_flag_preserved(self, call_store):
        await call_store.create_session("CA1")
        await call_store.begin_turn("CA1")
        await call_store.publish_result("CA1", TurnResult(text="Bye!", terminal=True))

        _, result = await call_store.take_result("CA1")

        assert result.terminal is True


class TestSweep:
    """Test TTL eviction."""

    @pytest.mark.asyncio
    async def test_sweep_evicts_idle_sessions(self):
        store = InMemoryCallStore(ttl_seconds=60)
        await store.create_session("CAold")
        await store.begin_turn("CAold")
        await store.create_session("CAfresh")

        # Make one session look idle
        (await store.get_session("CAold")).last_activity = time.monotonic() - 120

        evicted = await store.sweep()

        assert evicted == ["CAold"]
        assert await store.get_session("CAold") is None
        assert await store.get_session("CAfresh") is not None
        state, _ = await store.take_result("CAold")
        assert state == ResultState.ABSENT

    @pytest.mark.asyncio
    async def test_sweep_with_explicit_clock(self):
        store = InMemoryCallStore(ttl_seconds=60)
        await store.create_session("CA1")

        assert await store.sweep(now=time.monotonic() + 30) == []
        assert await store.sweep(now=time.monotonic() + 61) == ["CA1"]

    @pytest.mark.asyncio
    async def test_sweep_removes_orphaned_results(self, call_store):
        call_store._pending["CAorphan"] = None

        await call_store.sweep()

        assert "CAorphan" not in call_store._pending
