"""Call session and pending-result storage."""
import asyncio
import time
import zlib
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from app.services.call_session.models import CallSession, ResultState, TurnResult


class CallStore(ABC):
    """Abstract store for per-call sessions and their pending turn results.

    The pending-result slot is a tri-state cell per call id: absent, in
    progress, or ready with a TurnResult. Every operation is atomic with
    respect to other operations on the same call id.
    """

    @abstractmethod
    async def create_session(self, call_sid: str) -> CallSession:
        """Create a session, or refresh and return the existing one."""
        pass

    @abstractmethod
    async def get_session(self, call_sid: str) -> Optional[CallSession]:
        """Get a session by call id."""
        pass

    @abstractmethod
    async def touch_session(self, call_sid: str) -> Optional[CallSession]:
        """Refresh a session's activity timestamp. Returns None for unknown calls."""
        pass

    @abstractmethod
    async def delete_session(self, call_sid: str) -> bool:
        """Delete a session and any pending result. Returns True if something was removed."""
        pass

    @abstractmethod
    async def begin_turn(self, call_sid: str) -> Optional[CallSession]:
        """
        Start a new turn for a call.

        Increments the turn counter, refreshes activity and marks the result
        slot in progress. Returns None, changing nothing, when a turn for this
        call is already in progress or the call has no session. Sessions are
        only ever created by the call-start and outbound webhooks.
        """
        pass

    @abstractmethod
    async def publish_result(self, call_sid: str, result: TurnResult) -> bool:
        """
        Resolve an in-progress slot.

        A publish into an absent slot (call ended or evicted) is a no-op and
        returns False.
        """
        pass

    @abstractmethod
    async def take_result(self, call_sid: str) -> Tuple[ResultState, Optional[TurnResult]]:
        """Remove and return a ready result. Other states are reported without change."""
        pass

    @abstractmethod
    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """Evict idle sessions and orphaned results. Returns the evicted call ids."""
        pass


class InMemoryCallStore(CallStore):
    """Process-local store sharded by call id over a fixed set of locks."""

    def __init__(self, ttl_seconds: float = 30 * 60, shards: int = 16):
        self.ttl_seconds = ttl_seconds
        self._sessions: Dict[str, CallSession] = {}
        # Key present with None means "in progress"
        self._pending: Dict[str, Optional[TurnResult]] = {}
        self._locks = [asyncio.Lock() for _ in range(shards)]

    def _lock_for(self, call_sid: str) -> asyncio.Lock:
        return self._locks[zlib.crc32(call_sid.encode()) % len(self._locks)]

    async def create_session(self, call_sid: str) -> CallSession:
        async with self._lock_for(call_sid):
            session = self._sessions.get(call_sid)
            if session:
                session.touch()
                return session
            session = CallSession(call_sid=call_sid)
            self._sessions[call_sid] = session
            return session

    async def get_session(self, call_sid: str) -> Optional[CallSession]:
        return self._sessions.get(call_sid)

    async def touch_session(self, call_sid: str) -> Optional[CallSession]:
        async with self._lock_for(call_sid):
            session = self._sessions.get(call_sid)
            if session:
                session.touch()
            return session

    async def delete_session(self, call_sid: str) -> bool:
        async with self._lock_for(call_sid):
            had_session = self._sessions.pop(call_sid, None) is not None
            had_pending = call_sid in self._pending
            self._pending.pop(call_sid, None)
            return had_session or had_pending

    async def begin_turn(self, call_sid: str) -> Optional[CallSession]:
        async with self._lock_for(call_sid):
            session = self._sessions.get(call_sid)
            if not session:
                return None
            if call_sid in self._pending and self._pending[call_sid] is None:
                return None

            session.turns += 1
            session.touch()
            self._pending[call_sid] = None
            return session

    async def publish_result(self, call_sid: str, result: TurnResult) -> bool:
        async with self._lock_for(call_sid):
            if call_sid not in self._pending:
                return False
            self._pending[call_sid] = result
            return True

    async def take_result(self, call_sid: str) -> Tuple[ResultState, Optional[TurnResult]]:
        async with self._lock_for(call_sid):
            if call_sid not in self._pending:
                return ResultState.ABSENT, None
            result = self._pending[call_sid]
            if result is None:
                return ResultState.IN_PROGRESS, None
            del self._pending[call_sid]
            return ResultState.READY, result

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        if now is None:
            now = time.monotonic()

        evicted = []
        for call_sid in list(self._sessions.keys()):
            async with self._lock_for(call_sid):
                session = self._sessions.get(call_sid)
                if session and now - session.last_activity > self.ttl_seconds:
                    del self._sessions[call_sid]
                    self._pending.pop(call_sid, None)
                    evicted.append(call_sid)

        for call_sid in list(self._pending.keys()):
            async with self._lock_for(call_sid):
                if call_sid not in self._sessions:
                    self._pending.pop(call_sid, None)

        return evicted
