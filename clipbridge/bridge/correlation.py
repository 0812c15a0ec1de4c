"""Correlation tracker: turns fire-and-forget posts into awaitable calls.

Each outbound request gets a fresh correlation ID and a pending entry
holding a future plus the timer that enforces its deadline. Whichever of
{matching response, timeout} arrives first settles the entry and removes
it; the loser finds nothing to settle and is ignored.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import ulid
from loguru import logger

from .errors import Unreachable
from .messages import BaseMessage

# Protocol constant, not a configuration value.
DEFAULT_TIMEOUT_MS = 10_000

Deliver = Callable[[BaseMessage], None]


def new_correlation_id() -> str:
    """Timestamp-prefixed random ID, unique within a session."""
    return str(ulid.ULID())


@dataclass
class PendingRequest:
    """State for one in-flight request; owned by the tracker."""
    correlation_id: str
    created_at: float
    deadline: float
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = None

    @property
    def settled(self) -> bool:
        return self.future.done()

    def settle(self, response: Any) -> bool:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        if self.future.done():
            return False
        self.future.set_result(response)
        return True


class CorrelationTracker:
    """Matches responses to requests by correlation ID with a deadline."""

    def __init__(self, deliver: Deliver, default_timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self._deliver = deliver
        self.default_timeout_ms = default_timeout_ms
        self._pending: Dict[str, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, correlation_id: str) -> bool:
        return correlation_id in self._pending

    async def send(self, message: BaseMessage, timeout_ms: Optional[int] = None) -> Any:
        """
        Deliver message and wait for its correlated response.

        Never raises for transport problems: a timeout or a failed delivery
        resolves to an Unreachable error envelope.
        """
        if timeout_ms is None:
            timeout_ms = self.default_timeout_ms

        loop = asyncio.get_running_loop()
        correlation_id = new_correlation_id()
        while correlation_id in self._pending:
            correlation_id = new_correlation_id()

        now = loop.time()
        entry = PendingRequest(
            correlation_id=correlation_id,
            created_at=now,
            deadline=now + timeout_ms / 1000,
            future=loop.create_future(),
        )
        entry.timer = loop.call_at(entry.deadline, self.on_timeout, correlation_id)
        self._pending[correlation_id] = entry

        outbound = message.with_correlation_id(correlation_id)
        try:
            self._deliver(outbound)
        except Exception as e:
            logger.warning(f"Delivery of {outbound.type} {correlation_id} failed: {e}")
            self._settle(correlation_id, Unreachable(f"Could not reach host plugin: {e}").to_response())
        else:
            logger.debug(f"Sent {outbound.type} {correlation_id} (timeout {timeout_ms}ms)")

        try:
            return await entry.future
        finally:
            # caller cancelled: drop the entry so the timer cannot fire later
            if self._pending.get(correlation_id) is entry:
                self._pending.pop(correlation_id)
                entry.settle(None)

    def resolve(self, correlation_id: str, response: Any) -> bool:
        """Settle a pending request with its response. Late or unknown IDs are ignored."""
        if self._settle(correlation_id, response):
            logger.debug(f"Resolved {correlation_id}")
            return True
        logger.debug(f"Ignoring response for unknown or settled request {correlation_id}")
        return False

    def on_timeout(self, correlation_id: str) -> bool:
        if self._settle(correlation_id, Unreachable().to_response()):
            logger.warning(f"Request {correlation_id} timed out waiting for host plugin")
            return True
        return False

    def close(self) -> None:
        """Settle everything still pending as unreachable."""
        for correlation_id in list(self._pending):
            self._settle(correlation_id, Unreachable("Bridge detached before a response arrived").to_response())

    def _settle(self, correlation_id: str, response: Any) -> bool:
        # pop first: a second settlement finds nothing
        entry = self._pending.pop(correlation_id, None)
        if entry is None:
            return False
        return entry.settle(response)
