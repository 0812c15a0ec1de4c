"""In-process stand-ins for the two channels a capture crosses.

WindowChannel is the shared post-message channel between scripts running
in the host document. RuntimeChannel is the extension's private runtime
messaging between the popup/background and the bridge in the host tab.
"""

import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from loguru import logger

Listener = Callable[[Dict[str, Any]], Any]
Receiver = Callable[[Dict[str, Any]], Awaitable[Any]]


class WindowChannel:
    """
    Async broadcast channel for JSON-shaped messages.

    Every posted mapping is delivered to every listener, including the
    poster's own. Delivery is asynchronous: post() returns before any
    listener runs. Each listener invocation runs as its own task, so a slow
    handler never holds up the next message.
    """

    def __init__(self, maxsize: int = 1000):
        self._listeners: List[Listener] = []
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._running = False
        self._processor_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._stats = defaultdict(int)

    @property
    def running(self) -> bool:
        return self._running

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [l for l in self._listeners if l != listener]

    def post(self, message: Mapping[str, Any]) -> bool:
        """
        Queue a message for delivery.
        Returns False if the queue is full and the message was dropped.
        """
        try:
            self._queue.put_nowait(dict(message))
        except asyncio.QueueFull:
            logger.warning(f"Window channel full, dropping {message.get('type')}")
            self._stats['dropped'] += 1
            return False
        self._stats['posted'] += 1
        return True

    async def start(self) -> None:
        if self._running:
            logger.warning("Window channel already running")
            return
        self._running = True
        self._processor_task = asyncio.create_task(self._process_messages())
        logger.info("Window channel started")

    async def stop(self) -> None:
        self._running = False
        if self._processor_task:
            self._processor_task.cancel()
            try:
                await self._processor_task
            except asyncio.CancelledError:
                pass
            self._processor_task = None
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        logger.info("Window channel stopped")

    async def drain(self) -> None:
        """Wait until queued messages and the handlers they started are done."""
        while self._running and (self._queue.qsize() or self._inflight):
            await asyncio.sleep(0)
            if self._inflight:
                await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _process_messages(self) -> None:
        while self._running:
            message = await self._queue.get()
            for listener in list(self._listeners):
                self._spawn(listener, message)
            self._stats['delivered'] += 1

    def _spawn(self, listener: Listener, message: Dict[str, Any]) -> None:
        async def invoke():
            result = listener(message)
            if asyncio.iscoroutine(result):
                await result

        task = asyncio.create_task(invoke())
        self._inflight.add(task)
        task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Window listener error: {error}")
            self._stats['listener_errors'] += 1

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)


class RuntimeChannel:
    """
    Extension runtime messaging.

    One receiver (the bridge in the open host tab) answers requests.
    Extension-side listeners receive what the bridge broadcasts.
    """

    def __init__(self):
        self._receiver: Optional[Receiver] = None
        self._listeners: List[Listener] = []

    @property
    def has_receiver(self) -> bool:
        return self._receiver is not None

    def register_receiver(self, receiver: Receiver) -> None:
        if self._receiver is not None and self._receiver != receiver:
            raise RuntimeError("A bridge is already registered on this runtime channel")
        self._receiver = receiver

    def unregister_receiver(self, receiver: Receiver) -> None:
        if self._receiver == receiver:
            self._receiver = None

    async def send_message(self, message: Mapping[str, Any]) -> Optional[Any]:
        """Send to the bridge and await its reply; None when no host tab is open."""
        if self._receiver is None:
            logger.debug(f"No bridge registered, {message.get('type')} not sent")
            return None
        return await self._receiver(dict(message))

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [l for l in self._listeners if l != listener]

    def broadcast(self, message: Mapping[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(dict(message))
            except Exception as e:
                logger.error(f"Runtime listener error: {e}")
