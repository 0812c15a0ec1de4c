"""Transport adapters: move messages across exactly one boundary.

Adapters never rewrite a message. They only filter what they hand inward
by the declared source tag, so unrelated producers sharing a channel are
ignored.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger

from .channel import RuntimeChannel, WindowChannel
from .messages import BaseMessage, ContextTag

InboundHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class WindowTransport:
    """One context's end of the shared window channel."""

    def __init__(self, channel: WindowChannel, local: ContextTag, counterpart: ContextTag):
        self.channel = channel
        self.local = local
        self.counterpart = counterpart
        self._handler: Optional[InboundHandler] = None
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    def on_inbound_message(self, handler: InboundHandler) -> None:
        self._handler = handler

    def attach(self) -> bool:
        if self._attached:
            logger.warning(f"{self.local.value} transport already attached")
            return False
        self.channel.add_listener(self._on_window_message)
        self._attached = True
        return True

    def detach(self) -> None:
        if not self._attached:
            return
        self.channel.remove_listener(self._on_window_message)
        self._attached = False

    def deliver_outbound(self, message: BaseMessage) -> None:
        """Post a message; raises ConnectionError when it cannot be queued."""
        if not self._attached:
            raise ConnectionError(f"{self.local.value} transport is not attached")
        if not self.channel.running:
            raise ConnectionError("window channel is not running")
        if not self.channel.post(message.to_wire()):
            raise ConnectionError("window channel is full")

    async def _on_window_message(self, raw: Dict[str, Any]) -> None:
        if raw.get("source") != self.counterpart.value:
            return
        if self._handler is None:
            logger.debug(f"{self.local.value} has no inbound handler, dropping {raw.get('type')}")
            return
        await self._handler(raw)


class RuntimeTransport:
    """The bridge's end of the extension runtime channel."""

    def __init__(self, channel: RuntimeChannel):
        self.channel = channel
        self._handler: Optional[InboundHandler] = None
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    def on_inbound_message(self, handler: InboundHandler) -> None:
        self._handler = handler

    def attach(self) -> bool:
        if self._attached:
            logger.warning("Runtime transport already attached")
            return False
        self.channel.register_receiver(self._on_runtime_message)
        self._attached = True
        return True

    def detach(self) -> None:
        if not self._attached:
            return
        self.channel.unregister_receiver(self._on_runtime_message)
        self._attached = False

    def deliver_outbound(self, message: BaseMessage) -> None:
        self.channel.broadcast(message.to_wire())

    async def _on_runtime_message(self, raw: Dict[str, Any]) -> Any:
        if self._handler is None:
            return None
        return await self._handler(raw)
