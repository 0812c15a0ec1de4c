"""Bridge relay: the extension's foothold inside the host tab.

Requests arrive over the runtime channel, get a correlation ID and are
posted on the window channel for the host plugin. RESPONSE messages coming
back settle the matching request; STATUS_UPDATE messages are forwarded to
extension listeners.
"""

from typing import Any, Dict, Optional

from loguru import logger
from pydantic import ValidationError

from .channel import RuntimeChannel, WindowChannel
from .correlation import DEFAULT_TIMEOUT_MS, CorrelationTracker
from .errors import InvalidMessage, UnknownMessageType, is_error
from .messages import (
    ContextTag,
    MessageType,
    ResponseMessage,
    StatusUpdateMessage,
    declared_type,
    parse_message,
)
from .router import RpcRouter
from .transport import RuntimeTransport, WindowTransport

REQUEST_TYPES = frozenset({
    MessageType.PING,
    MessageType.CAPTURE,
    MessageType.SEARCH,
    MessageType.GET_TAGS,
})


class BridgeRelay:
    """Relays extension requests to the host plugin and correlates replies."""

    def __init__(
        self,
        runtime: RuntimeChannel,
        window: WindowChannel,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.runtime_transport = RuntimeTransport(runtime)
        self.window_transport = WindowTransport(
            window, local=ContextTag.EXTENSION_BRIDGE, counterpart=ContextTag.HOST_PLUGIN
        )
        self.tracker = CorrelationTracker(self.window_transport.deliver_outbound, timeout_ms)
        self.router = RpcRouter("bridge", {
            MessageType.RESPONSE: self._on_response,
            MessageType.STATUS_UPDATE: self._on_status_update,
        })
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self) -> bool:
        if self._attached:
            logger.warning("Bridge relay already attached")
            return False
        self.window_transport.on_inbound_message(self._on_window_message)
        self.runtime_transport.on_inbound_message(self._on_runtime_request)
        self.window_transport.attach()
        self.runtime_transport.attach()
        self._attached = True
        logger.info("Bridge relay ready and listening")
        return True

    def detach(self) -> None:
        if not self._attached:
            return
        self.runtime_transport.detach()
        self.window_transport.detach()
        self.tracker.close()
        self._attached = False
        logger.info("Bridge relay detached")

    async def request(self, raw: Dict[str, Any], timeout_ms: Optional[int] = None) -> Any:
        """Forward one extension request to the host and wait for the reply."""
        message_type = declared_type(raw)
        if message_type not in REQUEST_TYPES:
            return UnknownMessageType(f"Unknown message type: {raw.get('type')}").to_response()
        try:
            message = parse_message({**raw, "source": ContextTag.EXTENSION_BRIDGE.value})
        except ValidationError:
            return InvalidMessage(f"Invalid {message_type.value} message").to_response()

        logger.debug(f"Forwarding {message_type.value} to host plugin")
        response = await self.tracker.send(message, timeout_ms)
        if is_error(response):
            logger.debug(f"{message_type.value} returned error: {response['error']}")
        return response

    async def _on_runtime_request(self, raw: Dict[str, Any]) -> Any:
        return await self.request(raw)

    async def _on_window_message(self, raw: Dict[str, Any]) -> None:
        result = await self.router.dispatch(raw)
        if is_error(result):
            logger.debug(f"Ignored host message {raw.get('type')!r}: {result['error']}")

    async def _on_response(self, message: ResponseMessage) -> None:
        self.tracker.resolve(message.correlation_id, message.response)

    async def _on_status_update(self, message: StatusUpdateMessage) -> None:
        logger.debug("Forwarding status update to extension")
        self.runtime_transport.deliver_outbound(message)
