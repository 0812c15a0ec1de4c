"""Static dispatch table from message type to handler."""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from loguru import logger
from pydantic import ValidationError

from .errors import BridgeError, CollaboratorError, InvalidMessage, UnknownMessageType
from .messages import BaseMessage, MessageType, declared_type, parse_message

Handler = Callable[[BaseMessage], Awaitable[Any]]


class RpcRouter:
    """
    Routes each inbound message to exactly one handler.

    dispatch() never raises: unknown types, malformed messages and handler
    exceptions all come back as error envelopes.
    """

    def __init__(self, name: str, handlers: Optional[Mapping[MessageType, Handler]] = None):
        self.name = name
        self._handlers: Dict[MessageType, Handler] = dict(handlers or {})

    @property
    def message_types(self):
        return frozenset(self._handlers)

    def handles(self, message_type: Optional[MessageType]) -> bool:
        return message_type in self._handlers

    async def dispatch(self, raw: Union[BaseMessage, Mapping[str, Any]]) -> Any:
        message_type = declared_type(raw)
        handler = self._handlers.get(message_type) if message_type else None
        if handler is None:
            raw_type = raw.get("type") if isinstance(raw, Mapping) else raw.type
            logger.warning(f"[{self.name}] Unknown message type: {raw_type!r}")
            return UnknownMessageType(f"Unknown message type: {raw_type}").to_response()

        try:
            message = parse_message(raw)
        except ValidationError as e:
            logger.warning(f"[{self.name}] Invalid {message_type.value} message: {e.error_count()} error(s)")
            return InvalidMessage(f"Invalid {message_type.value} message").to_response()

        try:
            return await handler(message)
        except BridgeError as e:
            logger.info(f"[{self.name}] {message_type.value} failed: {e.message}")
            return e.to_response()
        except Exception as e:
            logger.exception(f"[{self.name}] Error handling {message_type.value}: {e}")
            return CollaboratorError(str(e) or type(e).__name__).to_response()
