"""Extension-side API: what the popup and background worker call."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from loguru import logger

from .channel import RuntimeChannel
from .config import Config
from .errors import Unreachable, error_message, is_error
from .messages import (
    BaseMessage,
    CaptureMessage,
    CaptureMode,
    CapturePayload,
    DestinationRef,
    DestinationType,
    GetTagsMessage,
    MessageType,
    PageData,
    PingMessage,
    SearchMessage,
)

CONNECTED_TEXT = "Connected to host"
NOT_CONNECTED_TEXT = "Not connected - open the host in a tab"


class Notifier(Protocol):
    def notify(self, title: str, message: str) -> None:
        ...


@dataclass
class CaptureOutcome:
    """Result of a capture as the user should see it."""
    success: bool
    message: str


def truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class ExtensionClient:
    """Sends requests through the runtime channel and tracks connectivity."""

    def __init__(
        self,
        runtime: RuntimeChannel,
        config: Optional[Config] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.runtime = runtime
        self.config = config or Config()
        self.notifier = notifier
        self.connected = False
        self.last_status: Optional[Dict[str, Any]] = None
        runtime.add_listener(self._on_runtime_message)

    @property
    def status_text(self) -> str:
        return CONNECTED_TEXT if self.connected else NOT_CONNECTED_TEXT

    def close(self) -> None:
        self.runtime.remove_listener(self._on_runtime_message)

    async def check_connection(self) -> bool:
        response = await self._send(PingMessage())
        self._set_connected(isinstance(response, dict) and response.get("connected") is True)
        return self.connected

    async def capture(
        self,
        page: PageData,
        tags: Optional[List[str]] = None,
        destination: Optional[DestinationRef] = None,
        mode: Optional[CaptureMode] = None,
    ) -> CaptureOutcome:
        if destination is None:
            destination = DestinationRef(type=self.config.capture.default_destination)
        if destination.type == DestinationType.PAGE and not destination.page_guid:
            return CaptureOutcome(False, "Please select a page to send to")
        if tags is None:
            tags = [self.config.capture.default_tag] if self.config.capture.default_tag else []

        payload = CapturePayload.from_page(page, tags=tags, destination=destination, mode=mode)
        response = await self._send(CaptureMessage(payload=payload))

        if isinstance(response, dict) and response.get("success"):
            message = f'Captured "{truncate(page.title, 50)}"'
            if self.config.capture.show_notification and self.notifier:
                self.notifier.notify("Sent to host", message)
            return CaptureOutcome(True, message)

        reason = error_message(response)
        logger.error(f"Capture failed: {reason}")
        return CaptureOutcome(False, f"Failed to send to host: {reason}")

    async def quick_capture(self, page: PageData) -> CaptureOutcome:
        """Capture with default settings, as the context menu and shortcut do."""
        if not self.runtime.has_receiver:
            outcome = CaptureOutcome(False, "Please open the host in a tab first")
        else:
            outcome = await self.capture(page, tags=[])
        if not outcome.success and self.notifier:
            self.notifier.notify("Capture failed", outcome.message)
        return outcome

    async def search_pages(self, query: str) -> List[Dict[str, Any]]:
        query = query.strip()
        if len(query) < self.config.limits.min_query_length:
            return []
        response = await self._send(SearchMessage(query=query))
        return response if isinstance(response, list) else []

    async def suggest_tags(self, query: str) -> List[str]:
        query = query.strip()
        if not query:
            return []
        response = await self._send(GetTagsMessage(query=query))
        return response if isinstance(response, list) else []

    async def _send(self, message: BaseMessage) -> Any:
        response = await self.runtime.send_message(message.to_wire())
        if response is None:
            self._set_connected(False)
        elif is_error(response) and response.get("code") == Unreachable.code:
            self._set_connected(False)
        return response

    def _set_connected(self, connected: bool) -> None:
        if connected != self.connected:
            logger.info(CONNECTED_TEXT if connected else NOT_CONNECTED_TEXT)
        self.connected = connected

    def _on_runtime_message(self, raw: Dict[str, Any]) -> None:
        if raw.get("type") != MessageType.STATUS_UPDATE.value:
            return
        self.last_status = raw.get("status") or {}
        state = self.last_status.get("state")
        if state in ("ready", "captured"):
            self._set_connected(True)
        elif state == "stopped":
            self._set_connected(False)
