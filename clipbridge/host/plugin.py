"""Host plugin: answers bridge requests from inside the host document."""

from typing import Any, Dict, List, Optional

from loguru import logger

from clipbridge.bridge.channel import WindowChannel
from clipbridge.bridge.config import Config
from clipbridge.bridge.messages import (
    CaptureMessage,
    ContextTag,
    GetTagsMessage,
    MessageType,
    PingMessage,
    ResponseMessage,
    SearchMessage,
    StatusUpdateMessage,
)
from clipbridge.bridge.router import RpcRouter
from clipbridge.bridge.transport import WindowTransport

from .destination import DestinationResolver
from .model import HostUI, RecordIndex, SegmentKind
from .outline import OutlineBuilder

TAG_SEARCH_LIMIT = 50


class HostPlugin:
    """
    Listens on the window channel for extension requests.

    Handlers:
    - PING: liveness, no side effects
    - CAPTURE: resolve destination, insert outline
    - SEARCH: pages by name, then by content
    - GET_TAGS: hashtag suggestions
    """

    def __init__(
        self,
        index: RecordIndex,
        ui: Optional[HostUI],
        window: WindowChannel,
        config: Optional[Config] = None,
        resolver: Optional[DestinationResolver] = None,
        builder: Optional[OutlineBuilder] = None,
    ):
        self.index = index
        self.ui = ui
        self.config = config or Config()
        self.limits = self.config.limits
        self.transport = WindowTransport(
            window, local=ContextTag.HOST_PLUGIN, counterpart=ContextTag.EXTENSION_BRIDGE
        )
        self.resolver = resolver or DestinationResolver(index, ui)
        self.builder = builder or OutlineBuilder(ui, self.limits)
        self.router = RpcRouter("host", {
            MessageType.PING: self.handle_ping,
            MessageType.CAPTURE: self.handle_capture,
            MessageType.SEARCH: self.handle_search,
            MessageType.GET_TAGS: self.handle_get_tags,
        })
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self) -> bool:
        if self._attached:
            logger.warning("Host plugin already attached")
            return False
        self.transport.on_inbound_message(self._on_message)
        self.transport.attach()
        self._attached = True
        self.publish_status("ready")
        logger.info("Host plugin loaded and ready")
        return True

    def detach(self) -> None:
        if not self._attached:
            return
        self.publish_status("stopped")
        self.transport.detach()
        self._attached = False
        logger.info("Host plugin unloaded")

    def publish_status(self, state: str, **details: Any) -> None:
        if not self.transport.attached:
            return
        try:
            self.transport.deliver_outbound(StatusUpdateMessage(status={"state": state, **details}))
        except ConnectionError as e:
            logger.debug(f"Status update {state!r} not sent: {e}")

    async def _on_message(self, raw: Dict[str, Any]) -> None:
        correlation_id = str(raw.get("correlationId") or "")
        logger.debug(f"Received {raw.get('type')} {correlation_id}")
        response = await self.router.dispatch(raw)
        self.transport.deliver_outbound(
            ResponseMessage(correlation_id=correlation_id, response=response)
        )

    async def handle_ping(self, message: PingMessage) -> Dict[str, bool]:
        return {"connected": True}

    async def handle_capture(self, message: CaptureMessage) -> Dict[str, Any]:
        payload = message.payload
        logger.info(
            f"Processing {payload.mode.value} capture {payload.title!r} "
            f"-> {payload.destination.type.value}"
        )
        anchor = await self.resolver.resolve(payload.destination)
        result = await self.builder.insert(payload, anchor)
        if result.get("success"):
            self.publish_status("captured", title=payload.title)
        return result

    async def handle_search(self, message: SearchMessage) -> List[Dict[str, str]]:
        query = message.query
        if len(query) < self.limits.min_query_length:
            return []
        limit = self.limits.max_search_results

        needle = query.lower()
        matches = [
            {"guid": record.guid, "name": record.name}
            for record in await self.index.get_all_records()
            if record.name and needle in record.name.lower()
        ]
        if matches:
            return matches[:limit]

        results = await self.index.search_by_query(query, limit)
        logger.debug(f"Content search for {query!r} found {len(results.records)} records")
        return [{"guid": r.guid, "name": r.name} for r in results.records][:limit]

    async def handle_get_tags(self, message: GetTagsMessage) -> List[str]:
        query = message.query
        if not query:
            return []

        tag_query = query if query.startswith("#") else "#" + query
        tags = await self._hashtags_matching(tag_query)
        if not tags:
            plain = query[1:] if query.startswith("#") else query
            tags = [t for t in await self._hashtags_matching(plain) if plain.lower() in t.lower()]
        return tags[:self.limits.max_tag_suggestions]

    async def _hashtags_matching(self, query: str) -> List[str]:
        results = await self.index.search_by_query(query, TAG_SEARCH_LIMIT)
        found: Dict[str, None] = {}
        for line in results.lines:
            for segment in line.segments or []:
                if segment.kind == SegmentKind.HASHTAG:
                    tag = segment.text if segment.text.startswith("#") else "#" + segment.text
                    found.setdefault(tag, None)
        return list(found)
