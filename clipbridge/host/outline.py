"""Turn a capture payload into outline lines under an anchor record.

Layout of one capture:

    **Title** — Oct 18, 2026, 3:04 PM #tag
      URL: https://example.com
      > first non-blank line of the excerpt
      > ...
      https://example.com/image.png

The title line goes after the anchor's last top-level line; everything
else is a child of the title line, in payload order.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from clipbridge.bridge.config import LimitsConfig
from clipbridge.bridge.errors import (
    BridgeError,
    CollaboratorError,
    DestinationNotFound,
    NodeCreationFailed,
)
from clipbridge.bridge.messages import CaptureMode, CapturePayload

from .dates import format_timestamp
from .model import ContentNode, HostUI, NodeKind, Record, Segment, bold, hashtag, link, text

Row = Tuple[NodeKind, List[Segment]]


@dataclass
class OutlinePlan:
    title: List[Segment]
    children: List[Row] = field(default_factory=list)


def title_segments(payload: CapturePayload, now: datetime) -> List[Segment]:
    segments = [bold(payload.title or "Untitled")]
    if not payload.destination.is_journal:
        segments.append(text(" — "))
        segments.append(text(format_timestamp(now)))
    if payload.tags:
        segments.append(text(" "))
        for tag in payload.tags:
            segments.append(hashtag(tag))
            segments.append(text(" "))
    return segments


def content_lines(content: str, limit: int) -> List[str]:
    lines = [line.strip() for line in content.split("\n") if line.strip()]
    return lines[:limit]


def image_links(images: List[str], limit: int) -> List[str]:
    # embedded data: URIs still count toward the limit but are not inserted
    return [src for src in images[:limit] if not src.startswith("data:")]


def plan_outline(payload: CapturePayload, limits: LimitsConfig, now: datetime) -> OutlinePlan:
    """Pure layout of one capture; nothing touches the host here."""
    plan = OutlinePlan(title=title_segments(payload, now))
    if payload.url:
        plan.children.append((NodeKind.TEXT, [text("URL: "), link(payload.url)]))
    if payload.mode == CaptureMode.LINK:
        return plan

    for line in content_lines(payload.content, limits.max_lines):
        plan.children.append((NodeKind.QUOTE, [text(line)]))
    for src in image_links(payload.images, limits.max_images):
        plan.children.append((NodeKind.TEXT, [link(src)]))
    return plan


class OutlineBuilder:
    """Inserts capture lines into a record through the host's node API."""

    def __init__(
        self,
        ui: Optional[HostUI] = None,
        limits: Optional[LimitsConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.ui = ui
        self.limits = limits or LimitsConfig()
        self.clock = clock

    async def insert(self, payload: CapturePayload, anchor: Optional[Record]) -> Dict[str, object]:
        """Insert the capture; returns {"success": True} or an error envelope."""
        if anchor is None:
            return DestinationNotFound().to_response()

        plan = plan_outline(payload, self.limits, self.clock())
        try:
            created = await self._insert_plan(anchor, plan)
        except BridgeError as e:
            logger.error(f"Capture into {anchor.name!r} failed: {e.message}")
            return e.to_response()
        except Exception as e:
            logger.exception(f"Capture into {anchor.name!r} failed: {e}")
            return CollaboratorError(str(e) or type(e).__name__).to_response()

        logger.info(f"Inserted {created} line(s) into {anchor.name!r}")
        self._notify_success(payload, anchor)
        return {"success": True}

    async def _insert_plan(self, anchor: Record, plan: OutlinePlan) -> int:
        after = await last_direct_child(anchor)
        title = await self._create(anchor, None, after, NodeKind.TEXT, plan.title)

        cursor: Optional[ContentNode] = None
        for kind, segments in plan.children:
            cursor = await self._create(anchor, title, cursor, kind, segments)
        return 1 + len(plan.children)

    async def _create(
        self,
        anchor: Record,
        parent: Optional[ContentNode],
        after: Optional[ContentNode],
        kind: NodeKind,
        segments: List[Segment],
    ) -> ContentNode:
        """Create one line and return it as the cursor for the next sibling."""
        node = await anchor.create_line_item(parent, after, kind)
        if node is None:
            raise NodeCreationFailed()
        node.set_segments(segments)
        return node

    def _notify_success(self, payload: CapturePayload, anchor: Record) -> None:
        if self.ui is None:
            return
        title = payload.title or "Untitled"
        short = title[:40] + "..." if len(title) > 40 else title
        where = "Journal" if payload.destination.is_journal else anchor.name
        try:
            self.ui.notify("Captured!", f'"{short}" added to {where}')
        except Exception as e:
            logger.warning(f"Could not show capture notification: {e}")


async def last_direct_child(anchor: Record) -> Optional[ContentNode]:
    """The anchor's last top-level line in document order, if any."""
    last = None
    for item in await anchor.get_line_items():
        if item.parent_guid == anchor.guid:
            last = item
    return last
