"""Host document model and the collaborator interfaces the plugin consumes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol


class SegmentKind(str, Enum):
    TEXT = "text"
    BOLD = "bold"
    HASHTAG = "hashtag"
    LINK = "link"
    LINKOBJ = "linkobj"


class NodeKind(str, Enum):
    TEXT = "text"
    QUOTE = "quote"


@dataclass(frozen=True)
class Segment:
    """A styled run of text inside one line."""
    kind: SegmentKind
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.kind.value, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        return cls(kind=SegmentKind(data["type"]), text=data.get("text", ""))


def text(value: str) -> Segment:
    return Segment(SegmentKind.TEXT, value)


def bold(value: str) -> Segment:
    return Segment(SegmentKind.BOLD, value)


def hashtag(value: str) -> Segment:
    return Segment(SegmentKind.HASHTAG, value)


def link(value: str) -> Segment:
    return Segment(SegmentKind.LINK, value)


@dataclass
class SearchResults:
    records: List["Record"] = field(default_factory=list)
    lines: List["ContentNode"] = field(default_factory=list)


class ContentNode(Protocol):
    """One line in a record's outline. parent_guid is the record guid for top-level lines."""
    guid: str
    parent_guid: Optional[str]
    kind: NodeKind
    segments: List[Segment]

    def set_segments(self, segments: List[Segment]) -> None:
        ...


class Record(Protocol):
    """A page in the host workspace; the anchor captures are inserted under."""
    guid: str
    name: str

    async def get_line_items(self) -> List[ContentNode]:
        """All lines of the record in document order."""
        ...

    async def create_line_item(
        self,
        parent: Optional[ContentNode],
        after: Optional[ContentNode],
        kind: NodeKind,
    ) -> Optional[ContentNode]:
        """
        Create an empty line under parent (None: top level of the record),
        directly after the sibling `after` (None: as the first child).
        """
        ...


class Collection(Protocol):
    name: str

    async def get_all_records(self) -> List[Record]:
        ...

    async def create_record(self, name: str) -> Optional[str]:
        """Create a record and return its guid, or None if the host refused."""
        ...


class RecordIndex(Protocol):
    async def get_all_collections(self) -> List[Collection]:
        ...

    async def get_all_records(self) -> List[Record]:
        ...

    async def get_record(self, guid: str) -> Optional[Record]:
        ...

    async def search_by_query(self, query: str, limit: int) -> SearchResults:
        ...


class HostUI(Protocol):
    def get_active_record(self) -> Optional[Record]:
        ...

    def notify(self, title: str, message: str) -> None:
        ...
