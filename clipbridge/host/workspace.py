"""In-memory host workspace.

Implements the record index, record and UI interfaces from model.py so the
plugin can run outside a real host (CLI, tests). A workspace round-trips to
a JSON file.
"""

import json
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import aiofiles
import ulid
from loguru import logger

from .model import NodeKind, SearchResults, Segment


def new_guid() -> str:
    return str(ulid.ULID())


@dataclass
class LineItem:
    """A line inside a record's outline."""
    guid: str
    parent_guid: Optional[str]
    kind: NodeKind = NodeKind.TEXT
    segments: List[Segment] = field(default_factory=list)

    def set_segments(self, segments: List[Segment]) -> None:
        self.segments = list(segments)

    @property
    def text(self) -> str:
        return "".join(s.text for s in self.segments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guid": self.guid,
            "parent": self.parent_guid,
            "kind": self.kind.value,
            "segments": [s.to_dict() for s in self.segments],
        }


class WorkspaceRecord:
    """A page whose lines form a tree rooted at the record itself."""

    def __init__(self, guid: str, name: str):
        self.guid = guid
        self.name = name
        self._items: Dict[str, LineItem] = {}
        self._children: Dict[str, List[str]] = defaultdict(list)

    def __repr__(self) -> str:
        return f"WorkspaceRecord(guid={self.guid!r}, name={self.name!r})"

    def iter_line_items(self) -> Iterator[LineItem]:
        """Lines in document order (pre-order)."""
        stack = list(reversed(self._children.get(self.guid, [])))
        while stack:
            item = self._items[stack.pop()]
            yield item
            stack.extend(reversed(self._children.get(item.guid, [])))

    def children_of(self, guid: Optional[str] = None) -> List[LineItem]:
        return [self._items[g] for g in self._children.get(guid or self.guid, [])]

    async def get_line_items(self) -> List[LineItem]:
        return list(self.iter_line_items())

    async def create_line_item(
        self,
        parent: Optional[LineItem],
        after: Optional[LineItem],
        kind: NodeKind,
    ) -> Optional[LineItem]:
        parent_guid = parent.guid if parent is not None else self.guid
        if parent_guid != self.guid and parent_guid not in self._items:
            logger.warning(f"Parent {parent_guid} is not in record {self.guid}")
            return None

        siblings = self._children[parent_guid]
        if after is None:
            position = 0
        elif after.guid in siblings:
            position = siblings.index(after.guid) + 1
        else:
            logger.warning(f"Sibling {after.guid} is not a child of {parent_guid}")
            return None

        item = LineItem(guid=new_guid(), parent_guid=parent_guid, kind=NodeKind(kind))
        self._items[item.guid] = item
        siblings.insert(position, item.guid)
        return item

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guid": self.guid,
            "name": self.name,
            "items": [item.to_dict() for item in self.iter_line_items()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkspaceRecord":
        record = cls(guid=data["guid"], name=data.get("name", ""))
        # items are stored in document order, so appending keeps sibling order
        for raw in data.get("items", []):
            item = LineItem(
                guid=raw["guid"],
                parent_guid=raw.get("parent") or record.guid,
                kind=NodeKind(raw.get("kind", "text")),
                segments=[Segment.from_dict(s) for s in raw.get("segments", [])],
            )
            record._items[item.guid] = item
            record._children[item.parent_guid].append(item.guid)
        return record


class WorkspaceCollection:
    def __init__(self, workspace: "Workspace", guid: str, name: str):
        self.workspace = workspace
        self.guid = guid
        self.name = name
        self.record_guids: List[str] = []

    def __repr__(self) -> str:
        return f"WorkspaceCollection(name={self.name!r}, records={len(self.record_guids)})"

    async def get_all_records(self) -> List[WorkspaceRecord]:
        return [self.workspace.records[g] for g in self.record_guids]

    async def create_record(self, name: str) -> Optional[str]:
        return self.workspace.add_record(name, collection=self).guid


class Workspace:
    """Record index over collections and records held in memory."""

    def __init__(self):
        self.collections: List[WorkspaceCollection] = []
        self.records: Dict[str, WorkspaceRecord] = {}

    def add_collection(self, name: str, guid: Optional[str] = None) -> WorkspaceCollection:
        collection = WorkspaceCollection(self, guid or new_guid(), name)
        self.collections.append(collection)
        return collection

    def add_record(
        self,
        name: str,
        collection: Optional[WorkspaceCollection] = None,
        guid: Optional[str] = None,
    ) -> WorkspaceRecord:
        record = WorkspaceRecord(guid or new_guid(), name)
        if record.guid in self.records:
            raise ValueError(f"Duplicate record guid: {record.guid}")
        self.records[record.guid] = record
        if collection is not None:
            collection.record_guids.append(record.guid)
        logger.debug(f"Created record {record.name!r} ({record.guid})")
        return record

    def collection_named(self, name: str) -> Optional[WorkspaceCollection]:
        for collection in self.collections:
            if collection.name.lower() == name.lower():
                return collection
        return None

    async def get_all_collections(self) -> List[WorkspaceCollection]:
        return list(self.collections)

    async def get_all_records(self) -> List[WorkspaceRecord]:
        return list(self.records.values())

    async def get_record(self, guid: str) -> Optional[WorkspaceRecord]:
        return self.records.get(guid)

    async def search_by_query(self, query: str, limit: int) -> SearchResults:
        """Case-insensitive substring search over record names and line text."""
        needle = query.lower()
        results = SearchResults()
        for record in self.records.values():
            record_hit = needle in record.name.lower()
            for item in record.iter_line_items():
                if needle in item.text.lower():
                    record_hit = True
                    if len(results.lines) < limit:
                        results.lines.append(item)
            if record_hit and len(results.records) < limit:
                results.records.append(record)
        return results

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collections": [
                {"guid": c.guid, "name": c.name, "records": list(c.record_guids)}
                for c in self.collections
            ],
            "records": [r.to_dict() for r in self.records.values()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workspace":
        workspace = cls()
        for raw in data.get("records", []):
            record = WorkspaceRecord.from_dict(raw)
            workspace.records[record.guid] = record
        for raw in data.get("collections", []):
            collection = workspace.add_collection(raw["name"], guid=raw.get("guid"))
            collection.record_guids = [g for g in raw.get("records", []) if g in workspace.records]
        return workspace

    @classmethod
    async def load(cls, path: Path) -> "Workspace":
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            data = json.loads(await f.read())
        workspace = cls.from_dict(data)
        logger.debug(f"Loaded workspace from {path}: {len(workspace.records)} records")
        return workspace

    async def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(self.to_dict(), indent=2))
        tmp_path.replace(path)
        logger.debug(f"Saved workspace to {path}")


class WorkspaceUI:
    """Host UI state: the record open in the active panel and toasts shown."""

    def __init__(self, active_record: Optional[WorkspaceRecord] = None):
        self.active_record = active_record
        self.notifications: List[Tuple[str, str]] = []

    def get_active_record(self) -> Optional[WorkspaceRecord]:
        return self.active_record

    def notify(self, title: str, message: str) -> None:
        logger.info(f"{title} {message}")
        self.notifications.append((title, message))
