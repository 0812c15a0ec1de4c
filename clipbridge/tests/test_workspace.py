"""Tests for the in-memory workspace and its JSON persistence."""

import pytest

from clipbridge.host.model import NodeKind, bold, hashtag, link, text
from clipbridge.host.workspace import Workspace, WorkspaceUI


@pytest.mark.asyncio
async def test_line_items_keep_document_order():
    workspace = Workspace()
    record = workspace.add_record("Notes")

    first = await record.create_line_item(None, None, NodeKind.TEXT)
    second = await record.create_line_item(None, first, NodeKind.TEXT)
    child = await record.create_line_item(first, None, NodeKind.QUOTE)
    # after=None puts the line first among its siblings
    zeroth = await record.create_line_item(None, None, NodeKind.TEXT)

    items = await record.get_line_items()
    assert [i.guid for i in items] == [zeroth.guid, first.guid, child.guid, second.guid]
    assert child.parent_guid == first.guid
    assert first.parent_guid == record.guid


@pytest.mark.asyncio
async def test_create_line_item_rejects_foreign_nodes():
    workspace = Workspace()
    a = workspace.add_record("A")
    b = workspace.add_record("B")
    foreign = await b.create_line_item(None, None, NodeKind.TEXT)

    assert await a.create_line_item(foreign, None, NodeKind.TEXT) is None
    assert await a.create_line_item(None, foreign, NodeKind.TEXT) is None
    assert await a.get_line_items() == []


def test_duplicate_record_guid():
    workspace = Workspace()
    workspace.add_record("One", guid="g1")
    with pytest.raises(ValueError):
        workspace.add_record("Two", guid="g1")


@pytest.mark.asyncio
async def test_collection_creates_records():
    workspace = Workspace()
    journal = workspace.add_collection("Journal")

    guid = await journal.create_record("Sunday, October 18, 2026")

    assert workspace.collection_named("JOURNAL") is journal
    assert [r.guid for r in await journal.get_all_records()] == [guid]
    assert (await workspace.get_record(guid)).name == "Sunday, October 18, 2026"


@pytest.mark.asyncio
async def test_search_by_query_matches_names_and_lines():
    workspace = Workspace()
    reading = workspace.add_record("Reading list")
    notes = workspace.add_record("Notes")
    line = await notes.create_line_item(None, None, NodeKind.TEXT)
    line.set_segments([text("see "), hashtag("#reading")])

    results = await workspace.search_by_query("READING", 10)

    assert results.records == [reading, notes]
    assert results.lines == [line]


@pytest.mark.asyncio
async def test_search_by_query_respects_limit():
    workspace = Workspace()
    for n in range(5):
        workspace.add_record(f"Page {n}")

    results = await workspace.search_by_query("page", 3)
    assert len(results.records) == 3


@pytest.mark.asyncio
async def test_save_and_load(tmp_path):
    workspace = Workspace()
    journal = workspace.add_collection("Journal")
    record = workspace.add_record("Today", collection=journal)
    title = await record.create_line_item(None, None, NodeKind.TEXT)
    title.set_segments([bold("Post")])
    url = await record.create_line_item(title, None, NodeKind.TEXT)
    url.set_segments([text("URL: "), link("https://e.co")])
    quote = await record.create_line_item(title, url, NodeKind.QUOTE)
    quote.set_segments([text("excerpt")])

    path = tmp_path / "nested" / "workspace.json"
    await workspace.save(path)
    loaded = await Workspace.load(path)

    assert not (path.parent / "workspace.json.tmp").exists()
    assert loaded.to_dict() == workspace.to_dict()
    copy = loaded.records[record.guid]
    assert [i.text for i in await copy.get_line_items()] == ["Post", "URL: https://e.co", "excerpt"]
    assert [i.kind for i in copy.children_of(title.guid)] == [NodeKind.TEXT, NodeKind.QUOTE]
    assert loaded.collection_named("journal").record_guids == [record.guid]


def test_ui_records_notifications():
    ui = WorkspaceUI()
    ui.notify("Captured!", '"Post" added to Journal')
    assert ui.notifications == [("Captured!", '"Post" added to Journal')]
    assert ui.get_active_record() is None
