"""End-to-end tests: extension client -> relay -> window -> host plugin and back."""

import asyncio

import pytest

from clipbridge.bridge.client import CONNECTED_TEXT, NOT_CONNECTED_TEXT
from clipbridge.bridge.messages import (
    DestinationRef,
    DestinationType,
    PageData,
)
from clipbridge.host.model import NodeKind, bold, hashtag, link, text
from clipbridge.host.workspace import Workspace, WorkspaceUI
from clipbridge.session import BridgeSession


@pytest.mark.asyncio
async def test_ping_reports_connected(session):
    assert await session.client.check_connection() is True
    assert session.client.status_text == CONNECTED_TEXT


@pytest.mark.asyncio
async def test_ready_status_reaches_extension(session):
    await session.window.drain()
    assert session.client.last_status == {"state": "ready"}
    assert session.client.connected


@pytest.mark.asyncio
async def test_capture_into_todays_journal(session, workspace, journal, ui):
    page = PageData(url="https://e.co/post", title="A post", content="one\ntwo")

    outcome = await session.client.capture(page)

    assert outcome.success
    assert outcome.message == 'Captured "A post"'
    entry = workspace.records[journal.record_guids[0]]
    assert entry.name == "Sunday, October 18, 2026"

    title, url, one, two = await entry.get_line_items()
    assert title.segments == [bold("A post"), text(" "), hashtag("#web-capture"), text(" ")]
    assert url.segments == [text("URL: "), link("https://e.co/post")]
    assert [one.kind, two.kind] == [NodeKind.QUOTE, NodeKind.QUOTE]
    assert ui.notifications == [("Captured!", '"A post" added to Journal')]


@pytest.mark.asyncio
async def test_link_capture_to_page(session, workspace, notifier):
    target = workspace.add_record("Reading list")
    destination = DestinationRef(type=DestinationType.PAGE, page_guid=target.guid)

    outcome = await session.client.capture(
        PageData(url="https://e.co", title="Example"), tags=[], destination=destination
    )

    assert outcome.success
    title, url = await target.get_line_items()
    assert title.segments == [bold("Example"), text(" — "), text("Oct 18, 2026, 3:04 PM")]
    assert url.parent_guid == title.guid
    assert notifier.messages == [("Sent to host", 'Captured "Example"')]


@pytest.mark.asyncio
async def test_capture_to_missing_page_surfaces_message(session):
    destination = DestinationRef(type=DestinationType.PAGE, page_guid="gone")

    outcome = await session.client.capture(PageData(url="u", title="t"), destination=destination)

    assert not outcome.success
    assert outcome.message.startswith("Failed to send to host: Destination not found")


@pytest.mark.asyncio
async def test_page_destination_requires_selection(session):
    destination = DestinationRef(type=DestinationType.PAGE)
    outcome = await session.client.capture(PageData(url="u", title="t"), destination=destination)
    assert outcome.message == "Please select a page to send to"


@pytest.mark.asyncio
async def test_search_and_tags(session, workspace):
    review = workspace.add_record("Weekly review")
    await session.client.capture(PageData(url="https://e.co", title="Tagged"), tags=["#weekly"])

    assert await session.client.search_pages("week") == [{"guid": review.guid, "name": "Weekly review"}]
    assert await session.client.suggest_tags("week") == ["#weekly"]


@pytest.mark.asyncio
async def test_short_search_never_leaves_extension(session):
    sent = []
    original = session.runtime.send_message

    async def spy(message):
        sent.append(message)
        return await original(message)

    session.runtime.send_message = spy
    assert await session.client.search_pages(" a ") == []
    assert sent == []


@pytest.mark.asyncio
async def test_concurrent_requests_each_get_their_answer(session, workspace):
    workspace.add_record("Alpha page")
    workspace.add_record("Beta page")

    alpha, beta, ping = await asyncio.gather(
        session.relay.request({"type": "SEARCH", "query": "alpha"}),
        session.relay.request({"type": "SEARCH", "query": "beta"}),
        session.relay.request({"type": "PING"}),
    )

    assert [r["name"] for r in alpha] == ["Alpha page"]
    assert [r["name"] for r in beta] == ["Beta page"]
    assert ping == {"connected": True}
    assert session.relay.tracker.pending_count == 0


@pytest.mark.asyncio
async def test_unknown_request_rejected_by_relay(session):
    result = await session.relay.request({"type": "GET_CONTENT"})
    assert result["code"] == "unknown_message_type"


@pytest.mark.asyncio
async def test_unrelated_window_traffic_is_ignored(session):
    session.window.post({"type": "PING", "correlationId": "x", "source": "someone-else"})
    await session.window.drain()
    assert session.relay.tracker.pending_count == 0


@pytest.mark.asyncio
async def test_missing_plugin_times_out_as_not_connected():
    bridge = BridgeSession(Workspace(), WorkspaceUI(), timeout_ms=50, with_plugin=False)
    await bridge.start()
    try:
        assert await bridge.client.check_connection() is False
        assert bridge.client.status_text == NOT_CONNECTED_TEXT

        outcome = await bridge.client.capture(PageData(url="u", title="t"))
        assert not outcome.success
        assert "Timeout waiting for host plugin" in outcome.message
    finally:
        await bridge.stop()


@pytest.mark.asyncio
async def test_quick_capture_without_host_tab(notifier):
    bridge = BridgeSession(Workspace(), WorkspaceUI(), notifier=notifier)
    outcome = await bridge.client.quick_capture(PageData(url="u", title="t"))

    assert outcome.message == "Please open the host in a tab first"
    assert notifier.messages == [("Capture failed", "Please open the host in a tab first")]
    assert not bridge.client.connected


@pytest.mark.asyncio
async def test_quick_capture_uses_defaults(session, workspace, journal):
    outcome = await session.client.quick_capture(PageData(url="https://e.co", title="Quick"))

    assert outcome.success
    entry = workspace.records[journal.record_guids[0]]
    title, url = await entry.get_line_items()
    assert title.segments == [bold("Quick")]


@pytest.mark.asyncio
async def test_stop_marks_extension_disconnected(workspace, ui):
    bridge = BridgeSession(workspace, ui)
    await bridge.start()
    await bridge.client.check_connection()
    assert bridge.client.connected

    await bridge.stop()
    assert not bridge.client.connected
    assert bridge.client.last_status == {"state": "stopped"}


class SlowWorkspace(Workspace):
    """Record lookups take long enough for a stop() to land mid-capture."""

    async def get_record(self, guid):
        await asyncio.sleep(0.05)
        return await super().get_record(guid)


@pytest.mark.asyncio
async def test_stop_waits_for_inflight_capture():
    workspace = SlowWorkspace()
    target = workspace.add_record("Reading list")
    destination = DestinationRef(type=DestinationType.PAGE, page_guid=target.guid)
    bridge = BridgeSession(workspace, WorkspaceUI())
    await bridge.start()

    capture = asyncio.create_task(
        bridge.client.capture(PageData(url="https://e.co", title="Late"), tags=[], destination=destination)
    )
    await asyncio.sleep(0.01)
    await bridge.stop()
    outcome = await capture

    lines = await target.get_line_items()
    assert outcome.success, outcome.message
    assert len(lines) == 2
    assert lines[0].segments[0] == bold("Late")
