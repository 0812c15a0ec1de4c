"""Tests for transport adapters."""

import pytest

from clipbridge.bridge.channel import RuntimeChannel, WindowChannel
from clipbridge.bridge.messages import (
    CaptureMessage,
    CapturePayload,
    ContextTag,
    PingMessage,
    StatusUpdateMessage,
)
from clipbridge.bridge.transport import RuntimeTransport, WindowTransport


@pytest.mark.asyncio
async def test_only_counterpart_messages_are_delivered():
    channel = WindowChannel()
    await channel.start()

    host = WindowTransport(channel, ContextTag.HOST_PLUGIN, ContextTag.EXTENSION_BRIDGE)
    received = []

    async def handler(raw):
        received.append(raw)

    host.on_inbound_message(handler)
    host.attach()

    channel.post({"type": "PING", "source": "some-other-script"})
    channel.post({"type": "PING"})
    host.deliver_outbound(StatusUpdateMessage(status={"state": "ready"}))
    channel.post(PingMessage(correlation_id="abc").to_wire())
    await channel.drain()

    assert received == [{"type": "PING", "correlationId": "abc", "source": "extension-bridge"}]
    await channel.stop()


@pytest.mark.asyncio
async def test_outbound_message_is_unmodified():
    channel = WindowChannel()
    await channel.start()
    bridge = WindowTransport(channel, ContextTag.EXTENSION_BRIDGE, ContextTag.HOST_PLUGIN)
    bridge.attach()
    seen = []
    channel.add_listener(seen.append)

    message = CaptureMessage(
        correlation_id="01J0000000000000000000000",
        payload=CapturePayload(title="Example", url="https://e.co", tags=["#a"]),
    )
    bridge.deliver_outbound(message)
    await channel.drain()

    assert seen == [message.to_wire()]
    await channel.stop()


def test_deliver_requires_attach():
    transport = WindowTransport(WindowChannel(), ContextTag.HOST_PLUGIN, ContextTag.EXTENSION_BRIDGE)
    with pytest.raises(ConnectionError):
        transport.deliver_outbound(PingMessage())


@pytest.mark.asyncio
async def test_deliver_requires_running_channel():
    transport = WindowTransport(WindowChannel(), ContextTag.HOST_PLUGIN, ContextTag.EXTENSION_BRIDGE)
    transport.attach()
    with pytest.raises(ConnectionError):
        transport.deliver_outbound(PingMessage())


def test_double_attach_is_refused():
    channel = WindowChannel()
    transport = WindowTransport(channel, ContextTag.HOST_PLUGIN, ContextTag.EXTENSION_BRIDGE)

    assert transport.attach() is True
    assert transport.attach() is False
    assert channel._listeners.count(transport._on_window_message) == 1

    transport.detach()
    assert not transport.attached
    assert channel._listeners == []


@pytest.mark.asyncio
async def test_runtime_transport_round_trip():
    runtime = RuntimeChannel()
    transport = RuntimeTransport(runtime)

    async def handler(raw):
        return {"echo": raw["type"]}

    transport.on_inbound_message(handler)
    transport.attach()
    assert await runtime.send_message({"type": "PING"}) == {"echo": "PING"}

    broadcasts = []
    runtime.add_listener(broadcasts.append)
    transport.deliver_outbound(StatusUpdateMessage(status={"state": "ready"}))
    assert broadcasts[0]["type"] == "STATUS_UPDATE"
    assert broadcasts[0]["status"] == {"state": "ready"}

    transport.detach()
    assert await runtime.send_message({"type": "PING"}) is None
