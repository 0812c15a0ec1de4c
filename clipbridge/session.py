"""Wire both contexts together in one process.

BridgeSession owns the two channels, the host plugin on one side and the
bridge relay plus extension client on the other.
"""

import sys
from typing import Optional

from loguru import logger

from clipbridge.bridge.channel import RuntimeChannel, WindowChannel
from clipbridge.bridge.client import ExtensionClient, Notifier
from clipbridge.bridge.config import Config
from clipbridge.bridge.correlation import DEFAULT_TIMEOUT_MS
from clipbridge.bridge.relay import BridgeRelay
from clipbridge.host.model import HostUI, RecordIndex
from clipbridge.host.plugin import HostPlugin

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(config: Config, level: Optional[str] = None) -> None:
    """Install the stderr sink and, if configured, a rotating file sink."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level or config.logging.level)
    if config.logging.file:
        config.logging.file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            config.logging.file,
            rotation=config.logging.rotation,
            retention=config.logging.retention,
            level="DEBUG",
        )


class BridgeSession:
    """Extension and host contexts sharing one event loop."""

    def __init__(
        self,
        index: RecordIndex,
        ui: Optional[HostUI],
        config: Optional[Config] = None,
        notifier: Optional[Notifier] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        with_plugin: bool = True,
    ):
        self.config = config or Config()
        self.window = WindowChannel()
        self.runtime = RuntimeChannel()
        self.plugin = HostPlugin(index, ui, self.window, self.config) if with_plugin else None
        self.relay = BridgeRelay(self.runtime, self.window, timeout_ms=timeout_ms)
        self.client = ExtensionClient(self.runtime, self.config, notifier)

    async def start(self) -> None:
        logger.debug("Starting bridge session")
        await self.window.start()
        self.relay.attach()
        if self.plugin is not None:
            self.plugin.attach()

    async def stop(self) -> None:
        # in-flight handlers must answer while the plugin is still attached
        await self.window.drain()
        if self.plugin is not None:
            self.plugin.detach()
        await self.window.drain()
        self.relay.detach()
        self.client.close()
        await self.window.stop()
        logger.debug("Bridge session stopped")

    async def __aenter__(self) -> "BridgeSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
