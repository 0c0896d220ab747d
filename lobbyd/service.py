from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any

from websockets.asyncio.server import Server, serve

from . import __version__
from .config import RelayRuntimeConfig
from .connection import handle_connection
from .router import MessageRouter
from .state import RelayState
from .stats import StatsManager


class RelayService:
    def __init__(
        self,
        config: RelayRuntimeConfig,
        *,
        state: RelayState | None = None,
        router: MessageRouter | None = None,
    ) -> None:
        self.config = config
        self.log = logging.getLogger("lobbyd.relay")

        # Directory and registry are shared by every connection task. Each is
        # guarded by its own asyncio lock inside RelayState.
        self.state = state if state is not None else RelayState.create(config.mailbox_size)

        self.router = router if router is not None else MessageRouter()
        self.stats_manager = StatsManager()

        self._server: Server | None = None
        self._shutdown: asyncio.Event | None = None
        self._stats_task: asyncio.Task | None = None

    @property
    def port(self) -> int | None:
        """Port actually bound; differs from config when configured as 0."""
        if self._server is None:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    async def _handle(self, websocket: Any) -> None:
        await handle_connection(
            websocket,
            self.state,
            self.router,
            self.stats_manager,
            notify_vanished=self.config.notify_vanished,
        )

    async def start(self) -> None:
        self.log.info("Starting lobbyd %s", __version__)
        self.stats_manager.set_start_time()
        self._shutdown = asyncio.Event()

        ping_interval = self.config.ping_interval_s or None
        ping_timeout = self.config.ping_timeout_s or None

        self._server = await serve(
            self._handle,
            self.config.host,
            self.config.port,
            ping_interval=ping_interval,
            ping_timeout=ping_timeout,
            max_size=self.config.max_frame_bytes,
        )

        self.log.info("Relay listening host=%s port=%s", self.config.host, self.port)
        self.log.info(
            "Policy mailbox_size=%s ping_interval_s=%s ping_timeout_s=%s max_frame_bytes=%s notify_vanished=%s",
            self.config.mailbox_size,
            self.config.ping_interval_s,
            self.config.ping_timeout_s,
            self.config.max_frame_bytes,
            self.config.notify_vanished,
        )

        if self.config.stats_interval_s and self.config.stats_interval_s > 0:
            self._stats_task = asyncio.create_task(self._stats_loop())

    async def _stats_loop(self) -> None:
        while True:
            await asyncio.sleep(float(self.config.stats_interval_s))
            self.log.info("%s", await self.format_stats())

    async def format_stats(self) -> str:
        async with self.state.registry_lock:
            registry_stats = self.state.registry.get_stats()
        async with self.state.directory_lock:
            directory_stats = self.state.directory.get_stats()
        return self.stats_manager.format_stats(
            registry_stats=registry_stats, directory_stats=directory_stats
        )

    def request_stop(self) -> None:
        if self._shutdown is not None:
            self._shutdown.set()

    async def stop(self) -> None:
        if self._stats_task is not None:
            self._stats_task.cancel()
            self._stats_task = None

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        self.log.info("%s", await self.format_stats())
        self.log.info("Relay stopped")

    async def serve_forever(self) -> None:
        await self.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except NotImplementedError:
                # Not available on every platform (e.g. Windows event loops).
                pass

        assert self._shutdown is not None
        try:
            await self._shutdown.wait()
        finally:
            await self.stop()

    def run_forever(self) -> None:
        asyncio.run(self.serve_forever())
