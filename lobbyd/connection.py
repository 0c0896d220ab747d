"""Per-connection loop: the only place that touches a client's websocket."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from websockets.exceptions import ConnectionClosed

from .codec import encode
from .constants import ERR_INVALID_MESSAGE
from .envelope import CreateGame, DecodeError, Error, JoinGame, Outbound, parse_inbound
from .ids import ConnectionId
from .registry import Mailbox, UnknownConnection
from .router import MessageRouter
from .state import RelayState
from .stats import StatsManager
from .util import short_repr


def _fmt_remote(websocket: Any) -> str:
    addr = getattr(websocket, "remote_address", None)
    if isinstance(addr, tuple) and len(addr) >= 2:
        return f"{addr[0]}:{addr[1]}"
    return "-"


class ConnectionLoop:
    """
    Drives one registered connection until its transport ends.

    Each iteration waits for whichever comes first: the next inbound frame
    or the next message another connection queued in our mailbox. A task
    that did not finish is reused on the next iteration, and when both are
    ready both are handled, so neither side can starve the other. While
    waiting for room in another connection's mailbox the loop keeps
    delivering its own.

    On termination exactly one directory cleanup pass runs. Unregistering
    from the connection registry is left to ``handle_connection``.
    """

    def __init__(
        self,
        connection_id: ConnectionId,
        mailbox: Mailbox,
        websocket: Any,
        state: RelayState,
        router: MessageRouter,
        stats: StatsManager,
        *,
        notify_vanished: bool = False,
    ) -> None:
        self.connection_id = connection_id
        self.mailbox = mailbox
        self.websocket = websocket
        self.state = state
        self.router = router
        self.stats = stats
        self.notify_vanished = notify_vanished
        self.log = logging.getLogger("lobbyd.connection")
        self.terminated = False
        self._out_task: asyncio.Future | None = None

    async def run(self) -> None:
        recv_task: asyncio.Future | None = None
        try:
            while True:
                if recv_task is None:
                    recv_task = asyncio.ensure_future(self.websocket.recv())
                out_task = self._arm_outbound()

                done, _ = await asyncio.wait(
                    {recv_task, out_task}, return_when=asyncio.FIRST_COMPLETED
                )

                if recv_task in done:
                    task, recv_task = recv_task, None
                    try:
                        frame = task.result()
                    except ConnectionClosed as e:
                        self.log.debug(
                            "Transport closed id=%s code=%s",
                            self.connection_id,
                            e.rcvd.code if e.rcvd is not None else None,
                        )
                        break
                    await self._handle_frame(frame)

                # _handle_frame may have consumed or replaced the outbound task.
                if self._out_task is not None and self._out_task.done():
                    await self._send_outbound()
        except ConnectionClosed:
            self.log.info("Send failed, closing id=%s", self.connection_id)
        finally:
            for task in (recv_task, self._out_task):
                if task is not None:
                    task.cancel()
            self._out_task = None
            await self._cleanup()

    def _arm_outbound(self) -> asyncio.Future:
        if self._out_task is None:
            self._out_task = asyncio.ensure_future(self.mailbox.get())
        return self._out_task

    async def _send_outbound(self) -> None:
        task, self._out_task = self._out_task, None
        await self._send(task.result())

    async def _handle_frame(self, frame: str | bytes) -> None:
        self.stats.inc("frames_in")

        if not isinstance(frame, str):
            self.stats.inc("frames_bad")
            self.log.info("Received non-text message id=%s", self.connection_id)
            await self._send(Error(reason=ERR_INVALID_MESSAGE))
            return

        if not frame:
            self.log.debug("Received empty message id=%s", self.connection_id)
            return

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "RX id=%s data=%s", self.connection_id, short_repr(frame)
            )

        message = parse_inbound(frame)
        if isinstance(message, DecodeError):
            self.stats.inc("frames_bad")
            self.log.info(
                "Invalid message id=%s err=%s data=%s",
                self.connection_id,
                message.reason,
                short_repr(frame),
            )
            await self._send(Error(reason=f"{ERR_INVALID_MESSAGE}: {message.reason}"))
            return

        async with self.state.directory_lock:
            result = self.router.route(
                self.connection_id, self.state.directory, message
            )

        if isinstance(message, CreateGame):
            self.stats.inc("sessions_created")
        elif isinstance(message, JoinGame) and result.to_other is not None:
            self.stats.inc("joins")

        if result.to_sender is not None:
            await self._send(result.to_sender)
        if result.to_other is not None:
            target, outbound = result.to_other
            await self._forward(target, outbound)

    async def _forward(
        self, target: ConnectionId, message: Outbound, *, drain: bool = True
    ) -> None:
        if target == self.connection_id:
            await self._send(message)
            return

        async with self.state.registry_lock:
            try:
                mailbox = self.state.registry.get_sender(target)
            except UnknownConnection:
                mailbox = None

        # Enqueue outside the lock; a full mailbox suspends only this task.
        if mailbox is not None and await self._enqueue(mailbox, message, drain=drain):
            self.stats.inc("forwarded")
            return

        self.stats.inc("dropped")
        self.log.debug(
            "Dropping %s for gone connection id=%s target=%s",
            type(message).__name__,
            self.connection_id,
            target,
        )

    async def _enqueue(self, mailbox: Mailbox, message: Outbound, *, drain: bool) -> bool:
        if mailbox.offer(message):
            return True
        if not drain:
            return await mailbox.put(message)

        # While waiting for room in the target's mailbox keep delivering our
        # own, so two connections filling each other's mailboxes cannot
        # block each other forever.
        put_task = asyncio.ensure_future(mailbox.put(message))
        try:
            while not put_task.done():
                out_task = self._arm_outbound()
                await asyncio.wait(
                    {put_task, out_task}, return_when=asyncio.FIRST_COMPLETED
                )
                if out_task.done():
                    await self._send_outbound()
        finally:
            if not put_task.done():
                put_task.cancel()
        return put_task.result()

    async def _send(self, message: Outbound) -> None:
        payload = encode(message.to_wire())
        await self.websocket.send(payload)
        self.stats.inc("messages_out")
        if isinstance(message, Error):
            self.stats.inc("errors_sent")

    async def _cleanup(self) -> None:
        if self.terminated:
            return
        self.terminated = True

        async with self.state.directory_lock:
            result = self.router.process_disconnect(
                self.connection_id,
                self.state.directory,
                notify_vanished=self.notify_vanished,
            )

        for target, message in result.notifications:
            await self._forward(target, message, drain=False)

        self.stats.inc("disconnects")


async def handle_connection(
    websocket: Any,
    state: RelayState,
    router: MessageRouter,
    stats: StatsManager,
    *,
    notify_vanished: bool = False,
) -> None:
    """Register a freshly accepted websocket, run its loop, then unregister it."""
    log = logging.getLogger("lobbyd.connection")

    async with state.registry_lock:
        connection_id, mailbox = state.registry.register()

    stats.inc("connections")
    log.info(
        "Connection opened id=%s remote=%s", connection_id, _fmt_remote(websocket)
    )

    loop = ConnectionLoop(
        connection_id,
        mailbox,
        websocket,
        state,
        router,
        stats,
        notify_vanished=notify_vanished,
    )
    try:
        await loop.run()
    finally:
        async with state.registry_lock:
            state.registry.unregister(connection_id)
        log.info("Connection closed id=%s", connection_id)
