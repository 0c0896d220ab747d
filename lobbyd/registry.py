from __future__ import annotations

import asyncio
import logging
from typing import Any

from .constants import DEFAULT_MAILBOX_SIZE
from .envelope import Outbound
from .ids import ConnectionId, new_connection_id


class UnknownConnection(KeyError):
    pass


class Mailbox:
    """Bounded outbound queue owned by one connection.

    Any number of producers may ``put``; only the owning connection loop
    calls ``get``. A full mailbox suspends producers until space frees or
    the mailbox is closed.
    """

    def __init__(self, maxsize: int = DEFAULT_MAILBOX_SIZE) -> None:
        self._queue: asyncio.Queue[Outbound] = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def qsize(self) -> int:
        return self._queue.qsize()

    def offer(self, message: Outbound) -> bool:
        """Enqueue without waiting. False when full or closed."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def put(self, message: Outbound) -> bool:
        """Enqueue ``message``. Returns False if the owner has gone away."""
        if self.closed:
            return False
        if self.offer(message):
            return True

        put_task = asyncio.ensure_future(self._queue.put(message))
        closed_task = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait(
                {put_task, closed_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            put_task.cancel()
            closed_task.cancel()

        return put_task.done() and not put_task.cancelled()

    async def get(self) -> Outbound:
        return await self._queue.get()

    def close(self) -> None:
        self._closed.set()


class ConnectionRegistry:
    """Maps live connection ids to their mailboxes.

    The registry does not own connections. Entries are added when a
    connection is accepted and removed exactly once when its loop ends.
    Must be used with the registry lock held.
    """

    def __init__(self, mailbox_size: int = DEFAULT_MAILBOX_SIZE) -> None:
        self.log = logging.getLogger("lobbyd.registry")
        self.mailbox_size = int(mailbox_size)
        self._mailboxes: dict[ConnectionId, Mailbox] = {}

    def __len__(self) -> int:
        return len(self._mailboxes)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._mailboxes

    def register(self) -> tuple[ConnectionId, Mailbox]:
        connection_id = new_connection_id()
        while connection_id in self._mailboxes:
            connection_id = new_connection_id()
        mailbox = Mailbox(self.mailbox_size)
        self._mailboxes[connection_id] = mailbox
        return connection_id, mailbox

    def get_sender(self, connection_id: ConnectionId) -> Mailbox:
        try:
            return self._mailboxes[connection_id]
        except KeyError:
            raise UnknownConnection(connection_id) from None

    def unregister(self, connection_id: ConnectionId) -> None:
        mailbox = self._mailboxes.pop(connection_id, None)
        if mailbox is None:
            self.log.warning("Unregister of unknown connection id=%s", connection_id)
            return
        mailbox.close()

    def ids(self) -> list[ConnectionId]:
        return list(self._mailboxes)

    def get_stats(self) -> dict[str, Any]:
        return {
            "connections": len(self._mailboxes),
            "queued": sum(m.qsize() for m in self._mailboxes.values()),
        }
