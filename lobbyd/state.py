from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from .constants import DEFAULT_MAILBOX_SIZE
from .directory import SessionDirectory
from .registry import ConnectionRegistry


@dataclass
class RelayState:
    """Shared mutable state handed to every connection loop.

    The directory and the registry each have their own lock. Hold a lock for
    one whole operation and never across transport I/O.
    """

    directory: SessionDirectory = field(default_factory=SessionDirectory)
    registry: ConnectionRegistry = field(default_factory=ConnectionRegistry)
    directory_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    registry_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @classmethod
    def create(cls, mailbox_size: int = DEFAULT_MAILBOX_SIZE) -> RelayState:
        return cls(registry=ConnectionRegistry(mailbox_size))
