from __future__ import annotations

import secrets
import string
from typing import NewType

from .constants import ID_LENGTH

ConnectionId = NewType("ConnectionId", str)
SessionId = NewType("SessionId", str)

_ALPHABET = string.ascii_letters + string.digits


def random_id(length: int = ID_LENGTH) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def new_connection_id() -> ConnectionId:
    return ConnectionId(random_id())


def new_session_id() -> SessionId:
    return SessionId(random_id())
