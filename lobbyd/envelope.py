"""Wire envelopes for the relay protocol.

Every frame is a JSON object with a camelCase ``type`` tag plus
type-specific camelCase fields. Inbound and outbound messages are closed
sets of frozen dataclasses; ``parse_inbound`` turns a text frame into one
of the inbound types or a ``DecodeError`` value and never raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .codec import decode
from .constants import (
    T_ACCEPT_JOIN,
    T_CLIENT_VANISHED,
    T_CREATE_GAME,
    T_ERROR,
    T_GAME_CREATED,
    T_GAME_LIST,
    T_JOIN_GAME,
    T_LIST_GAMES,
    T_NEW_CLIENT,
    T_REJECT_JOIN,
    T_UPDATE_GAME_INFO,
    T_WEBRTC_SIGNALING,
    U32_MAX,
)
from .ids import ConnectionId, SessionId


class EnvelopeError(ValueError):
    pass


# Inbound


@dataclass(frozen=True)
class WebrtcSignaling:
    client_id: ConnectionId | None = None
    description: Any = None
    candidate: Any = None


@dataclass(frozen=True)
class CreateGame:
    server_name: str
    max_players: int
    game_id: SessionId | None = None
    requires_password: bool | None = None


@dataclass(frozen=True)
class UpdateGameInfo:
    server_name: str
    player_amount: int
    max_players: int
    requires_password: bool | None = None


@dataclass(frozen=True)
class ListGames:
    pass


@dataclass(frozen=True)
class JoinGame:
    game_id: SessionId
    password: str | None = None


@dataclass(frozen=True)
class AcceptJoin:
    game_id: SessionId
    client_id: ConnectionId


@dataclass(frozen=True)
class RejectJoin:
    game_id: SessionId
    client_id: ConnectionId
    reason: str


Inbound = Union[
    WebrtcSignaling,
    CreateGame,
    UpdateGameInfo,
    ListGames,
    JoinGame,
    AcceptJoin,
    RejectJoin,
]


@dataclass(frozen=True)
class DecodeError:
    reason: str


# Outbound


@dataclass(frozen=True)
class Error:
    reason: str

    def to_wire(self) -> dict:
        return {"type": T_ERROR, "reason": self.reason}


@dataclass(frozen=True)
class ForwardedSignaling:
    game_id: SessionId
    client_id: ConnectionId | None
    description: Any = None
    candidate: Any = None

    def to_wire(self) -> dict:
        return {
            "type": T_WEBRTC_SIGNALING,
            "gameId": self.game_id,
            "clientId": self.client_id,
            "description": self.description,
            "candidate": self.candidate,
        }


@dataclass(frozen=True)
class GameCreated:
    game_id: SessionId

    def to_wire(self) -> dict:
        return {"type": T_GAME_CREATED, "gameId": self.game_id}


@dataclass(frozen=True)
class GameSummary:
    game_id: SessionId
    server_name: str
    player_amount: int
    max_players: int
    requires_password: bool

    def to_wire(self) -> dict:
        return {
            "gameId": self.game_id,
            "serverName": self.server_name,
            "playerAmount": self.player_amount,
            "maxPlayers": self.max_players,
            "requiresPassword": self.requires_password,
        }


@dataclass(frozen=True)
class GameList:
    games: tuple[GameSummary, ...]

    def to_wire(self) -> dict:
        return {"type": T_GAME_LIST, "games": [g.to_wire() for g in self.games]}


@dataclass(frozen=True)
class NewClient:
    game_id: SessionId
    client_id: ConnectionId
    password: str | None = None

    def to_wire(self) -> dict:
        return {
            "type": T_NEW_CLIENT,
            "gameId": self.game_id,
            "clientId": self.client_id,
            "password": self.password,
        }


@dataclass(frozen=True)
class JoinAccepted:
    game_id: SessionId

    def to_wire(self) -> dict:
        return {"type": T_ACCEPT_JOIN, "gameId": self.game_id}


@dataclass(frozen=True)
class JoinRejected:
    game_id: SessionId
    reason: str

    def to_wire(self) -> dict:
        return {"type": T_REJECT_JOIN, "gameId": self.game_id, "reason": self.reason}


@dataclass(frozen=True)
class ClientVanished:
    game_id: SessionId
    client_id: ConnectionId

    def to_wire(self) -> dict:
        return {
            "type": T_CLIENT_VANISHED,
            "gameId": self.game_id,
            "clientId": self.client_id,
        }


Outbound = Union[
    Error,
    ForwardedSignaling,
    GameCreated,
    GameList,
    NewClient,
    JoinAccepted,
    JoinRejected,
    ClientVanished,
]


# Field validation


def _required(obj: dict, key: str):
    if key not in obj or obj[key] is None:
        raise EnvelopeError(f"missing field `{key}`")
    return obj[key]


def _req_str(obj: dict, key: str) -> str:
    v = _required(obj, key)
    if not isinstance(v, str):
        raise EnvelopeError(f"field `{key}` must be a string")
    return v


def _opt_str(obj: dict, key: str) -> str | None:
    v = obj.get(key)
    if v is not None and not isinstance(v, str):
        raise EnvelopeError(f"field `{key}` must be a string")
    return v


def _req_u32(obj: dict, key: str) -> int:
    v = _required(obj, key)
    # bool is an int subclass; JSON true/false are not counts.
    if isinstance(v, bool) or not isinstance(v, int):
        raise EnvelopeError(f"field `{key}` must be an unsigned integer")
    if v < 0 or v > U32_MAX:
        raise EnvelopeError(f"field `{key}` out of range")
    return v


def _opt_bool(obj: dict, key: str) -> bool | None:
    v = obj.get(key)
    if v is not None and not isinstance(v, bool):
        raise EnvelopeError(f"field `{key}` must be a boolean")
    return v


def _parse_webrtc_signaling(obj: dict) -> WebrtcSignaling:
    client_id = _opt_str(obj, "clientId")
    return WebrtcSignaling(
        client_id=ConnectionId(client_id) if client_id is not None else None,
        description=obj.get("description"),
        candidate=obj.get("candidate"),
    )


def _parse_create_game(obj: dict) -> CreateGame:
    game_id = _opt_str(obj, "gameId")
    return CreateGame(
        server_name=_req_str(obj, "serverName"),
        max_players=_req_u32(obj, "maxPlayers"),
        game_id=SessionId(game_id) if game_id is not None else None,
        requires_password=_opt_bool(obj, "requiresPassword"),
    )


def _parse_update_game_info(obj: dict) -> UpdateGameInfo:
    return UpdateGameInfo(
        server_name=_req_str(obj, "serverName"),
        player_amount=_req_u32(obj, "playerAmount"),
        max_players=_req_u32(obj, "maxPlayers"),
        requires_password=_opt_bool(obj, "requiresPassword"),
    )


def _parse_list_games(obj: dict) -> ListGames:
    return ListGames()


def _parse_join_game(obj: dict) -> JoinGame:
    return JoinGame(
        game_id=SessionId(_req_str(obj, "gameId")),
        password=_opt_str(obj, "password"),
    )


def _parse_accept_join(obj: dict) -> AcceptJoin:
    return AcceptJoin(
        game_id=SessionId(_req_str(obj, "gameId")),
        client_id=ConnectionId(_req_str(obj, "clientId")),
    )


def _parse_reject_join(obj: dict) -> RejectJoin:
    return RejectJoin(
        game_id=SessionId(_req_str(obj, "gameId")),
        client_id=ConnectionId(_req_str(obj, "clientId")),
        reason=_req_str(obj, "reason"),
    )


_PARSERS = {
    T_WEBRTC_SIGNALING: _parse_webrtc_signaling,
    T_CREATE_GAME: _parse_create_game,
    T_UPDATE_GAME_INFO: _parse_update_game_info,
    T_LIST_GAMES: _parse_list_games,
    T_JOIN_GAME: _parse_join_game,
    T_ACCEPT_JOIN: _parse_accept_join,
    T_REJECT_JOIN: _parse_reject_join,
}


def validate_inbound(obj) -> Inbound:
    """Build an inbound message from a decoded JSON value.

    Raises ``EnvelopeError`` when the value does not match the schema.
    Unknown extra fields are ignored.
    """
    if not isinstance(obj, dict):
        raise EnvelopeError("message must be a JSON object")

    t = obj.get("type")
    if t is None:
        raise EnvelopeError("missing field `type`")
    if not isinstance(t, str):
        raise EnvelopeError("field `type` must be a string")

    parser = _PARSERS.get(t)
    if parser is None:
        raise EnvelopeError(f"unknown message type {t!r}")
    return parser(obj)


def parse_inbound(data: str) -> Inbound | DecodeError:
    try:
        obj = decode(data)
    except (ValueError, RecursionError) as e:
        return DecodeError(f"malformed JSON: {e}")

    try:
        return validate_inbound(obj)
    except EnvelopeError as e:
        return DecodeError(str(e))
