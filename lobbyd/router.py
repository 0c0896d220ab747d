from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .constants import (
    ERR_ALREADY_JOINED,
    ERR_GAME_NOT_FOUND,
    ERR_HOST_VANISHED,
    ERR_NOT_HOST,
)
from .directory import (
    AlreadyJoined,
    Session,
    SessionDirectory,
    SessionInfo,
    SessionNotFound,
)
from .envelope import (
    AcceptJoin,
    ClientVanished,
    CreateGame,
    Error,
    ForwardedSignaling,
    GameCreated,
    GameList,
    Inbound,
    JoinAccepted,
    JoinGame,
    JoinRejected,
    ListGames,
    NewClient,
    Outbound,
    RejectJoin,
    UpdateGameInfo,
    WebrtcSignaling,
)
from .ids import ConnectionId, new_session_id


@dataclass(frozen=True)
class RoutingResult:
    to_sender: Outbound | None = None
    to_other: tuple[ConnectionId, Outbound] | None = None

    @classmethod
    def none(cls) -> RoutingResult:
        return cls()

    @classmethod
    def reply(cls, message: Outbound) -> RoutingResult:
        return cls(to_sender=message)

    @classmethod
    def forward(cls, target: ConnectionId, message: Outbound) -> RoutingResult:
        return cls(to_other=(target, message))


@dataclass
class DisconnectResult:
    removed_session: Session | None = None
    notifications: list[tuple[ConnectionId, Outbound]] = field(default_factory=list)


class MessageRouter:
    """
    Protocol state machine for the relay.

    Given the sender, the session directory and one decoded inbound message,
    decides who hears about it and applies any directory change. Performs no
    I/O; callers hold the directory lock for the duration of ``route``.

    Every message type produces at most one reply to the sender and at most
    one message to a single other connection.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("lobbyd.router")

    def route(
        self,
        sender: ConnectionId,
        directory: SessionDirectory,
        message: Inbound,
    ) -> RoutingResult:
        if isinstance(message, WebrtcSignaling):
            return self._handle_signaling(sender, directory, message)
        if isinstance(message, CreateGame):
            return self._handle_create_game(sender, directory, message)
        if isinstance(message, UpdateGameInfo):
            return self._handle_update_game_info(sender, directory, message)
        if isinstance(message, ListGames):
            return RoutingResult.reply(GameList(games=tuple(directory.list())))
        if isinstance(message, JoinGame):
            return self._handle_join_game(sender, directory, message)
        if isinstance(message, AcceptJoin):
            return RoutingResult.forward(
                message.client_id, JoinAccepted(game_id=message.game_id)
            )
        if isinstance(message, RejectJoin):
            return self._handle_reject_join(directory, message)
        raise TypeError(f"unroutable message {type(message).__name__}")

    def _handle_signaling(
        self,
        sender: ConnectionId,
        directory: SessionDirectory,
        message: WebrtcSignaling,
    ) -> RoutingResult:
        if message.client_id is not None:
            # host -> client
            session = directory.find_by_host(sender)
            if session is None:
                self.log.debug(
                    "Dropping signaling from non-host sender=%s target=%s",
                    sender,
                    message.client_id,
                )
                return RoutingResult.none()
            return RoutingResult.forward(
                message.client_id,
                ForwardedSignaling(
                    game_id=session.session_id,
                    client_id=None,
                    description=message.description,
                    candidate=message.candidate,
                ),
            )

        # client -> host
        session = directory.find_by_client(sender)
        if session is None:
            self.log.debug("Dropping signaling from non-member sender=%s", sender)
            return RoutingResult.none()
        return RoutingResult.forward(
            session.host,
            ForwardedSignaling(
                game_id=session.session_id,
                client_id=sender,
                description=message.description,
                candidate=message.candidate,
            ),
        )

    def _handle_create_game(
        self,
        sender: ConnectionId,
        directory: SessionDirectory,
        message: CreateGame,
    ) -> RoutingResult:
        game_id = message.game_id if message.game_id is not None else new_session_id()
        # A connection hosts at most one session; a new one replaces it.
        if directory.remove_session(sender):
            self.log.info("Replacing hosted session host=%s", sender)
        directory.add(
            Session(
                session_id=game_id,
                host=sender,
                info=SessionInfo(
                    display_name=message.server_name,
                    current_player_count=1,
                    max_players=message.max_players,
                    requires_password=bool(message.requires_password),
                ),
            )
        )
        return RoutingResult.reply(GameCreated(game_id=game_id))

    def _handle_update_game_info(
        self,
        sender: ConnectionId,
        directory: SessionDirectory,
        message: UpdateGameInfo,
    ) -> RoutingResult:
        info = SessionInfo(
            display_name=message.server_name,
            current_player_count=message.player_amount,
            max_players=message.max_players,
            requires_password=bool(message.requires_password),
        )
        if directory.update_info(sender, info):
            return RoutingResult.none()
        return RoutingResult.reply(Error(reason=ERR_NOT_HOST))

    def _handle_join_game(
        self,
        sender: ConnectionId,
        directory: SessionDirectory,
        message: JoinGame,
    ) -> RoutingResult:
        try:
            host = directory.join(message.game_id, sender)
        except SessionNotFound:
            return RoutingResult.reply(Error(reason=ERR_GAME_NOT_FOUND))
        except AlreadyJoined:
            return RoutingResult.reply(Error(reason=ERR_ALREADY_JOINED))

        return RoutingResult.forward(
            host,
            NewClient(
                game_id=message.game_id,
                client_id=sender,
                password=message.password,
            ),
        )

    def _handle_reject_join(
        self, directory: SessionDirectory, message: RejectJoin
    ) -> RoutingResult:
        # Removes the client from every session, not only message.game_id.
        directory.remove_client(message.client_id)
        return RoutingResult.forward(
            message.client_id,
            JoinRejected(game_id=message.game_id, reason=message.reason),
        )

    def process_disconnect(
        self,
        connection_id: ConnectionId,
        directory: SessionDirectory,
        *,
        notify_vanished: bool = False,
    ) -> DisconnectResult:
        """
        Drop a closed connection from the directory.

        A host loses its session; otherwise the connection is removed from the
        membership of every session. With ``notify_vanished`` the remaining
        parties are told: members of a removed session get an error, hosts of
        sessions the client had joined get ``clientVanished``.
        """
        result = DisconnectResult()

        session = directory.find_by_host(connection_id)
        if session is not None and directory.remove_session(connection_id):
            result.removed_session = session
            if notify_vanished:
                for member in sorted(session.members):
                    result.notifications.append(
                        (member, Error(reason=ERR_HOST_VANISHED))
                    )
            return result

        if notify_vanished:
            for joined in directory.sessions_with_client(connection_id):
                result.notifications.append(
                    (
                        joined.host,
                        ClientVanished(
                            game_id=joined.session_id, client_id=connection_id
                        ),
                    )
                )
        directory.remove_client(connection_id)
        return result
