"""Session directory for the relay.

Holds every advertised session ("game"): its host connection, the set of
joined client connections and the metadata shown in listings. Lookups are
linear scans over the session list; the directory is small and every call
is made with the directory lock held.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .envelope import GameSummary
from .ids import ConnectionId, SessionId


class JoinError(Exception):
    """Base class for join failures."""


class SessionNotFound(JoinError):
    pass


class AlreadyJoined(JoinError):
    pass


@dataclass
class SessionInfo:
    display_name: str
    current_player_count: int
    max_players: int
    requires_password: bool = False


@dataclass
class Session:
    session_id: SessionId
    host: ConnectionId
    info: SessionInfo
    members: set[ConnectionId] = field(default_factory=set)

    def summary(self) -> GameSummary:
        return GameSummary(
            game_id=self.session_id,
            server_name=self.info.display_name,
            player_amount=self.info.current_player_count,
            max_players=self.info.max_players,
            requires_password=self.info.requires_password,
        )


class SessionDirectory:
    """Owns the active sessions and their membership.

    Not safe for concurrent use on its own. Callers serialize access with
    the directory lock kept in ``RelayState``.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("lobbyd.directory")
        self._sessions: list[Session] = []

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: Session) -> None:
        """Insert a session. Caller-supplied ids are trusted; no uniqueness check."""
        self._sessions.append(session)
        self.log.info(
            "Session created game_id=%s host=%s", session.session_id, session.host
        )

    def update_info(self, host: ConnectionId, info: SessionInfo) -> bool:
        session = self.find_by_host(host)
        if session is None:
            return False
        session.info = info
        return True

    def join(self, session_id: SessionId, client: ConnectionId) -> ConnectionId:
        """Add ``client`` to the members of ``session_id`` and return its host.

        The client becomes a member before the host accepts; a later
        rejection removes it again. A host is already part of its own
        session, so joining it reports ``AlreadyJoined``.
        """
        session = self.find_by_id(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        if client == session.host or client in session.members:
            raise AlreadyJoined(session_id)
        session.members.add(client)
        return session.host

    def remove_session(self, host: ConnectionId) -> bool:
        for index, session in enumerate(self._sessions):
            if session.host == host:
                del self._sessions[index]
                self.log.info(
                    "Session removed game_id=%s host=%s members=%s",
                    session.session_id,
                    host,
                    len(session.members),
                )
                return True
        return False

    def remove_client(self, client: ConnectionId) -> None:
        for session in self._sessions:
            session.members.discard(client)

    def list(self) -> list[GameSummary]:
        return [session.summary() for session in self._sessions]

    def find_by_id(self, session_id: SessionId) -> Session | None:
        return next((s for s in self._sessions if s.session_id == session_id), None)

    def find_by_host(self, host: ConnectionId) -> Session | None:
        return next((s for s in self._sessions if s.host == host), None)

    def find_by_client(self, client: ConnectionId) -> Session | None:
        return next((s for s in self._sessions if client in s.members), None)

    def sessions_with_client(self, client: ConnectionId) -> list[Session]:
        return [s for s in self._sessions if client in s.members]

    def get_stats(self) -> dict[str, Any]:
        return {
            "sessions_total": len(self._sessions),
            "memberships": sum(len(s.members) for s in self._sessions),
        }
