import pytest

from lobbyd.directory import (
    AlreadyJoined,
    JoinError,
    Session,
    SessionDirectory,
    SessionInfo,
    SessionNotFound,
)


def _session(game_id: str = "G1", host: str = "host1", name: str = "Arena") -> Session:
    return Session(
        session_id=game_id,
        host=host,
        info=SessionInfo(display_name=name, current_player_count=1, max_players=4),
    )


def test_add_and_list() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1", "One"))
    d.add(_session("G2", "h2", "Two"))

    listed = d.list()
    assert [g.game_id for g in listed] == ["G1", "G2"]
    assert listed[0].server_name == "One"
    assert listed[0].player_amount == 1
    assert listed[0].max_players == 4
    assert listed[0].requires_password is False
    assert len(d) == 2


def test_add_does_not_check_duplicate_ids() -> None:
    d = SessionDirectory()
    d.add(_session("SAME", "h1"))
    d.add(_session("SAME", "h2"))
    assert len(d) == 2


def test_update_info_only_for_host() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1"))

    new_info = SessionInfo(
        display_name="Renamed", current_player_count=3, max_players=6, requires_password=True
    )
    assert d.update_info("h1", new_info) is True
    assert d.find_by_host("h1").info == new_info

    assert d.update_info("stranger", SessionInfo("X", 0, 0)) is False
    assert d.list()[0].server_name == "Renamed"


def test_join_returns_host_and_adds_member() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1"))

    assert d.join("G1", "c1") == "h1"
    assert d.find_by_id("G1").members == {"c1"}
    assert d.find_by_client("c1").session_id == "G1"


def test_join_unknown_session_changes_nothing() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1"))

    with pytest.raises(SessionNotFound):
        d.join("nope", "c1")
    assert d.find_by_client("c1") is None
    assert d.get_stats()["memberships"] == 0


def test_join_twice_is_already_joined() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1"))
    d.join("G1", "c1")

    with pytest.raises(AlreadyJoined):
        d.join("G1", "c1")
    with pytest.raises(JoinError):
        d.join("G1", "c1")
    assert d.find_by_id("G1").members == {"c1"}


def test_host_cannot_join_own_session() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1"))

    with pytest.raises(AlreadyJoined):
        d.join("G1", "h1")
    assert d.find_by_id("G1").members == set()


def test_client_can_be_member_of_several_sessions() -> None:
    # Join is not exclusive across sessions; kept as-is.
    d = SessionDirectory()
    d.add(_session("G1", "h1"))
    d.add(_session("G2", "h2"))

    d.join("G1", "c1")
    d.join("G2", "c1")
    assert [s.session_id for s in d.sessions_with_client("c1")] == ["G1", "G2"]
    assert d.find_by_client("c1").session_id == "G1"


def test_remove_session_by_host() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1"))
    d.add(_session("G2", "h2"))

    assert d.remove_session("h1") is True
    assert d.remove_session("h1") is False
    assert [g.game_id for g in d.list()] == ["G2"]
    assert d.find_by_host("h1") is None


def test_remove_client_everywhere_is_idempotent() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1"))
    d.add(_session("G2", "h2"))
    d.join("G1", "c1")
    d.join("G2", "c1")
    d.join("G2", "c2")

    d.remove_client("c1")
    d.remove_client("c1")
    d.remove_client("never-joined")

    assert d.find_by_client("c1") is None
    assert d.find_by_id("G2").members == {"c2"}


def test_list_is_a_snapshot() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1", "Before"))
    listed = d.list()

    d.update_info("h1", SessionInfo("After", 2, 4))
    assert listed[0].server_name == "Before"


def test_get_stats() -> None:
    d = SessionDirectory()
    d.add(_session("G1", "h1"))
    d.join("G1", "c1")
    d.join("G1", "c2")
    assert d.get_stats() == {"sessions_total": 1, "memberships": 2}
