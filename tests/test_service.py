import asyncio
import json

from websockets.asyncio.client import connect

from lobbyd.config import RelayRuntimeConfig
from lobbyd.service import RelayService


def _config(**overrides) -> RelayRuntimeConfig:
    base = dict(host="127.0.0.1", port=0, ping_interval_s=0.0, ping_timeout_s=0.0)
    base.update(overrides)
    return RelayRuntimeConfig(**base)


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


async def _exchange(ws, message: dict) -> dict:
    await ws.send(json.dumps(message))
    return json.loads(await asyncio.wait_for(ws.recv(), timeout=2.0))


def test_relay_over_real_websockets() -> None:
    async def scenario():
        svc = RelayService(_config())
        await svc.start()
        try:
            uri = f"ws://127.0.0.1:{svc.port}"
            async with connect(uri) as host, connect(uri) as client:
                created = await _exchange(
                    host, {"type": "createGame", "serverName": "Arena", "maxPlayers": 4}
                )
                assert created["type"] == "gameCreated"
                game_id = created["gameId"]

                listing = await _exchange(client, {"type": "listGames"})
                assert listing == {
                    "type": "gameList",
                    "games": [
                        {
                            "gameId": game_id,
                            "serverName": "Arena",
                            "playerAmount": 1,
                            "maxPlayers": 4,
                            "requiresPassword": False,
                        }
                    ],
                }

                await client.send(
                    json.dumps({"type": "joinGame", "gameId": game_id, "password": "pw"})
                )
                new_client = json.loads(await asyncio.wait_for(host.recv(), timeout=2.0))
                assert new_client["type"] == "newClient"
                assert new_client["password"] == "pw"
                client_id = new_client["clientId"]

                await host.send(
                    json.dumps({"type": "acceptJoin", "gameId": game_id, "clientId": client_id})
                )
                accepted = json.loads(await asyncio.wait_for(client.recv(), timeout=2.0))
                assert accepted == {"type": "acceptJoin", "gameId": game_id}

                await client.send(b"\x01binary")
                error = json.loads(await asyncio.wait_for(client.recv(), timeout=2.0))
                assert error == {"type": "error", "reason": "Invalid message"}

            await _wait_until(lambda: len(svc.state.registry) == 0)
            assert svc.state.directory.list() == []
            assert svc.stats_manager.get("connections") == 2
            assert svc.stats_manager.get("disconnects") == 2
        finally:
            await svc.stop()

    asyncio.run(scenario())


def test_serve_forever_stops_on_request() -> None:
    async def scenario():
        svc = RelayService(_config())
        task = asyncio.ensure_future(svc.serve_forever())
        await _wait_until(lambda: svc.port is not None)

        svc.request_stop()
        await asyncio.wait_for(task, timeout=2.0)
        assert svc.port is None

    asyncio.run(scenario())


def test_format_stats_reports_live_state() -> None:
    async def scenario():
        svc = RelayService(_config())
        await svc.start()
        try:
            async with connect(f"ws://127.0.0.1:{svc.port}") as ws:
                await _exchange(ws, {"type": "createGame", "serverName": "A", "maxPlayers": 2})
                text = await svc.format_stats()
        finally:
            await svc.stop()
        return text

    text = asyncio.run(scenario())
    assert "connections: live=1" in text
    assert "games: active=1" in text
