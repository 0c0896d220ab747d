import asyncio

import pytest

from lobbyd.envelope import Error, GameCreated
from lobbyd.registry import ConnectionRegistry, Mailbox, UnknownConnection


def test_register_returns_distinct_ids_and_mailboxes() -> None:
    reg = ConnectionRegistry(mailbox_size=3)
    a_id, a_box = reg.register()
    b_id, b_box = reg.register()

    assert a_id != b_id
    assert len(a_id) == 16 and a_id.isalnum()
    assert reg.get_sender(a_id) is a_box
    assert reg.get_sender(b_id) is b_box
    assert len(reg) == 2
    assert a_id in reg


def test_get_sender_unknown_raises() -> None:
    reg = ConnectionRegistry()
    with pytest.raises(UnknownConnection):
        reg.get_sender("nobody")
    with pytest.raises(KeyError):
        reg.get_sender("nobody")


def test_unregister_removes_and_closes() -> None:
    reg = ConnectionRegistry()
    cid, box = reg.register()

    reg.unregister(cid)
    assert cid not in reg
    assert box.closed
    # A second unregister is logged, not raised.
    reg.unregister(cid)
    assert len(reg) == 0


def test_mailbox_preserves_order() -> None:
    async def scenario():
        box = Mailbox(maxsize=5)
        for i in range(3):
            assert await box.put(GameCreated(game_id=str(i)))
        return [(await box.get()).game_id for _ in range(3)]

    assert asyncio.run(scenario()) == ["0", "1", "2"]


def test_full_mailbox_suspends_producer_until_space() -> None:
    async def scenario():
        box = Mailbox(maxsize=1)
        assert await box.put(Error(reason="first"))

        producer = asyncio.ensure_future(box.put(Error(reason="second")))
        await asyncio.sleep(0.01)
        assert not producer.done()

        assert (await box.get()).reason == "first"
        assert await asyncio.wait_for(producer, timeout=1.0) is True
        assert (await box.get()).reason == "second"

    asyncio.run(scenario())


def test_close_releases_blocked_producer() -> None:
    async def scenario():
        box = Mailbox(maxsize=1)
        await box.put(Error(reason="fill"))

        producer = asyncio.ensure_future(box.put(Error(reason="blocked")))
        await asyncio.sleep(0.01)
        box.close()

        assert await asyncio.wait_for(producer, timeout=1.0) is False
        assert await box.put(Error(reason="late")) is False

    asyncio.run(scenario())


def test_registry_stats() -> None:
    async def scenario():
        reg = ConnectionRegistry()
        _, box = reg.register()
        reg.register()
        await box.put(Error(reason="x"))
        return reg.get_stats()

    assert asyncio.run(scenario()) == {"connections": 2, "queued": 1}


def test_offer_does_not_wait() -> None:
    async def scenario():
        box = Mailbox(maxsize=1)
        assert box.offer(Error(reason="a")) is True
        assert box.offer(Error(reason="b")) is False
        box.close()
        await box.get()
        assert box.offer(Error(reason="c")) is False

    asyncio.run(scenario())
