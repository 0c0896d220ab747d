from lobbyd.codec import decode, encode
from lobbyd.envelope import GameCreated


def test_codec_encodes_compact_json() -> None:
    data = encode(GameCreated(game_id="ABC").to_wire())
    assert data == '{"type":"gameCreated","gameId":"ABC"}'
    assert decode(data) == {"type": "gameCreated", "gameId": "ABC"}


def test_codec_keeps_unicode_readable() -> None:
    data = encode({"serverName": "Arène"})
    assert "Arène" in data
