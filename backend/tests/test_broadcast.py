import asyncio

from arena.services.broadcast import EVENT_MATCH_UPDATED, BracketBroadcaster


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


def test_broadcast_reaches_only_the_tournament_room():
    broadcaster = BracketBroadcaster()
    room_1, room_2 = FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await broadcaster.connect(1, room_1)
        await broadcaster.connect(2, room_2)
        return await broadcaster.broadcast(1, EVENT_MATCH_UPDATED, {"match_id": 5})

    delivered = asyncio.run(scenario())
    assert delivered == 1
    assert room_1.accepted
    assert room_1.sent[0]["event"] == "match-updated"
    assert room_1.sent[0]["data"] == {"match_id": 5}
    assert room_2.sent == []
    assert broadcaster.connection_count() == 2


def test_failed_send_drops_socket_without_raising():
    broadcaster = BracketBroadcaster()
    good, broken = FakeWebSocket(), FakeWebSocket(fail=True)

    async def scenario():
        await broadcaster.connect(1, good)
        await broadcaster.connect(1, broken)
        return await broadcaster.broadcast(1, EVENT_MATCH_UPDATED)

    assert asyncio.run(scenario()) == 1
    assert broadcaster.connection_count(1) == 1

    broadcaster.disconnect(1, good)
    assert broadcaster.connection_count(1) == 0
    assert broadcaster.rooms == {}
