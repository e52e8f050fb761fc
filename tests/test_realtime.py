"""Socket event parsing and the RealtimeClient connection lifecycle."""

from typing import Optional

import pytest
from socketio.exceptions import ConnectionError as SocketConnectionError

from watchd.clients.base import FiltersUpdated, MatchFound, PartnerJoined, PartnerLeft, RoomDissolved
from watchd.clients.realtime import RealtimeClient, parse_event
from watchd.errors import NetworkError


class FakeSocket:
    """Just enough of socketio.AsyncClient for RealtimeClient."""

    def __init__(self, fail: Optional[Exception] = None):
        self.handlers = {}
        self.emitted = []
        self.connected_to = None
        self.disconnected = False
        self.fail = fail

    def on(self, event, handler):
        self.handlers[event] = handler

    async def connect(self, url):
        if self.fail is not None:
            raise self.fail
        self.connected_to = url
        await self.handlers["connect"]()

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def disconnect(self):
        self.disconnected = True
        await self.handlers["disconnect"]()

    async def server_sends(self, event, data=None):
        await self.handlers["*"](event, data)


class SocketPool:
    def __init__(self):
        self.sockets: list[FakeSocket] = []
        self.fail_next: Optional[Exception] = None

    def __call__(self) -> FakeSocket:
        sock = FakeSocket(fail=self.fail_next)
        self.fail_next = None
        self.sockets.append(sock)
        return sock


@pytest.fixture
def pool() -> SocketPool:
    return SocketPool()


@pytest.fixture
def client(pool) -> RealtimeClient:
    return RealtimeClient("http://backend.test", socket_factory=pool)


# ── parse_event ──────────────────────────────────────────────────

def test_parse_match_event():
    event = parse_event("match", {"movieId": 550, "movieTitle": "Fight Club", "posterPath": "/p.jpg"}, 3)
    assert isinstance(event, MatchFound)
    assert event.room_id == 3
    assert event.match.movie_id == 550
    assert event.match.poster_url.endswith("/p.jpg")


def test_parse_uses_payload_room_when_present():
    event = parse_event("filters_updated", {"roomId": 8, "filters": {"genres": [18]}}, 3)
    assert event == FiltersUpdated(room_id=8, filters=event.filters)
    assert event.filters.genres == [18]


@pytest.mark.parametrize("name, data, expected", [
    ("partner_joined", {"userId": 8, "name": "Sam"}, PartnerJoined(room_id=3, user_id=8, name="Sam")),
    ("partner_left", {"userId": 8}, PartnerLeft(room_id=3, user_id=8)),
    ("room_dissolved", None, RoomDissolved(room_id=3)),
    ("filters_updated", {}, FiltersUpdated(room_id=3)),
])
def test_parse_room_events(name, data, expected):
    assert parse_event(name, data, 3) == expected


@pytest.mark.parametrize("name, data", [
    ("typing", {"roomId": 3}),
    ("match", {"movieTitle": "missing id"}),
    ("match", ["not", "an", "object"]),
    ("partner_joined", {"userId": "eight"}),
])
def test_parse_drops_unknown_or_malformed(name, data):
    assert parse_event(name, data, 3) is None


# ── RealtimeClient ───────────────────────────────────────────────

async def test_connect_emits_join(pool, client):
    received = []

    async def handler(event):
        received.append(event)

    await client.connect("tok", 3, handler)

    sock = pool.sockets[0]
    assert sock.connected_to == "http://backend.test"
    assert sock.emitted == [("join", {"token": "tok", "roomId": 3})]
    assert client.is_connected
    assert client.room_id == 3

    await sock.server_sends("room_dissolved", {"roomId": 3})
    await sock.server_sends("unknown_event", {})
    assert received == [RoomDissolved(room_id=3)]


async def test_reconnect_replaces_previous_socket(pool, client):
    received = []

    async def handler(event):
        received.append(event)

    await client.connect("tok", 1, handler)
    await client.connect("tok", 2, handler)

    old, new = pool.sockets
    assert old.disconnected
    assert client.room_id == 2
    assert client.is_connected

    # Late events from the old connection are ignored.
    await old.server_sends("room_dissolved", {"roomId": 1})
    assert received == []
    await new.server_sends("partner_left", {})
    assert received == [PartnerLeft(room_id=2)]


async def test_disconnect_clears_state(pool, client):
    async def handler(event):
        pass

    await client.connect("tok", 1, handler)
    await client.disconnect()

    assert pool.sockets[0].disconnected
    assert not client.is_connected
    assert client.room_id is None
    await client.disconnect()


@pytest.mark.parametrize("error", [
    SocketConnectionError("Connection refused by the server"),
    ValueError("Invalid socket url"),
    OSError("Network is unreachable"),
])
async def test_connect_failure_raises_network_error(pool, client, error):
    async def handler(event):
        pass

    pool.fail_next = error
    with pytest.raises(NetworkError):
        await client.connect("tok", 1, handler)

    assert not client.is_connected
    assert client.room_id is None
