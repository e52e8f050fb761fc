"""Socket.IO room subscriber — IRealtimeClient implementation.

One connection per active room. On connect the client emits ``join`` with
the token and room id; afterwards every server event goes through a single
catch-all handler, is parsed into a typed RoomEvent and dispatched to the
handler given to ``connect``.
"""

import logging
from typing import Any, Callable, Optional

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from watchd.clients.base import (
    EventHandler, FiltersUpdated, IRealtimeClient, MatchFound,
    PartnerJoined, PartnerLeft, RoomDissolved, RoomEvent,
)
from watchd.errors import NetworkError
from watchd.models.schemas import SocketMatchEvent, SocketRoomPayload

logger = logging.getLogger(__name__)

SocketFactory = Callable[[], socketio.AsyncClient]

MATCH = "match"
FILTERS_UPDATED = "filters_updated"
PARTNER_JOINED = "partner_joined"
PARTNER_LEFT = "partner_left"
ROOM_DISSOLVED = "room_dissolved"

ROOM_EVENTS = (MATCH, FILTERS_UPDATED, PARTNER_JOINED, PARTNER_LEFT, ROOM_DISSOLVED)


def parse_event(name: str, data: Any, room_id: int) -> Optional[RoomEvent]:
    """Turn a raw socket event into a RoomEvent.

    Unknown event names and undecodable payloads yield None. Payloads that
    omit ``roomId`` are attributed to the connection's room.
    """
    if name not in ROOM_EVENTS:
        logger.debug(f"Ignoring socket event '{name}'")
        return None
    if data is None:
        data = {}
    if not isinstance(data, dict):
        logger.warning(f"Dropping '{name}' event with non-object payload: {data!r}")
        return None

    try:
        if name == MATCH:
            match = SocketMatchEvent.model_validate(data)
            target = match.room_id if match.room_id is not None else room_id
            return MatchFound(room_id=target, match=match)
        payload = SocketRoomPayload.model_validate(data)
    except ValueError as e:
        logger.warning(f"Dropping undecodable '{name}' payload: {e}")
        return None

    target = payload.room_id if payload.room_id is not None else room_id
    if name == FILTERS_UPDATED:
        return FiltersUpdated(room_id=target, filters=payload.filters)
    if name == PARTNER_JOINED:
        return PartnerJoined(room_id=target, user_id=payload.user_id, name=payload.name)
    if name == PARTNER_LEFT:
        return PartnerLeft(room_id=target, user_id=payload.user_id, name=payload.name)
    return RoomDissolved(room_id=target)


class RealtimeClient(IRealtimeClient):
    """python-socketio implementation of IRealtimeClient."""

    def __init__(
        self,
        url: str,
        reconnection_attempts: int = 5,
        reconnection_delay: float = 2.0,
        socket_factory: Optional[SocketFactory] = None,
    ):
        self.url = url
        self._socket_factory = socket_factory or (
            lambda: socketio.AsyncClient(
                reconnection=True,
                reconnection_attempts=reconnection_attempts,
                reconnection_delay=reconnection_delay,
                logger=False,
            )
        )
        self._sio: Optional[socketio.AsyncClient] = None
        self._room_id: Optional[int] = None
        self._handler: Optional[EventHandler] = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def room_id(self) -> Optional[int]:
        return self._room_id

    async def connect(self, token: str, room_id: int, handler: EventHandler) -> None:
        await self.disconnect()

        sio = self._socket_factory()
        self._sio = sio
        self._room_id = room_id
        self._handler = handler

        async def on_connect():
            if sio is not self._sio:
                return
            self._connected = True
            logger.info(f"Socket connected, joining room {room_id}")
            await sio.emit("join", {"token": token, "roomId": room_id})

        async def on_disconnect(*args):
            if sio is self._sio:
                self._connected = False

        async def on_any(event, *args):
            if sio is not self._sio:
                return
            await self._dispatch(event, args[0] if args else None)

        sio.on("connect", on_connect)
        sio.on("disconnect", on_disconnect)
        sio.on("*", on_any)

        try:
            await sio.connect(self.url)
        except (SocketConnectionError, ValueError, OSError) as e:
            logger.warning(f"Socket connection to {self.url} failed: {e}")
            self._sio = None
            self._room_id = None
            self._handler = None
            raise NetworkError(e) from e

    async def disconnect(self) -> None:
        sio = self._sio
        self._sio = None
        self._room_id = None
        self._handler = None
        self._connected = False
        if sio is not None:
            await sio.disconnect()
            logger.info("Socket disconnected")

    async def _dispatch(self, name: str, data: Any) -> None:
        if self._handler is None or self._room_id is None:
            return
        event = parse_event(name, data, self._room_id)
        if event is not None:
            await self._handler(event)
