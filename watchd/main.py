"""watchd — client composition root.

``create_app`` wires the credential store, REST client, socket subscriber
and session holder once, restores any persisted session and hands back a
WatchdApp. Screen coordinators are created from it on demand.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial
from typing import Optional

import httpx

from watchd.clients.api import WatchdApiClient
from watchd.clients.base import TOKEN_KEY, ICredentialStore
from watchd.clients.realtime import RealtimeClient, SocketFactory
from watchd.config import Settings, settings as default_settings
from watchd.database import create_engine, create_sessionmaker, init_db
from watchd.models.schemas import Room
from watchd.services.credentials import MemoryCredentialStore, SqlCredentialStore
from watchd.services.feed import SwipeSession
from watchd.services.matches import FavoritesController, MatchesController
from watchd.services.rooms import RoomsController
from watchd.services.session import SessionManager

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@dataclass
class WatchdApp:
    settings: Settings
    store: ICredentialStore
    api: WatchdApiClient
    realtime: RealtimeClient
    session: SessionManager
    rooms: RoomsController
    favorites: FavoritesController

    def swipe_session(self, room: Room) -> SwipeSession:
        return SwipeSession(
            room, self.api, self.session, self.realtime,
            low_water_mark=self.settings.feed_low_water_mark,
        )

    def matches(self, room_id: int) -> MatchesController:
        return MatchesController(room_id, self.api, self.settings.min_loading_seconds)


@asynccontextmanager
async def create_app(
    settings: Settings = default_settings,
    store: Optional[ICredentialStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    socket_factory: Optional[SocketFactory] = None,
):
    """Startup and shutdown of the client stack."""
    configure_logging(settings)

    engine = None
    if store is None:
        if settings.has_persistent_store:
            engine = create_engine(settings.credential_db_url)
            await init_db(engine)
            store = SqlCredentialStore(create_sessionmaker(engine))
        else:
            store = MemoryCredentialStore()

    api = WatchdApiClient(
        settings.api_base_url,
        partial(store.load, TOKEN_KEY),
        timeout=settings.request_timeout,
        transport=transport,
    )
    realtime = RealtimeClient(
        settings.socket_url,
        reconnection_attempts=settings.socket_reconnect_attempts,
        reconnection_delay=settings.socket_reconnect_wait,
        socket_factory=socket_factory,
    )
    session = SessionManager(api, store, realtime)
    await session.restore()

    app = WatchdApp(
        settings=settings,
        store=store,
        api=api,
        realtime=realtime,
        session=session,
        rooms=RoomsController(api, session, settings.min_loading_seconds),
        favorites=FavoritesController(api, settings.min_loading_seconds),
    )
    logger.info(f"{settings.app_name} client ready (api={settings.api_base_url})")
    try:
        yield app
    finally:
        await realtime.disconnect()
        if engine is not None:
            await engine.dispose()
