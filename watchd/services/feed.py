"""Feed/swipe session — the buffered movie queue for one room.

Keeps a forward-only FIFO of movies not yet swiped, prefetches pages as the
queue drains, and posts swipes without blocking on the network:

- ``fetch_next_page`` runs at most one request at a time. The feed ends only
  when the server returns an empty page (there is no total count).
- ``submit_swipe`` drops the head synchronously and posts the swipe as an
  independent task. A failed post is reported, and the movie stays dropped.
- A ``filters_updated`` event invalidates the whole buffer, because filtering
  happens server-side when the feed is generated.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from watchd.clients.api import WatchdApiClient
from watchd.clients.base import (
    FiltersUpdated, IRealtimeClient, MatchFound, PartnerJoined, PartnerLeft,
    RoomDissolved, RoomEvent,
)
from watchd.config import settings
from watchd.errors import ApiError, EmptyFeedError
from watchd.models.schemas import (
    Movie, Room, RoomFilters, RoomMember, SocketMatchEvent, SwipeDirection, SwipeResponse,
)
from watchd.services.session import SessionManager
from watchd.services.state import BackgroundTasks, StateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwipeState:
    movies: tuple[Movie, ...] = ()
    page: int = 1
    is_fetching: bool = False
    has_more_pages: bool = True
    is_loading: bool = False              # empty queue + fetch in flight
    current_match: Optional[SocketMatchEvent] = None
    members: tuple[RoomMember, ...] = ()
    partner_present: bool = False
    room_dissolved: bool = False
    error_message: Optional[str] = None


class SwipeSession:
    """Swipe coordinator for a single room."""

    def __init__(
        self,
        room: Room,
        api: WatchdApiClient,
        session: SessionManager,
        realtime: Optional[IRealtimeClient] = None,
        low_water_mark: int = settings.feed_low_water_mark,
    ):
        self.room = room
        self.api = api
        self.session = session
        self.realtime = realtime
        self.low_water_mark = low_water_mark
        self.state_store: StateStore[SwipeState] = StateStore(SwipeState())
        self._fetch_task: Optional[asyncio.Task] = None
        self._refills = BackgroundTasks()
        self._swipes = BackgroundTasks()
        self._celebrated: set[int] = set()

    @property
    def state(self) -> SwipeState:
        return self.state_store.state

    @property
    def current_movie(self) -> Optional[Movie]:
        return self.state.movies[0] if self.state.movies else None

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Join the room's socket, then load the first page and the members."""
        token = self.session.token
        if self.realtime is not None and token:
            try:
                await self.realtime.connect(token, self.room.id, self.handle_event)
            except ApiError as e:
                # The feed still works without live events.
                logger.warning(f"Realtime unavailable for room {self.room.id}: {e}")
        await self.fetch_next_page()
        await self.fetch_room_members()

    async def stop(self) -> None:
        """Leave the room screen: cancel fetches, let pending swipes finish."""
        self._cancel_fetch()
        await self._refills.cancel_all()
        await self._swipes.drain()
        if self.realtime is not None and self.realtime.room_id == self.room.id:
            await self.realtime.disconnect()

    # ── Feed ─────────────────────────────────────────────────────

    async def fetch_next_page(self) -> None:
        """Append the next feed page to the queue.

        No-op while a fetch is in flight or after the feed reported its end.
        API failures land in ``error_message``; anything else is re-raised.
        """
        if self._fetch_task is not None or not self.state.has_more_pages:
            return

        task = asyncio.create_task(self._load_page(self.state.page))
        self._fetch_task = task
        self.state_store.update(is_fetching=True, is_loading=not self.state.movies)
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            # A reset may already have replaced this fetch.
            if self._fetch_task is task:
                self._fetch_task = None
                self.state_store.update(is_fetching=False, is_loading=False)

        if not task.cancelled():
            task.result()

    async def _load_page(self, page: int) -> None:
        try:
            response = await self.api.get_movie_feed(self.room.id, page)
        except ApiError as e:
            self.state_store.update(error_message=str(e))
            return

        if response.movies:
            self.state_store.update(
                movies=self.state.movies + tuple(response.movies),
                page=page + 1,
            )
        else:
            logger.info(f"Feed for room {self.room.id} exhausted at page {page}")
            self.state_store.update(has_more_pages=False)

    async def reset_feed(self, filters: Optional[RoomFilters] = None) -> None:
        """Drop the buffered queue and start again from page 1."""
        self._cancel_fetch()
        if filters is not None:
            self.room = self.room.model_copy(update={"filters": filters})
        self.state_store.update(
            movies=(), page=1, has_more_pages=True, is_fetching=False, is_loading=False,
        )
        await self.fetch_next_page()

    def _cancel_fetch(self) -> None:
        task, self._fetch_task = self._fetch_task, None
        if task is not None:
            task.cancel()

    # ── Swiping ──────────────────────────────────────────────────

    def submit_swipe(self, direction: SwipeDirection | str) -> asyncio.Task:
        """Consume the head of the queue and post the swipe in the background.

        Raises EmptyFeedError, without touching the network, if nothing is
        queued. Returns the task posting the swipe.
        """
        direction = SwipeDirection(direction)
        movies = self.state.movies
        if not movies:
            raise EmptyFeedError()

        movie, remaining = movies[0], movies[1:]
        self.state_store.update(movies=remaining)

        if len(remaining) <= self.low_water_mark:
            self._refills.spawn(self.fetch_next_page())

        return self._swipes.spawn(self._post_swipe(movie, direction))

    async def _post_swipe(self, movie: Movie, direction: SwipeDirection) -> Optional[SwipeResponse]:
        try:
            response = await self.api.submit_swipe(movie.id, self.room.id, direction)
        except ApiError as e:
            # TODO: decide with product whether failed swipes should be re-queued.
            logger.warning(f"Swipe {direction.value} on movie {movie.id} in room {self.room.id} failed: {e}")
            self.state_store.update(error_message=str(e))
            return None

        if response.match is not None:
            event = SocketMatchEvent.from_match_info(response.match, self.room.id)
            if event is not None:
                self._show_match(event)
        return response

    async def settle(self) -> None:
        """Wait until every background swipe post and refill has finished."""
        while len(self._swipes) or len(self._refills):
            await self._swipes.drain()
            await self._refills.drain()

    # ── Matches / members ────────────────────────────────────────

    def dismiss_match(self) -> None:
        self.state_store.update(current_match=None)

    def dismiss_error(self) -> None:
        self.state_store.update(error_message=None)

    def _show_match(self, match: SocketMatchEvent) -> None:
        # The socket event and the swipe response can both report the same match.
        if match.movie_id in self._celebrated:
            return
        self._celebrated.add(match.movie_id)
        self.state_store.update(current_match=match)

    async def fetch_room_members(self) -> None:
        """Refresh the member list. Failures here are not shown to the user."""
        try:
            detail = await self.api.get_room(self.room.id)
        except ApiError as e:
            logger.warning(f"Could not refresh members of room {self.room.id}: {e}")
            return
        self.room = detail.room
        self.state_store.update(
            members=tuple(detail.members),
            partner_present=len(detail.members) > 1,
        )

    # ── Real-time reconciliation ─────────────────────────────────

    async def handle_event(self, event: RoomEvent) -> None:
        if event.room_id != self.room.id:
            return

        if isinstance(event, FiltersUpdated):
            logger.info(f"Filters changed for room {self.room.id}, reloading feed")
            await self.reset_feed(event.filters)
        elif isinstance(event, MatchFound):
            self._show_match(event.match)
        elif isinstance(event, PartnerJoined):
            self.state_store.update(partner_present=True)
            await self.fetch_room_members()
        elif isinstance(event, PartnerLeft):
            self.state_store.update(partner_present=False)
            await self.fetch_room_members()
        elif isinstance(event, RoomDissolved):
            self.state_store.update(room_dissolved=True)
