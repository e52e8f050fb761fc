"""Room list management — create, join, leave, rename, filters, archive.

Every successful mutation re-fetches the full list from the server instead
of patching local state.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Optional, TypeVar
from urllib.parse import parse_qs, urlsplit

from watchd.clients.api import WatchdApiClient
from watchd.config import settings
from watchd.errors import ApiError, ValidationError, WatchdError
from watchd.models.schemas import LeaveRoomResponse, Room, RoomFilters
from watchd.services.session import SessionManager
from watchd.services.state import LatestTaskRunner, StateStore, minimum_duration

logger = logging.getLogger(__name__)

T = TypeVar("T")

JOIN_CODE_REQUIRED = "Please enter an invite code."


def normalize_join_code(code: str) -> str:
    """Invite codes are case-insensitive for users; the server wants upper case."""
    normalized = code.strip().upper()
    if not normalized:
        raise ValidationError(JOIN_CODE_REQUIRED)
    return normalized


def extract_join_code(code_or_url: str) -> str:
    """Pull the invite code out of a join link, or return a bare code unchanged.

    Accepts ``watchd://join/ABC123``, ``https://host/join/ABC123`` and
    ``...?code=ABC123``.
    """
    raw = code_or_url.strip()
    parts = urlsplit(raw)
    if not parts.scheme:
        return raw
    query_code = parse_qs(parts.query).get("code")
    if query_code:
        return query_code[0]
    segments = [s for s in f"{parts.netloc}{parts.path}".split("/") if s]
    return segments[-1] if len(segments) > 1 else ""


@dataclass(frozen=True)
class RoomsState:
    rooms: tuple[Room, ...] = ()
    archived_rooms: tuple[Room, ...] = ()
    selected_room: Optional[Room] = None
    is_loading: bool = False
    is_loading_archived: bool = False
    error_message: Optional[str] = None


class RoomsController:
    """The user's rooms, active and archived."""

    def __init__(
        self,
        api: WatchdApiClient,
        session: SessionManager,
        min_loading_seconds: float = settings.min_loading_seconds,
    ):
        self.api = api
        self.session = session
        self.min_loading_seconds = min_loading_seconds
        self.state_store: StateStore[RoomsState] = StateStore(RoomsState())
        self._rooms_refresh = LatestTaskRunner()
        self._archive_refresh = LatestTaskRunner()

    @property
    def state(self) -> RoomsState:
        return self.state_store.state

    def display_name(self, room: Room) -> str:
        """Room name, falling back to its 1-based position in the list."""
        for number, candidate in enumerate(self.state.rooms, start=1):
            if candidate.id == room.id:
                return room.display_name(number)
        return room.display_name(len(self.state.rooms) + 1)

    # ── Listing ──────────────────────────────────────────────────

    async def load_rooms(self) -> None:
        """Active rooms (anything not dissolved). Superseded refreshes are silent."""
        await self._rooms_refresh.run(self._load(archived=False))

    async def load_archived_rooms(self) -> None:
        await self._archive_refresh.run(self._load(archived=True))

    async def _load(self, archived: bool) -> None:
        flag = "is_loading_archived" if archived else "is_loading"
        self.state_store.update(**{flag: True}, error_message=None)
        try:
            async with minimum_duration(self.min_loading_seconds):
                response = await self.api.get_rooms()
        except ApiError as e:
            self.state_store.update(error_message=str(e))
            return
        finally:
            self.state_store.update(**{flag: False})

        if archived:
            rooms = tuple(r for r in response.rooms if r.is_dissolved)
            self.state_store.update(archived_rooms=rooms)
        else:
            rooms = tuple(r for r in response.rooms if not r.is_dissolved)
            self.state_store.update(rooms=rooms)

    # ── Mutations ────────────────────────────────────────────────

    async def create_room(
        self, name: Optional[str] = None, filters: Optional[RoomFilters] = None,
    ) -> Optional[Room]:
        response = await self._call(self.api.create_room(name=name, filters=filters))
        if response is None:
            return None
        await self.load_rooms()
        return response.room

    async def join_room(self, code: str) -> Optional[Room]:
        """Join by invite code and select the joined room.

        A blank code is rejected locally without a request.
        """
        try:
            normalized = normalize_join_code(code)
        except ValidationError as e:
            self.state_store.update(error_message=str(e))
            return None

        response = await self._call(self.api.join_room(normalized))
        if response is None:
            return None
        await self.load_rooms()
        self.state_store.update(selected_room=response.room)
        return response.room

    async def leave_room(self, room: Room) -> Optional[LeaveRoomResponse]:
        response = await self._call(self.api.leave_room(room.id))
        if response is None:
            return None
        if response.dissolved:
            logger.info(f"Room {room.id} dissolved after the last member left")
        if self.state.selected_room is not None and self.state.selected_room.id == room.id:
            self.state_store.update(selected_room=None)
        await self.load_rooms()
        return response

    async def rename_room(self, room: Room, name: str) -> bool:
        if await self._call(self.api.update_room_name(room.id, name)) is None:
            return False
        await self.load_rooms()
        return True

    async def update_filters(self, room: Room, filters: RoomFilters) -> bool:
        if await self._call(self.api.update_room_filters(room.id, filters)) is None:
            return False
        await self.load_rooms()
        return True

    async def delete_from_archive(self, room: Room) -> bool:
        if await self._call(self.api.delete_from_archive(room.id)) is None:
            return False
        await self.load_archived_rooms()
        return True

    # ── Selection / deep links ───────────────────────────────────

    def select_room(self, room: Room) -> None:
        self.state_store.update(selected_room=room)

    def clear_selection(self) -> None:
        self.state_store.update(selected_room=None)

    def dismiss_error(self) -> None:
        self.state_store.update(error_message=None)

    async def handle_join_link(self, code_or_url: str) -> bool:
        """Join from an external link, or hold the code until logged in.

        Returns True when the room was joined right away.
        """
        code = extract_join_code(code_or_url)
        if not self.session.is_authenticated:
            logger.info("Holding join link until the user is authenticated")
            self.session.hold_join_code(code)
            return False
        return await self.join_room(code) is not None

    async def resume_pending_join(self) -> Optional[Room]:
        """Dispatch a held join code once a session exists."""
        if not self.session.is_authenticated:
            return None
        code = self.session.take_pending_join_code()
        if code is None:
            return None
        return await self.join_room(code)

    # ── Internal helpers ─────────────────────────────────────────

    async def _call(self, call: Awaitable[T]) -> Optional[T]:
        try:
            return await call
        except WatchdError as e:
            self.state_store.update(error_message=str(e))
            return None
