"""Shared fixtures: an in-memory fake of the REST client and sample records."""

import asyncio
from typing import Optional

import pytest

from watchd.clients.base import TOKEN_KEY, USER_ID_KEY, USER_NAME_KEY
from watchd.models.schemas import (
    AuthResponse, DeleteArchiveResponse, Favorite, FavoritesResponse,
    LeaveRoomResponse, Match, MatchesResponse, MatchInfo, MatchMovie,
    MessageResponse, Movie, MovieFeedResponse, Room, RoomDetailResponse,
    RoomMember, RoomResponse, RoomsListResponse, SwipeInfo, SwipeResponse,
    UpdateMatchResponse, UpdateUserResponse, User,
)
from watchd.services.credentials import MemoryCredentialStore
from watchd.services.session import SessionManager


def make_movie(movie_id: int) -> Movie:
    return Movie(id=movie_id, title=f"Movie {movie_id}", overview="", vote_average=7.0)


def make_room(room_id: int = 1, **fields) -> Room:
    values = dict(id=room_id, code="ABC123", created_by=7, created_at="2024-05-01T12:00:00Z")
    values.update(fields)
    return Room(**values)


def make_match_movie(movie_id: int) -> MatchMovie:
    return MatchMovie(id=movie_id, title=f"Movie {movie_id}", overview="", vote_average=7.5)


def make_match(match_id: int, movie_id: int, room_id: int = 1) -> Match:
    return Match(
        id=match_id, room_id=room_id, matched_at="2024-05-02T20:00:00Z",
        movie=make_match_movie(movie_id),
    )


def make_favorite(favorite_id: int, movie_id: int) -> Favorite:
    return Favorite(id=favorite_id, movie=make_match_movie(movie_id))


class FakeApi:
    """Stands in for WatchdApiClient; records calls and serves canned data.

    ``feed_gate`` / ``swipe_gate`` / ``rooms_gate`` hold the corresponding
    calls open until set, so tests can observe in-flight behaviour. ``fail``
    maps a method name to the exception it should raise.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail: dict[str, Exception] = {}
        self.unauthorized_hook = None

        self.feed: list[Movie] = []
        self.page_size = 20
        self.feed_gate: Optional[asyncio.Event] = None
        self.swipe_gate: Optional[asyncio.Event] = None
        self.rooms_gate: Optional[asyncio.Event] = None
        self.in_flight_feeds = 0
        self.max_in_flight_feeds = 0
        self.swipe_match: Optional[MatchInfo] = None

        self.room = make_room()
        self.members: list[RoomMember] = []
        self.rooms: list[Room] = []
        self.joined_room = make_room(2, code="XYZ789")
        self.leave_dissolves = False

        self.matches: list[Match] = []
        self.favorites: list[Favorite] = []
        self.next_favorite_id = 100

        self.auth_user = User(id=7, name="Ray", email="ray@example.com")

    def set_unauthorized_hook(self, hook):
        self.unauthorized_hook = hook

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def _record(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.fail:
            raise self.fail[name]

    # ── Auth ─────────────────────────────────────────────────────

    async def login(self, email, password):
        self._record("login", email, password)
        return AuthResponse(token="fresh-token", user=self.auth_user)

    async def register(self, name, email, password):
        self._record("register", name, email, password)
        return AuthResponse(token="fresh-token", user=User(id=8, name=name, email=email))

    async def guest_login(self):
        self._record("guest_login")
        return AuthResponse(token="guest-token", user=User(id=9, name="Guest", is_guest=True))

    async def upgrade_account(self, email, password):
        self._record("upgrade_account", email, password)
        return AuthResponse(token="upgraded-token", user=User(id=9, name="Guest", email=email))

    async def update_user_name(self, name):
        self._record("update_user_name", name)
        return UpdateUserResponse(user=self.auth_user.model_copy(update={"name": name}))

    async def forgot_password(self, email):
        self._record("forgot_password", email)
        return MessageResponse(message="Mail sent")

    async def reset_password(self, token, new_password):
        self._record("reset_password", token, new_password)
        return MessageResponse(message="Password updated")

    # ── Rooms ────────────────────────────────────────────────────

    async def get_rooms(self):
        self._record("get_rooms")
        gate = self.rooms_gate
        if gate is not None:
            await gate.wait()
        return RoomsListResponse(rooms=list(self.rooms))

    async def get_room(self, room_id):
        self._record("get_room", room_id)
        return RoomDetailResponse(room=self.room, members=list(self.members))

    async def create_room(self, name=None, filters=None):
        self._record("create_room", name, filters)
        room = make_room(3, name=name, filters=filters)
        self.rooms.append(room)
        return RoomResponse(room=room)

    async def join_room(self, code):
        self._record("join_room", code)
        self.rooms.append(self.joined_room)
        return RoomResponse(room=self.joined_room)

    async def leave_room(self, room_id):
        self._record("leave_room", room_id)
        self.rooms = [r for r in self.rooms if r.id != room_id]
        return LeaveRoomResponse(message="Left", dissolved=self.leave_dissolves)

    async def update_room_name(self, room_id, name):
        self._record("update_room_name", room_id, name)
        self.rooms = [r.model_copy(update={"name": name}) if r.id == room_id else r for r in self.rooms]
        return RoomResponse(room=make_room(room_id, name=name))

    async def update_room_filters(self, room_id, filters):
        self._record("update_room_filters", room_id, filters)
        return RoomResponse(room=make_room(room_id, filters=filters))

    async def delete_from_archive(self, room_id):
        self._record("delete_from_archive", room_id)
        self.rooms = [r for r in self.rooms if r.id != room_id]
        return DeleteArchiveResponse(deleted=True)

    # ── Feed / swipes ────────────────────────────────────────────

    async def get_movie_feed(self, room_id, page=1):
        self._record("get_movie_feed", room_id, page)
        self.in_flight_feeds += 1
        self.max_in_flight_feeds = max(self.max_in_flight_feeds, self.in_flight_feeds)
        try:
            if self.feed_gate is not None:
                await self.feed_gate.wait()
            start = (page - 1) * self.page_size
            return MovieFeedResponse(page=page, movies=self.feed[start:start + self.page_size])
        finally:
            self.in_flight_feeds -= 1

    async def submit_swipe(self, movie_id, room_id, direction):
        self._record("submit_swipe", movie_id, room_id, direction)
        if self.swipe_gate is not None:
            await self.swipe_gate.wait()
        return SwipeResponse(
            swipe=SwipeInfo(user_id=7, movie_id=movie_id, room_id=room_id, direction=direction),
            match=self.swipe_match,
        )

    # ── Matches / favorites ──────────────────────────────────────

    async def get_matches(self, room_id):
        self._record("get_matches", room_id)
        return MatchesResponse(matches=list(self.matches))

    async def update_match_watched(self, match_id, watched):
        self._record("update_match_watched", match_id, watched)
        return UpdateMatchResponse(watched=watched)

    async def get_favorites(self):
        self._record("get_favorites")
        return FavoritesResponse(favorites=list(self.favorites))

    async def add_favorite(self, movie_id):
        self._record("add_favorite", movie_id)
        self.favorites.insert(0, make_favorite(self.next_favorite_id, movie_id))
        self.next_favorite_id += 1
        return MessageResponse(message="Added")

    async def remove_favorite(self, movie_id):
        self._record("remove_favorite", movie_id)
        self.favorites = [f for f in self.favorites if f.movie.id != movie_id]
        return MessageResponse(message="Removed")


class FakeRealtime:
    """Records connect/disconnect calls in place of the Socket.IO client."""

    def __init__(self):
        self.connects: list[tuple[str, int]] = []
        self.disconnects = 0
        self.handler = None
        self.fail: Optional[Exception] = None
        self._room_id = None

    @property
    def is_connected(self) -> bool:
        return self._room_id is not None

    @property
    def room_id(self):
        return self._room_id

    async def connect(self, token, room_id, handler):
        await self.disconnect()
        self.connects.append((token, room_id))
        if self.fail is not None:
            raise self.fail
        self._room_id = room_id
        self.handler = handler

    async def disconnect(self):
        if self._room_id is not None:
            self.disconnects += 1
        self._room_id = None
        self.handler = None


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def fake_realtime() -> FakeRealtime:
    return FakeRealtime()


@pytest.fixture
def store() -> MemoryCredentialStore:
    return MemoryCredentialStore({TOKEN_KEY: "stored-token", USER_ID_KEY: "7", USER_NAME_KEY: "Ray"})


@pytest.fixture
async def session(fake_api, store, fake_realtime) -> SessionManager:
    manager = SessionManager(fake_api, store, fake_realtime)
    await manager.restore()
    return manager
