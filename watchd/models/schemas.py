"""Pydantic wire records for the watchd REST API and socket payloads.

Fields are snake_case. The camelCase alias generator lets every record decode
either spelling the backend sends, and request bodies are serialized by alias.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from watchd.config import settings


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_body(self) -> dict:
        """JSON body as the backend expects it (camelCase, nils omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _image_url(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    return f"{settings.tmdb_image_base}{path}"


def _release_year(date: Optional[str]) -> Optional[str]:
    if not date or len(date) < 4:
        return None
    return date[:4]


# ── Users / auth ─────────────────────────────────────────────────

class User(WireModel):
    id: int
    name: str
    email: Optional[str] = None
    is_guest: bool = False


class AuthResponse(WireModel):
    token: str
    user: User


class UpdateUserResponse(WireModel):
    user: User


class MessageResponse(WireModel):
    message: Optional[str] = None


class ErrorResponse(WireModel):
    message: Optional[str] = None
    error: Optional[str] = None


class LoginRequest(WireModel):
    email: str
    password: str


class RegisterRequest(WireModel):
    name: str
    email: str
    password: str


class UpgradeAccountRequest(WireModel):
    email: str
    password: str


class ForgotPasswordRequest(WireModel):
    email: str


class ResetPasswordRequest(WireModel):
    token: str
    new_password: str


class UpdateUserNameRequest(WireModel):
    name: str


# ── Streaming availability ───────────────────────────────────────

class StreamingPackage(WireModel):
    clear_name: str
    icon: Optional[str] = None  # no longer sent; icon_url is derived from clear_name

    @property
    def slug(self) -> str:
        cleaned = self.clear_name.strip().lower().replace(" ", "-")
        return "".join(ch for ch in cleaned if ch.isalnum() or ch == "-")

    @property
    def icon_url(self) -> Optional[str]:
        if not self.slug:
            return None
        return f"{settings.icons_base_url}/icons/{self.slug}.png"


class StreamingOption(WireModel):
    monetization_type: str
    presentation_type: str
    package: StreamingPackage

    @property
    def key(self) -> str:
        return self.package.clear_name + self.monetization_type + self.presentation_type


# ── Movies / feed ────────────────────────────────────────────────

class Movie(WireModel):
    id: int
    title: str
    overview: str
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: float
    streaming_options: list[StreamingOption] = Field(default_factory=list)

    @property
    def poster_url(self) -> Optional[str]:
        return _image_url(self.poster_path)

    @property
    def backdrop_url(self) -> Optional[str]:
        return _image_url(self.backdrop_path)

    @property
    def release_year(self) -> Optional[str]:
        return _release_year(self.release_date)


class MovieFeedResponse(WireModel):
    page: int
    movies: list[Movie]


class NextMovieResponse(WireModel):
    movie: Optional[Movie] = None
    stack_empty: bool


# ── Rooms ────────────────────────────────────────────────────────

class RoomStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    DISSOLVED = "dissolved"


class RoomFilters(WireModel):
    """Server-side feed constraints. Every absent field is unconstrained."""

    genres: Optional[list[int]] = None
    streaming_services: Optional[list[int]] = None
    min_year: Optional[int] = None
    min_rating: Optional[float] = None
    max_runtime: Optional[int] = None
    language: Optional[str] = None

    def is_empty(self) -> bool:
        return not (
            self.genres
            or self.streaming_services
            or self.min_year is not None
            or self.min_rating
            or self.max_runtime is not None
            or self.language
        )

    def summary(self) -> str:
        parts = []
        if self.genres:
            parts.append(f"{len(self.genres)} genre(s)")
        if self.streaming_services:
            parts.append(f"{len(self.streaming_services)} streaming service(s)")
        if self.min_year is not None:
            parts.append(f"from {self.min_year}")
        if self.min_rating:
            parts.append(f"≥ {self.min_rating} ★")
        if self.max_runtime is not None:
            parts.append(f"≤ {self.max_runtime} min")
        if self.language:
            parts.append(self.language.upper())
        return ", ".join(parts) if parts else "No filters"


class Room(WireModel):
    id: int
    code: str
    created_by: int
    created_at: str
    name: Optional[str] = None
    status: Optional[RoomStatus] = None
    filters: Optional[RoomFilters] = None
    last_activity_at: Optional[str] = None

    @property
    def is_dissolved(self) -> bool:
        return self.status == RoomStatus.DISSOLVED

    def display_name(self, number: int) -> str:
        """Room name, or "Room #<number>" for unnamed rooms."""
        if self.name:
            return self.name
        return f"Room #{number}"

    def is_inactive(self, now: Optional[datetime] = None) -> bool:
        """True when the last activity is older than ``inactive_room_days``."""
        if not self.last_activity_at:
            return False
        try:
            last = datetime.fromisoformat(self.last_activity_at)
        except ValueError:
            return False
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        return now - last > timedelta(days=settings.inactive_room_days)


class RoomMember(WireModel):
    user_id: int
    name: str
    email: Optional[str] = None
    joined_at: str


class RoomResponse(WireModel):
    room: Room


class RoomsListResponse(WireModel):
    rooms: list[Room]


class RoomDetailResponse(WireModel):
    room: Room
    members: list[RoomMember] = Field(default_factory=list)


class LeaveRoomResponse(WireModel):
    message: Optional[str] = None
    dissolved: bool = False  # caller was the last member


class DeleteArchiveResponse(WireModel):
    deleted: bool


class CreateRoomRequest(WireModel):
    name: Optional[str] = None
    filters: Optional[RoomFilters] = None


class JoinRoomRequest(WireModel):
    code: str


class UpdateRoomNameRequest(WireModel):
    name: str


class UpdateRoomFiltersRequest(WireModel):
    filters: RoomFilters


# ── Swipes ───────────────────────────────────────────────────────

class SwipeDirection(str, Enum):
    LEFT = "left"    # reject
    RIGHT = "right"  # accept


class SwipeRequest(WireModel):
    movie_id: int
    room_id: int
    direction: SwipeDirection


class SwipeInfo(WireModel):
    user_id: int
    movie_id: int
    room_id: int
    direction: SwipeDirection


class MatchInfo(WireModel):
    is_match: bool
    match_id: Optional[int] = None
    movie_id: Optional[int] = None
    movie_title: Optional[str] = None
    poster_path: Optional[str] = None
    streaming_options: Optional[list[StreamingOption]] = None


class SwipeResponse(WireModel):
    swipe: SwipeInfo
    match: Optional[MatchInfo] = None


# ── Matches / favorites ──────────────────────────────────────────

class MatchMovie(WireModel):
    id: int
    title: str
    overview: str
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: float

    @property
    def poster_url(self) -> Optional[str]:
        return _image_url(self.poster_path)

    @property
    def backdrop_url(self) -> Optional[str]:
        return _image_url(self.backdrop_path)

    @property
    def release_year(self) -> Optional[str]:
        return _release_year(self.release_date)


class Match(WireModel):
    id: int
    room_id: int
    matched_at: str
    movie: MatchMovie
    streaming_options: list[StreamingOption] = Field(default_factory=list)
    watched: bool = False


class MatchesResponse(WireModel):
    matches: list[Match]


class UpdateMatchResponse(WireModel):
    message: Optional[str] = None
    watched: Optional[bool] = None


class UpdateWatchedRequest(WireModel):
    watched: bool


class Favorite(WireModel):
    id: int
    movie: MatchMovie
    created_at: Optional[str] = None
    streaming_options: list[StreamingOption] = Field(default_factory=list)


class FavoritesResponse(WireModel):
    favorites: list[Favorite]


class AddFavoriteRequest(WireModel):
    movie_id: int


# ── Socket payloads ──────────────────────────────────────────────

class SocketMatchEvent(WireModel):
    """Payload of the ``match`` socket event."""

    movie_id: int
    movie_title: str
    poster_path: Optional[str] = None
    streaming_options: list[StreamingOption] = Field(default_factory=list)
    room_id: Optional[int] = None

    @property
    def poster_url(self) -> Optional[str]:
        return _image_url(self.poster_path)

    @classmethod
    def from_match_info(cls, info: MatchInfo, room_id: int) -> Optional["SocketMatchEvent"]:
        """Build the celebratory payload from a swipe response, if it carries one."""
        if not info.is_match or info.movie_id is None:
            return None
        return cls(
            movie_id=info.movie_id,
            movie_title=info.movie_title or "",
            poster_path=info.poster_path,
            streaming_options=info.streaming_options or [],
            room_id=room_id,
        )


class SocketRoomPayload(WireModel):
    """Payload shared by filters_updated / partner_* / room_dissolved."""

    room_id: Optional[int] = None
    filters: Optional[RoomFilters] = None
    user_id: Optional[int] = None
    name: Optional[str] = None
