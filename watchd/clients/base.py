"""Abstract interfaces for the credential store and the real-time subscriber.

Also defines the typed room events the subscriber publishes. Every socket
event is parsed into exactly one of these dataclasses and handed to a single
async handler.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from watchd.models.schemas import RoomFilters, SocketMatchEvent


# ── Credential keys ──────────────────────────────────────────────

TOKEN_KEY = "jwt_token"
USER_ID_KEY = "user_id"
USER_NAME_KEY = "user_name"
USER_EMAIL_KEY = "user_email"
IS_GUEST_KEY = "is_guest"

ALL_CREDENTIAL_KEYS = (TOKEN_KEY, USER_ID_KEY, USER_NAME_KEY, USER_EMAIL_KEY, IS_GUEST_KEY)


# ── Room events ──────────────────────────────────────────────────

@dataclass(frozen=True)
class MatchFound:
    """``match``: room members agreed on a movie."""
    room_id: int
    match: SocketMatchEvent


@dataclass(frozen=True)
class FiltersUpdated:
    """``filters_updated``: the room's feed constraints changed server-side."""
    room_id: int
    filters: Optional[RoomFilters] = None


@dataclass(frozen=True)
class PartnerJoined:
    room_id: int
    user_id: Optional[int] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class PartnerLeft:
    room_id: int
    user_id: Optional[int] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class RoomDissolved:
    room_id: int


RoomEvent = Union[MatchFound, FiltersUpdated, PartnerJoined, PartnerLeft, RoomDissolved]
EventHandler = Callable[[RoomEvent], Awaitable[None]]


# ── Abstract Interfaces ──────────────────────────────────────────

class ICredentialStore(ABC):
    """Small string key-value store for credentials (keychain stand-in)."""

    @abstractmethod
    async def save(self, key: str, value: str) -> None:
        """Insert or replace the value for ``key``."""
        ...

    @abstractmethod
    async def load(self, key: str) -> Optional[str]:
        """Value for ``key`` or None."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def clear_all(self) -> None:
        """Remove every credential key."""
        ...


class IRealtimeClient(ABC):
    """One live room connection at a time."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @property
    @abstractmethod
    def room_id(self) -> Optional[int]:
        """Room of the current connection, if any."""
        ...

    @abstractmethod
    async def connect(self, token: str, room_id: int, handler: EventHandler) -> None:
        """Tear down any existing connection, then connect and join ``room_id``."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...
