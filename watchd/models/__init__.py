"""Re-export wire records and tables for import convenience."""

from watchd.models.schemas import (  # noqa: F401
    User, AuthResponse, UpdateUserResponse, MessageResponse, ErrorResponse,
    StreamingPackage, StreamingOption,
    Movie, MovieFeedResponse, NextMovieResponse,
    RoomStatus, RoomFilters, Room, RoomMember,
    RoomResponse, RoomsListResponse, RoomDetailResponse, LeaveRoomResponse,
    SwipeDirection, SwipeInfo, MatchInfo, SwipeResponse,
    MatchMovie, Match, MatchesResponse, UpdateMatchResponse,
    Favorite, FavoritesResponse,
    SocketMatchEvent, SocketRoomPayload,
)
from watchd.models.tables import CredentialEntry  # noqa: F401
