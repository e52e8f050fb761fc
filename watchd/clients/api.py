"""watchd backend client — auth, rooms, feed, swipes, matches, favorites.

Every call is a JSON request against ``api_base_url``. Authenticated calls
read the bearer token from the credential store at request time, so a
logout takes effect on the very next request.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from watchd.errors import (
    DecodingError, InvalidUrlError, NetworkError, ServerError, UnauthorizedError,
)
from watchd.models.schemas import (
    AddFavoriteRequest, AuthResponse, CreateRoomRequest, DeleteArchiveResponse,
    ErrorResponse, FavoritesResponse, ForgotPasswordRequest, JoinRoomRequest,
    LeaveRoomResponse, LoginRequest, MatchesResponse, MessageResponse,
    MovieFeedResponse, NextMovieResponse, RegisterRequest, ResetPasswordRequest,
    RoomDetailResponse, RoomFilters, RoomResponse, RoomsListResponse,
    SwipeDirection, SwipeRequest, SwipeResponse, UpdateMatchResponse,
    UpdateRoomFiltersRequest, UpdateRoomNameRequest, UpdateUserNameRequest,
    UpdateUserResponse, UpdateWatchedRequest, UpgradeAccountRequest, WireModel,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=WireModel)
TokenProvider = Callable[[], Awaitable[Optional[str]]]
UnauthorizedHook = Callable[[], Awaitable[None]]


class WatchdApiClient:
    """REST client for the watchd backend."""

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        timeout: float = 30.0,
        on_unauthorized: Optional[UnauthorizedHook] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self._transport = transport

    def set_unauthorized_hook(self, hook: Optional[UnauthorizedHook]) -> None:
        self._on_unauthorized = hook

    async def _request(
        self,
        path: str,
        model: type[M],
        method: str = "GET",
        body: Optional[WireModel] = None,
        params: Optional[dict] = None,
        requires_auth: bool = True,
    ) -> M:
        """Send a request and decode the 2xx body into ``model``.

        401 on an authenticated call runs the unauthorized hook (global
        logout) before raising. Other non-2xx statuses become ServerError
        with the body's message, transport failures become NetworkError.
        """
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}

        if requires_auth:
            token = await self._token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(
                    method,
                    url,
                    params=params,
                    json=body.to_body() if body is not None else None,
                    headers=headers,
                )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidUrlError(url) from e
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e!r}")
            raise NetworkError(e) from e

        if resp.status_code == 401 and requires_auth:
            logger.info(f"{method} {path} returned 401, session expired")
            if self._on_unauthorized is not None:
                await self._on_unauthorized()
            raise UnauthorizedError()

        if not resp.is_success:
            raise ServerError(resp.status_code, self._error_message(resp))

        try:
            return model.model_validate(resp.json())
        except ValueError as e:
            logger.error(f"Decoding error for {model.__name__} at {path}: {e}")
            logger.error(f"Raw response: {resp.text}")
            raise DecodingError(e) from e

    @staticmethod
    def _error_message(resp: httpx.Response) -> Optional[str]:
        try:
            body = ErrorResponse.model_validate(resp.json())
        except ValueError:
            return None
        return body.message or body.error

    # ── Auth ─────────────────────────────────────────────────────

    async def register(self, name: str, email: str, password: str) -> AuthResponse:
        body = RegisterRequest(name=name, email=email, password=password)
        return await self._request("/auth/register", AuthResponse, "POST", body, requires_auth=False)

    async def login(self, email: str, password: str) -> AuthResponse:
        body = LoginRequest(email=email, password=password)
        return await self._request("/auth/login", AuthResponse, "POST", body, requires_auth=False)

    async def guest_login(self) -> AuthResponse:
        return await self._request("/auth/guest", AuthResponse, "POST", requires_auth=False)

    async def upgrade_account(self, email: str, password: str) -> AuthResponse:
        body = UpgradeAccountRequest(email=email, password=password)
        return await self._request("/auth/upgrade", AuthResponse, "POST", body)

    async def forgot_password(self, email: str) -> MessageResponse:
        body = ForgotPasswordRequest(email=email)
        return await self._request("/auth/forgot-password", MessageResponse, "POST", body, requires_auth=False)

    async def reset_password(self, token: str, new_password: str) -> MessageResponse:
        body = ResetPasswordRequest(token=token, new_password=new_password)
        return await self._request("/auth/reset-password", MessageResponse, "POST", body, requires_auth=False)

    # ── Users ────────────────────────────────────────────────────

    async def update_user_name(self, name: str) -> UpdateUserResponse:
        body = UpdateUserNameRequest(name=name)
        return await self._request("/users/me", UpdateUserResponse, "PATCH", body)

    # ── Rooms ────────────────────────────────────────────────────

    async def create_room(
        self, name: Optional[str] = None, filters: Optional[RoomFilters] = None,
    ) -> RoomResponse:
        body = CreateRoomRequest(name=name, filters=filters)
        return await self._request("/rooms", RoomResponse, "POST", body)

    async def join_room(self, code: str) -> RoomResponse:
        return await self._request("/rooms/join", RoomResponse, "POST", JoinRoomRequest(code=code))

    async def get_room(self, room_id: int) -> RoomDetailResponse:
        return await self._request(f"/rooms/{room_id}", RoomDetailResponse)

    async def get_rooms(self) -> RoomsListResponse:
        return await self._request("/rooms", RoomsListResponse)

    async def update_room_name(self, room_id: int, name: str) -> RoomResponse:
        body = UpdateRoomNameRequest(name=name)
        return await self._request(f"/rooms/{room_id}", RoomResponse, "PATCH", body)

    async def update_room_filters(self, room_id: int, filters: RoomFilters) -> RoomResponse:
        body = UpdateRoomFiltersRequest(filters=filters)
        return await self._request(f"/rooms/{room_id}/filters", RoomResponse, "PATCH", body)

    async def leave_room(self, room_id: int) -> LeaveRoomResponse:
        return await self._request(f"/rooms/{room_id}/leave", LeaveRoomResponse, "DELETE")

    async def delete_from_archive(self, room_id: int) -> DeleteArchiveResponse:
        return await self._request(f"/rooms/{room_id}/archive", DeleteArchiveResponse, "DELETE")

    # ── Movies ───────────────────────────────────────────────────

    async def get_movie_feed(self, room_id: int, page: int = 1) -> MovieFeedResponse:
        return await self._request(
            "/movies/feed", MovieFeedResponse, params={"roomId": room_id, "page": page},
        )

    async def get_next_movie(self, room_id: int) -> NextMovieResponse:
        return await self._request(f"/movies/rooms/{room_id}/next-movie", NextMovieResponse)

    # ── Swipes ───────────────────────────────────────────────────

    async def submit_swipe(self, movie_id: int, room_id: int, direction: SwipeDirection) -> SwipeResponse:
        body = SwipeRequest(movie_id=movie_id, room_id=room_id, direction=direction)
        return await self._request("/swipes", SwipeResponse, "POST", body)

    # ── Matches ──────────────────────────────────────────────────

    async def get_matches(self, room_id: int) -> MatchesResponse:
        return await self._request(f"/matches/{room_id}", MatchesResponse)

    async def update_match_watched(self, match_id: int, watched: bool) -> UpdateMatchResponse:
        body = UpdateWatchedRequest(watched=watched)
        return await self._request(f"/matches/{match_id}", UpdateMatchResponse, "PATCH", body)

    # ── Favorites ────────────────────────────────────────────────

    async def add_favorite(self, movie_id: int) -> MessageResponse:
        body = AddFavoriteRequest(movie_id=movie_id)
        return await self._request("/matches/favorites", MessageResponse, "POST", body)

    async def remove_favorite(self, movie_id: int) -> MessageResponse:
        return await self._request(f"/matches/favorites/{movie_id}", MessageResponse, "DELETE")

    async def get_favorites(self) -> FavoritesResponse:
        return await self._request("/matches/favorites/list", FavoritesResponse)
