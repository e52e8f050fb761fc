"""Matches and favorites lists with server-confirmed toggles."""

import logging
from dataclasses import dataclass
from typing import Optional

from watchd.clients.api import WatchdApiClient
from watchd.config import settings
from watchd.errors import ApiError
from watchd.models.schemas import Favorite, Match
from watchd.services.state import LatestTaskRunner, StateStore, minimum_duration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchesState:
    matches: tuple[Match, ...] = ()
    is_loading: bool = False
    error_message: Optional[str] = None


@dataclass(frozen=True)
class FavoritesState:
    favorites: tuple[Favorite, ...] = ()
    is_loading: bool = False
    error_message: Optional[str] = None


class MatchesController:
    """Matches of one room."""

    def __init__(
        self,
        room_id: int,
        api: WatchdApiClient,
        min_loading_seconds: float = settings.min_loading_seconds,
    ):
        self.room_id = room_id
        self.api = api
        self.min_loading_seconds = min_loading_seconds
        self.state_store: StateStore[MatchesState] = StateStore(MatchesState())
        self._refresh = LatestTaskRunner()

    @property
    def state(self) -> MatchesState:
        return self.state_store.state

    async def fetch_matches(self) -> None:
        await self._refresh.run(self._load())

    async def _load(self) -> None:
        self.state_store.update(is_loading=True, error_message=None)
        try:
            async with minimum_duration(self.min_loading_seconds):
                response = await self.api.get_matches(self.room_id)
        except ApiError as e:
            self.state_store.update(error_message=str(e))
            return
        finally:
            self.state_store.update(is_loading=False)
        self.state_store.update(matches=tuple(response.matches))

    async def toggle_watched(self, match_id: int, watched: bool) -> bool:
        """Set the watched flag; local state changes only after the server agrees."""
        try:
            await self.api.update_match_watched(match_id, watched)
        except ApiError as e:
            logger.warning(f"Could not mark match {match_id} watched={watched}: {e}")
            self.state_store.update(error_message=str(e))
            return False

        self.state_store.update(matches=tuple(
            m.model_copy(update={"watched": watched}) if m.id == match_id else m
            for m in self.state.matches
        ))
        return True

    def dismiss_error(self) -> None:
        self.state_store.update(error_message=None)


class FavoritesController:
    """The user's favorites across all rooms."""

    def __init__(
        self,
        api: WatchdApiClient,
        min_loading_seconds: float = settings.min_loading_seconds,
    ):
        self.api = api
        self.min_loading_seconds = min_loading_seconds
        self.state_store: StateStore[FavoritesState] = StateStore(FavoritesState())
        self._refresh = LatestTaskRunner()

    @property
    def state(self) -> FavoritesState:
        return self.state_store.state

    def is_favorite(self, movie_id: int) -> bool:
        return any(f.movie.id == movie_id for f in self.state.favorites)

    async def fetch_favorites(self) -> None:
        await self._refresh.run(self._load())

    async def _load(self) -> None:
        self.state_store.update(is_loading=True, error_message=None)
        try:
            async with minimum_duration(self.min_loading_seconds):
                response = await self.api.get_favorites()
        except ApiError as e:
            self.state_store.update(error_message=str(e))
            return
        finally:
            self.state_store.update(is_loading=False)
        self.state_store.update(favorites=tuple(response.favorites))

    async def toggle_favorite(self, movie_id: int) -> bool:
        """Remove patches the list in place; add reloads it.

        The server assigns the new favorite's id and position, so an add
        cannot be patched locally.
        """
        try:
            if self.is_favorite(movie_id):
                await self.api.remove_favorite(movie_id)
                self.state_store.update(favorites=tuple(
                    f for f in self.state.favorites if f.movie.id != movie_id
                ))
            else:
                await self.api.add_favorite(movie_id)
                await self.fetch_favorites()
        except ApiError as e:
            self.state_store.update(error_message=str(e))
            return False
        return True

    def dismiss_error(self) -> None:
        self.state_store.update(error_message=None)
