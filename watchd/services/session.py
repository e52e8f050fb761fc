"""Session holder — login, logout, and the global 401 sink.

A Session exists iff a non-empty token is persisted in the credential
store. The manager is constructed explicitly and handed to whatever
composes the presentation layer; nothing here is a global.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Optional

from watchd.clients.api import WatchdApiClient
from watchd.clients.base import (
    IS_GUEST_KEY, TOKEN_KEY, USER_EMAIL_KEY, USER_ID_KEY, USER_NAME_KEY,
    ICredentialStore, IRealtimeClient,
)
from watchd.errors import ApiError, UnauthorizedError
from watchd.models.schemas import AuthResponse, User
from watchd.services.state import StateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    token: str
    user: User


@dataclass(frozen=True)
class SessionState:
    is_authenticated: bool = False
    user: Optional[User] = None
    is_loading: bool = False
    error_message: Optional[str] = None
    session_expired_message: Optional[str] = None


class SessionManager:
    """Owns the current Session and its persisted credentials."""

    def __init__(
        self,
        api: WatchdApiClient,
        store: ICredentialStore,
        realtime: Optional[IRealtimeClient] = None,
    ):
        self.api = api
        self.store = store
        self.realtime = realtime
        self.state_store: StateStore[SessionState] = StateStore(SessionState())
        self._session: Optional[Session] = None
        self._pending_join_code: Optional[str] = None
        api.set_unauthorized_hook(self.handle_unauthorized)

    @property
    def state(self) -> SessionState:
        return self.state_store.state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def token(self) -> Optional[str]:
        return self._session.token if self._session else None

    # ── Lifecycle ────────────────────────────────────────────────

    async def restore(self) -> Optional[Session]:
        """Rebuild the session from persisted credentials.

        A token without a complete user record is cleared, so no bearer token
        is sent while no Session exists.
        """
        token = await self.store.load(TOKEN_KEY)
        user_id = await self.store.load(USER_ID_KEY)
        name = await self.store.load(USER_NAME_KEY)
        if not token:
            return None
        if not user_id or name is None:
            logger.warning("Discarding persisted token without a complete user record")
            await self.store.clear_all()
            return None
        try:
            uid = int(user_id)
        except ValueError:
            logger.warning(f"Discarding persisted session with bad user id {user_id!r}")
            await self.store.clear_all()
            return None

        user = User(
            id=uid,
            name=name,
            email=await self.store.load(USER_EMAIL_KEY),
            is_guest=(await self.store.load(IS_GUEST_KEY)) == "true",
        )
        self._activate(Session(token=token, user=user))
        logger.info(f"Restored session for user {uid}")
        return self._session

    async def logout(self) -> None:
        self._session = None
        await self._teardown()
        self.state_store.update(
            is_authenticated=False, user=None, error_message=None, session_expired_message=None,
        )
        logger.info("Logged out")

    async def handle_unauthorized(self) -> None:
        """Tear the session down after a 401. Later concurrent 401s are no-ops."""
        if self._session is None:
            return
        self._session = None
        logger.info("Session expired, clearing credentials")
        self.state_store.update(
            is_authenticated=False,
            user=None,
            session_expired_message=UnauthorizedError().message,
        )
        await self._teardown()

    def acknowledge_session_expired(self) -> None:
        self.state_store.update(session_expired_message=None)

    # ── Account operations ───────────────────────────────────────

    async def login(self, email: str, password: str) -> bool:
        return await self._authenticate(self.api.login(email, password))

    async def register(self, name: str, email: str, password: str) -> bool:
        return await self._authenticate(self.api.register(name, email, password))

    async def login_as_guest(self) -> bool:
        return await self._authenticate(self.api.guest_login())

    async def upgrade_account(self, email: str, password: str) -> bool:
        """Turn the guest session into a permanent account."""
        return await self._authenticate(self.api.upgrade_account(email, password))

    async def update_name(self, name: str) -> bool:
        self.state_store.update(is_loading=True, error_message=None)
        try:
            response = await self.api.update_user_name(name)
        except ApiError as e:
            self.state_store.update(error_message=str(e))
            return False
        finally:
            self.state_store.update(is_loading=False)

        await self.store.save(USER_NAME_KEY, response.user.name)
        if self._session is not None:
            user = self._session.user.model_copy(update={"name": response.user.name})
            self._session = Session(token=self._session.token, user=user)
            self.state_store.update(user=user)
        return True

    async def forgot_password(self, email: str) -> Optional[str]:
        """Request a reset mail. Returns the server message, None on failure."""
        return await self._message_call(self.api.forgot_password(email))

    async def reset_password(self, token: str, new_password: str) -> Optional[str]:
        return await self._message_call(self.api.reset_password(token, new_password))

    # ── Deep-link join codes ─────────────────────────────────────

    def hold_join_code(self, code: str) -> None:
        self._pending_join_code = code

    def take_pending_join_code(self) -> Optional[str]:
        code, self._pending_join_code = self._pending_join_code, None
        return code

    @property
    def pending_join_code(self) -> Optional[str]:
        return self._pending_join_code

    # ── Internal helpers ─────────────────────────────────────────

    async def _authenticate(self, call: Awaitable[AuthResponse]) -> bool:
        self.state_store.update(is_loading=True, error_message=None)
        try:
            response = await call
            await self._persist(response)
        except ApiError as e:
            self.state_store.update(error_message=str(e))
            return False
        finally:
            self.state_store.update(is_loading=False)
        self._activate(Session(token=response.token, user=response.user))
        logger.info(f"Authenticated user {response.user.id} (guest={response.user.is_guest})")
        return True

    async def _message_call(self, call: Awaitable) -> Optional[str]:
        self.state_store.update(is_loading=True, error_message=None)
        try:
            response = await call
        except ApiError as e:
            self.state_store.update(error_message=str(e))
            return None
        finally:
            self.state_store.update(is_loading=False)
        return response.message or ""

    async def _persist(self, response: AuthResponse) -> None:
        user = response.user
        await self.store.save(TOKEN_KEY, response.token)
        await self.store.save(USER_ID_KEY, str(user.id))
        await self.store.save(USER_NAME_KEY, user.name)
        if user.email:
            await self.store.save(USER_EMAIL_KEY, user.email)
        else:
            await self.store.delete(USER_EMAIL_KEY)
        await self.store.save(IS_GUEST_KEY, "true" if user.is_guest else "false")

    def _activate(self, session: Session) -> None:
        self._session = session
        self.state_store.update(
            is_authenticated=True, user=session.user, session_expired_message=None,
        )

    async def _teardown(self) -> None:
        if self.realtime is not None:
            await self.realtime.disconnect()
        await self.store.clear_all()
