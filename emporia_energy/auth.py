from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from aiohttp import ClientSession

from .cognito import CognitoTokens, login_with_password, refresh_with_refresh_token
from .exceptions import (
    AuthNetworkError,
    AuthorizationRejectedError,
    CognitoError,
    InvalidCredentialsError,
    LoginFailedError,
    NoRefreshTokenError,
    RefreshRejectedError,
    SessionExpiredError,
    StorageWriteError,
    UnauthenticatedError,
)
from .models import SessionToken, now_ms
from .store import SessionStore

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

# Cognito error types that mean the username or password is wrong.
CREDENTIAL_ERROR_TYPES = frozenset(
    {"NotAuthorizedException", "UserNotFoundException", "PasswordResetRequiredException"}
)


class AuthSession:
    """Owns the Cognito session used by every vendor API call.

    Only one refresh is ever outstanding: concurrent callers share the same
    refresh task, and a caller whose token was already replaced by someone
    else's refresh reuses the new token instead of refreshing again.
    """

    def __init__(
        self,
        *,
        aiohttp_session: ClientSession,
        store: SessionStore | None = None,
        token_update_callback: Callable[[SessionToken], None] | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._aiohttp_session = aiohttp_session
        self._store = store
        self._token_update_callback = token_update_callback
        self._clock = clock
        self._token: SessionToken | None = None
        self._username: str | None = None
        self._refresh_task: asyncio.Task[SessionToken] | None = None

    @property
    def token(self) -> SessionToken | None:
        return self._token

    @property
    def username(self) -> str | None:
        return self._username

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None and not self._token.is_expired(self._clock())

    def discard(self) -> None:
        # The stored file is left alone; the next login overwrites it.
        self._token = None

    async def async_authenticate(self, username: str, password: str) -> SessionToken:
        username = username.strip().lower()
        _LOGGER.debug("Authenticating %s with Emporia via Cognito", username)
        try:
            tokens = await login_with_password(self._aiohttp_session, username=username, password=password)
        except CognitoError as e:
            if e.status is not None and e.status >= 500:
                raise AuthNetworkError(f"identity provider unavailable: {e}") from e
            if e.error_type in CREDENTIAL_ERROR_TYPES:
                raise InvalidCredentialsError(f"login rejected: {e}") from e
            raise LoginFailedError(f"login failed: {e}") from e

        self._username = username
        token = await self._async_activate(tokens)
        _LOGGER.info("Authenticated with Emporia as %s", username)
        return token

    def restore(self, stored_token: SessionToken | None, username: str | None = None) -> bool:
        if stored_token is None or stored_token.is_expired(self._clock()):
            return False
        self._token = stored_token
        if username:
            self._username = username.strip().lower()
        _LOGGER.debug("Restored Emporia session for %s", self._username)
        return True

    async def async_refresh(self) -> SessionToken:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._async_refresh_once())
        task = self._refresh_task
        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and self._refresh_task is task:
                self._refresh_task = None

    async def _async_refresh_once(self) -> SessionToken:
        token = self._token
        if token is None or not token.refresh_token:
            raise NoRefreshTokenError("no session to refresh; authenticate first")

        try:
            tokens = await refresh_with_refresh_token(self._aiohttp_session, refresh_token=token.refresh_token)
        except CognitoError as e:
            if e.status is not None and e.status >= 500:
                raise AuthNetworkError(f"identity provider unavailable: {e}") from e
            _LOGGER.warning("Emporia rejected the refresh token; a new login is required")
            self.discard()
            raise RefreshRejectedError(str(e)) from e

        refreshed = await self._async_activate(tokens)
        _LOGGER.debug("Emporia session token refreshed")
        return refreshed

    async def _async_activate(self, tokens: CognitoTokens) -> SessionToken:
        token = SessionToken(
            id_token=tokens.id_token,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at_ms=self._clock() + tokens.expires_in * 1000,
        )
        self._token = token

        if self._store is not None:
            try:
                await self._store.async_save(token)
            except StorageWriteError as e:
                # Keep going with the in-memory token; the next refresh tries again.
                _LOGGER.warning("Could not persist Emporia session token: %s", e)
        if self._token_update_callback is not None:
            self._token_update_callback(token)
        return token

    async def _async_valid_token(self) -> SessionToken:
        token = self._token
        if token is None:
            raise UnauthenticatedError("no active Emporia session")
        if not token.is_expired(self._clock()):
            return token
        if not token.refresh_token:
            self.discard()
            raise UnauthenticatedError("Emporia session expired")

        _LOGGER.debug("Emporia session token expired; refreshing before use")
        try:
            return await self.async_refresh()
        except (NoRefreshTokenError, RefreshRejectedError) as e:
            raise SessionExpiredError(str(e)) from e

    async def _async_token_after_rejection(self, rejected: SessionToken) -> SessionToken:
        current = self._token
        if current is None:
            raise SessionExpiredError("Emporia session was discarded")
        if current is not rejected:
            return current
        try:
            return await self.async_refresh()
        except (NoRefreshTokenError, RefreshRejectedError) as e:
            raise SessionExpiredError(str(e)) from e

    async def async_call(self, request: Callable[[str], Awaitable[T]]) -> T:
        """Run an authenticated request, refreshing once on an authorization failure."""
        token = await self._async_valid_token()
        try:
            return await request(token.id_token)
        except AuthorizationRejectedError:
            _LOGGER.debug("Emporia rejected the session token; refreshing and retrying once")

        fresh = await self._async_token_after_rejection(token)
        try:
            return await request(fresh.id_token)
        except AuthorizationRejectedError as e:
            raise SessionExpiredError("Emporia rejected the session after a refresh") from e
