"""Bearer credential storage and refresh."""

from __future__ import annotations

import logging
import time
from typing import Callable

import httpx
from pydantic import ValidationError

from panic_button.core.errors import (
    AlertNetworkError,
    InvalidResponseError,
    ServerError,
    UnauthenticatedError,
)
from panic_button.core.panic_policies import ACCESS_TOKEN_KEY, EXPIRES_AT_KEY, REFRESH_TOKEN_KEY
from panic_button.schemas.auth import CredentialsStatus, LoginRequest, TokenResponse
from panic_button.services.alert_store import KeyValueStore

logger = logging.getLogger(__name__)


class TokenStore:
    """Keeps the access/refresh token pair and refreshes it on expiry."""

    def __init__(
        self,
        store: KeyValueStore,
        api_base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        base_url = api_base_url.rstrip("/")
        self._login_url = base_url + "/login"
        self._refresh_url = base_url + "/refresh"
        self._client = client
        self._timeout = timeout
        self._clock = clock

    def store_login(self, tokens: TokenResponse) -> None:
        """Persist tokens from a login or refresh response."""
        self._store.set(ACCESS_TOKEN_KEY, tokens.access_token)
        self._store.set(REFRESH_TOKEN_KEY, tokens.refresh_token)
        self._store.set(EXPIRES_AT_KEY, str(self._clock() + tokens.expires_in))

    def expires_at(self) -> float | None:
        raw = self._store.get(EXPIRES_AT_KEY)
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            return None

    def is_expired(self) -> bool:
        expires_at = self.expires_at()
        return expires_at is None or self._clock() > expires_at

    def clear(self) -> None:
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, EXPIRES_AT_KEY):
            self._store.delete(key)

    def status(self) -> CredentialsStatus:
        authenticated = bool(self._store.get(ACCESS_TOKEN_KEY) or self._store.get(REFRESH_TOKEN_KEY))
        return CredentialsStatus(authenticated=authenticated, expires_at=self.expires_at())

    async def login(self, credentials: LoginRequest) -> TokenResponse:
        """Sign in against the backend and keep the returned tokens.

        Rejected credentials raise UnauthenticatedError; anything else that
        goes wrong raises the matching PanicAlertError.
        """
        payload = {"email": credentials.email, "password": credentials.password}
        try:
            response = await self._post(self._login_url, payload)
        except httpx.HTTPError as exc:
            logger.error("Login request failed: %s", exc)
            raise AlertNetworkError(f"Could not reach the login server: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = None
        message = data.get("message") if isinstance(data, dict) else None

        if response.status_code in (400, 401, 403):
            logger.warning("Login rejected for %s (status %s)", credentials.email, response.status_code)
            raise UnauthenticatedError(message or "Invalid email or password", status_code=response.status_code)
        if not isinstance(data, dict):
            raise InvalidResponseError(status_code=response.status_code)
        if response.is_error:
            raise ServerError(message or "An error occurred during login", status_code=response.status_code)

        try:
            tokens = TokenResponse.model_validate(data)
        except ValidationError as exc:
            logger.error("Unreadable login response: %s", exc)
            raise InvalidResponseError(status_code=response.status_code) from exc

        self.store_login(tokens)
        logger.info("Signed in as %s", credentials.email)
        return tokens

    async def get_access_token(self) -> str | None:
        """Valid access token, refreshing it if needed. None means sign in again."""
        if not self.is_expired():
            token = self._store.get(ACCESS_TOKEN_KEY)
            if token:
                return token

        refresh_token = self._store.get(REFRESH_TOKEN_KEY)
        if not refresh_token:
            self.clear()
            return None

        try:
            response = await self._post(self._refresh_url, {"refresh_token": refresh_token})
        except httpx.HTTPError as exc:
            logger.error("Token refresh failed: %s", exc)
            self.clear()
            return None

        if response.is_error:
            logger.warning("Token refresh rejected with status %s", response.status_code)
            self.clear()
            return None

        try:
            tokens = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.error("Unreadable token refresh response: %s", exc)
            self.clear()
            return None

        self.store_login(tokens)
        logger.info("Access token refreshed")
        return tokens.access_token

    async def _post(self, url: str, payload: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, json=payload)
