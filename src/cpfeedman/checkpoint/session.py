"""Session-authenticated client for the Check Point management web API.

Every command is a JSON POST to ``<api_url><command>``. After ``login`` the
session id travels in the ``X-chkp-sid`` header. The session is renewed
automatically a few minutes before the server would expire it.
"""

import json
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx
from pydantic import ValidationError

from cpfeedman.checkpoint.models import LoginResponse
from cpfeedman.config import Settings
from cpfeedman.errors import ApiError, AuthError, CheckPointError, TransportError

logger = logging.getLogger(__name__)

SID_HEADER = "X-chkp-sid"
SESSION_NAME = "cpfeedman-session"
SESSION_TIMEOUT_SECS = 60 * 60
# Renew this long before the server-side session expires.
EXPIRY_MARGIN_SECS = 5 * 60


def _mask(sid: str) -> str:
    return f"{sid[:6]}..." if len(sid) > 6 else "***"


class CheckPointSession:
    """Owns the HTTP transport and the session id for one management server.

    Example:
        async with CheckPointSession.from_settings(settings) as session:
            body = await session.call_authenticated("show-simple-gateways", {"limit": 500})
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        verify_tls: bool = False,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the session.

        Args:
            api_url: Base URL ending in ``web_api/``
            api_key: API key used for login
            verify_tls: Verify the server certificate
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
            clock: Returns the current time as epoch seconds
        """
        self.api_url = api_url if api_url.endswith("/") else api_url + "/"
        self.api_key = api_key
        self._clock = clock
        self._client = httpx.AsyncClient(
            verify=verify_tls,
            timeout=timeout,
            transport=transport,
        )
        self.sid = ""
        self.sid_expires_at = 0.0

        if not verify_tls:
            logger.warning("TLS certificate verification is disabled for the management API")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "CheckPointSession":
        return cls(
            api_url=settings.api_url,
            api_key=settings.checkpoint_api_key,
            verify_tls=settings.checkpoint_verify_tls,
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "CheckPointSession":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @property
    def is_authenticated(self) -> bool:
        """True while a session id is held and has not reached its expiry."""
        return bool(self.sid) and self._clock() < self.sid_expires_at

    async def call(
        self,
        command: str,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """Issue one API command without touching the session state.

        Args:
            command: API command name, e.g. ``show-task``
            payload: JSON body (an empty object when None)
            headers: Extra request headers

        Returns:
            The raw response body

        Raises:
            TransportError: If the request could not be completed
            ApiError: If the server answered with a status other than 200
        """
        request_headers = {"Content-Type": "application/json"}
        if self.sid:
            request_headers[SID_HEADER] = self.sid
        if headers:
            request_headers.update(headers)

        url = self.api_url + command
        try:
            response = await self._client.post(
                url,
                content=json.dumps(payload or {}),
                headers=request_headers,
            )
        except httpx.RequestError as e:
            raise TransportError(f"{command}: request to {url} failed: {e}") from e

        if response.status_code != 200:
            logger.debug(f"{command} returned {response.status_code}: {response.text[:500]}")
            raise ApiError(
                f"{command} failed with status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.text

    async def call_authenticated(
        self,
        command: str,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """Like :meth:`call`, logging in first when the session is missing or expired."""
        if not self.is_authenticated:
            logger.info("Session id is empty or expired, logging in")
            await self.login()
        return await self.call(command, payload, headers)

    async def login(self) -> LoginResponse:
        """Log in with the API key and store the session id.

        Raises:
            AuthError: If the call fails, the response cannot be parsed,
                or it carries no session id
        """
        payload = {
            "api-key": self.api_key,
            "session-name": SESSION_NAME,
            "session-timeout": SESSION_TIMEOUT_SECS,
        }
        try:
            body = await self.call("login", payload)
        except CheckPointError as e:
            raise AuthError(f"failed to login to Check Point API: {e}") from e

        try:
            login = LoginResponse.model_validate_json(body)
        except ValidationError as e:
            raise AuthError(f"failed to parse login response: {e}") from e

        if not login.sid:
            raise AuthError("login response carried no session id")

        timeout = login.session_timeout or SESSION_TIMEOUT_SECS
        self.sid = login.sid
        self.sid_expires_at = self._clock() + timeout - EXPIRY_MARGIN_SECS
        logger.info(f"Logged in to {self.api_url} (sid {_mask(self.sid)}, session timeout {timeout} s)")
        return login

    async def logout(self) -> str:
        """Log out and forget the session id.

        The local session state is cleared even when the logout call fails.

        Returns:
            The raw logout response body, or "" when there was no session
        """
        if not self.sid:
            return ""
        try:
            return await self.call("logout")
        finally:
            self.sid = ""
            self.sid_expires_at = 0.0
            logger.info("Logged out from Check Point API")
