"""
Session Authenticator

Two-step login: fetch an anti-forgery token, then post the credentials with
that token in the X-CSRF-Token header. Both calls go through the same client
so the login is tied to the token request by its session cookie. Neither step
is retried; any failure aborts the run.
"""

import logging

import httpx

from apps.harvester.client import CSRF_HEADER, AuthContext, Credentials, parse_envelope
from utils.errors import AuthError
from utils.schemas import Envelope

logger = logging.getLogger(__name__)


class SessionAuthenticator:
    """Produces the AuthContext every later request depends on."""

    def __init__(self, client: httpx.AsyncClient, api_base: str, token_path: str, login_path: str) -> None:
        self.client = client
        base = api_base.rstrip("/")
        self.token_url = f"{base}/{token_path.lstrip('/')}"
        self.login_url = f"{base}/{login_path.lstrip('/')}"

    async def authenticate(self, credentials: Credentials) -> AuthContext:
        """
        Run the token and login handshake.

        Args:
            credentials: Portal user id and password

        Returns:
            AuthContext holding the token and the session client

        Raises:
            AuthError: If either step is rejected or the transport fails
            ParseError: If either response is not a JSON envelope
        """
        token = await self.request_token(credentials)
        logger.info("Got token", extra={"user": credentials.uid})

        await self.login(credentials, token)
        logger.info("Logged in", extra={"user": credentials.uid})

        return AuthContext(token=token, client=self.client, credentials=credentials)

    async def request_token(self, credentials: Credentials) -> str:
        envelope = await self._send("GET", self.token_url, credentials, headers=None)

        if not envelope.success:
            raise AuthError(f"Unable to get token: {envelope.message}", details={"url": self.token_url})

        token = envelope.meta.get("token")
        if token is None or token == "":
            raise AuthError("Token response carried no token", details={"url": self.token_url})

        return str(token)

    async def login(self, credentials: Credentials, token: str) -> None:
        envelope = await self._send("POST", self.login_url, credentials, headers={CSRF_HEADER: token})

        if not envelope.success:
            raise AuthError(f"Authentication failed: {envelope.message}", details={"url": self.login_url})

    async def _send(self, method: str, url: str, credentials: Credentials, headers: dict[str, str] | None) -> Envelope:
        try:
            response = await self.client.request(method, url, content=credentials.to_json(), headers=headers)
        except httpx.HTTPError as e:
            raise AuthError(f"{method} {url} failed: {e}", details={"url": url}) from e

        return parse_envelope(response)
