"""
HTTP session primitives shared by every harvester call.

The session handle is an httpx.AsyncClient: its cookie jar carries the
session affinity established by the token request into the login and every
later call. It lives inside AuthContext rather than in module state.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx
import orjson
from pydantic import ValidationError

from utils.config import Settings
from utils.errors import ConfigError, ParseError
from utils.schemas import Envelope

logger = logging.getLogger(__name__)

CSRF_HEADER = "X-CSRF-Token"
JSON_CONTENT_TYPE = "application/json; charset=UTF-8"


@dataclass(frozen=True)
class Credentials:
    """Portal login, sent as {"uid": ..., "pwd": ...}."""

    uid: str
    pwd: str = field(repr=False)

    @classmethod
    def from_settings(cls, config: Settings) -> "Credentials":
        if not config.XC_USER or not config.XC_PASS:
            raise ConfigError("XC_USER and XC_PASS must be set")
        return cls(uid=config.XC_USER, pwd=config.XC_PASS)

    def to_json(self) -> bytes:
        return orjson.dumps({"uid": self.uid, "pwd": self.pwd})


@dataclass(frozen=True)
class AuthContext:
    """Authenticated session: anti-forgery token plus the cookie-carrying client.

    Created once by SessionAuthenticator and only read afterwards.
    """

    token: str
    client: httpx.AsyncClient = field(repr=False)
    credentials: Credentials = field(repr=False)

    @property
    def headers(self) -> dict[str, str]:
        return {CSRF_HEADER: self.token}


def create_http_client(
    config: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Build the session client.

    Args:
        config: Settings providing HTTP_TIMEOUT and app metadata
        transport: Optional transport override (httpx.MockTransport in tests)

    Returns:
        Cookie-preserving async client
    """
    return httpx.AsyncClient(
        timeout=config.HTTP_TIMEOUT,
        follow_redirects=True,
        headers={
            "Content-Type": JSON_CONTENT_TYPE,
            "User-Agent": f"{config.APP_NAME}/{config.APP_VERSION}",
        },
        transport=transport,
    )


def parse_envelope(response: httpx.Response) -> Envelope:
    """
    Decode a JSON envelope from a response body.

    Raises:
        ParseError: If the body is not JSON or not an envelope object
    """
    try:
        return Envelope.model_validate(orjson.loads(response.content))
    except (orjson.JSONDecodeError, ValidationError) as e:
        raise ParseError(
            f"Unparseable response from {response.request.url.path}: {str(e).splitlines()[0]}",
            details={"url": str(response.request.url), "status": response.status_code},
        ) from e
