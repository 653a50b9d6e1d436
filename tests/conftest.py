"""
Shared pytest fixtures.
"""
import re
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import orjson
import pytest

from apps.harvester.client import AuthContext, Credentials, create_http_client
from utils.config import Settings
from utils.errors import UploadError

ARTIFACT_PATH = re.compile(r"^/flight/(?P<flight_id>[^/]+)/igc$")


def make_flight(n: int) -> dict[str, Any]:
    return {
        "IDFlight": str(1000 + n),
        "FlightDate": f"2025-03-{n % 28 + 1:02d}",
        "BestTaskPoints": f"{100 - n}.5",
        "FirstName": "Anna",
        "FKFederation": None,
        "ClubName": None,
        "GliderBrand": "Ozone",
        "TakeoffWaypointName": "Brauneck",
    }


def igc_body(flight_id: str) -> bytes:
    return f"AXXX{flight_id}\r\nHFDTE180325\r\nB1200004730000N01130000EA0150001600\r\n".encode("ascii") + bytes([0, 255])


class FakePortal:
    """In-memory stand-in for the flight portal behind httpx.MockTransport."""

    def __init__(
        self,
        flights: list[dict[str, Any]],
        token: str = "tok-123",
        total_count: Optional[int] = None,
        token_success: bool = True,
        login_success: bool = True,
        artifact_failures: Optional[dict[str, list[int]]] = None,
        listing_status: int = 200,
    ) -> None:
        self.flights = flights
        self.token = token
        self.total_count = len(flights) if total_count is None else total_count
        self.token_success = token_success
        self.login_success = login_success
        # flight id -> queue of status codes returned before a 200
        self.artifact_failures = {k: list(v) for k, v in (artifact_failures or {}).items()}
        self.listing_status = listing_status

        self.requests: list[httpx.Request] = []
        self.listing_offsets: list[int] = []
        self.listing_params: list[httpx.QueryParams] = []
        self.artifact_requests: dict[str, int] = {}
        self.login_request: Optional[httpx.Request] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/xc/login/status"):
            if not self.token_success:
                return httpx.Response(200, json={"success": False, "message": "bad credentials"})
            return httpx.Response(
                200,
                json={"success": True, "message": "", "meta": {"token": self.token}},
                headers={"set-cookie": "PHPSESSID=sess-42; Path=/"},
            )

        if path.endswith("/xc/login/login"):
            self.login_request = request
            return httpx.Response(200, json={"success": self.login_success, "message": "login"})

        if path.endswith("/fli/flights"):
            return self._listing(request)

        match = ARTIFACT_PATH.match(path)
        if match:
            flight_id = match.group("flight_id")
            self.artifact_requests[flight_id] = self.artifact_requests.get(flight_id, 0) + 1
            pending = self.artifact_failures.get(flight_id)
            if pending:
                return httpx.Response(pending.pop(0), content=b"error")
            return httpx.Response(200, content=igc_body(flight_id))

        return httpx.Response(404, content=b"not found")

    def _listing(self, request: httpx.Request) -> httpx.Response:
        if self.listing_status != 200:
            return httpx.Response(self.listing_status, content=b"unavailable")

        navpars = orjson.loads(request.url.params["navpars"])
        start, limit = navpars["start"], navpars["limit"]
        self.listing_offsets.append(start)
        self.listing_params.append(request.url.params)

        return httpx.Response(
            200,
            json={
                "success": True,
                "message": "",
                "meta": {"totalCount": self.total_count},
                "data": self.flights[start:start + limit],
            },
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeRemoteStore:
    """Records uploaded basenames; fails for names listed in fail_names."""

    name = "fake"

    def __init__(self, fail_names: tuple[str, ...] = ()) -> None:
        self.fail_names = set(fail_names)
        self.uploaded: dict[str, bytes] = {}

    def upload(self, local_path: str | Path) -> str:
        path = Path(local_path)
        if path.name in self.fail_names:
            raise UploadError(f"refused {path.name}")
        self.uploaded[path.name] = path.read_bytes()
        return f"fake://{path.name}"


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    """Settings factory isolated from the environment and .env files."""

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "XC_USER": "pilot",
            "XC_PASS": "secret",
            "OUTPUT_DIR": str(tmp_path / "data"),
            "REMOTE_BACKEND": "none",
            "REDIS_URL": "",
            "PAGE_SIZE": 2,
            "PAGE_DELAY_SECONDS": 0,
            "MAX_CONCURRENCY": 4,
            "ARTIFACT_MAX_RETRIES": 0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(uid="pilot", pwd="secret")


@pytest.fixture
def flights() -> list[dict[str, Any]]:
    return [make_flight(n) for n in range(5)]


@pytest.fixture
def portal(flights: list[dict[str, Any]]) -> FakePortal:
    return FakePortal(flights)


@pytest.fixture
async def auth(portal: FakePortal, make_settings: Callable[..., Settings], credentials: Credentials):
    """AuthContext over the fake portal, skipping the handshake."""
    async with create_http_client(make_settings(), transport=portal.transport) as client:
        yield AuthContext(token=portal.token, client=client, credentials=credentials)
