from typing import Any, Mapping
from urllib.parse import quote
import uuid

import httpx
from box import Box

from connectors.host_interface import HostDeploymentService, HostSessionProtocol
from orchestrator.exceptions import UnitNotFound


##### Sessions #####
class HttpHostSession(HostSessionProtocol):
    """
    A session with a remote host speaking the mock host REST API.

    Args:
        host_URL (str): The base URL of the host.
            Must include scheme (http:// or https://) and optionally port.
            Examples: "http://localhost:8000", "https://host.example.com"
        user (str): The username for authentication.
        password (str): The password for authentication.
        transport: Optional httpx transport (e.g. httpx.ASGITransport in tests).
    """
    def __init__(self, host_URL: str, user: str = "", password: str = "", transport: httpx.AsyncBaseTransport | None = None):
        self.base_URL = host_URL.rstrip("/")
        self.user = user
        self.password = password
        self.session_id = str(uuid.uuid4())
        auth = (user, password) if user else None
        self._client = httpx.AsyncClient(base_url=self.base_URL, auth=auth, transport=transport)

    async def request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request to the host.
        raise_for_status() is called on the response.

        example: await session.request("POST", "/units/web/start", json={"instances": 2})
        """
        response = await self._client.request(method, f"/{endpoint.lstrip('/')}", **kwargs)
        response.raise_for_status()
        return response

    @property
    def host_type(self) -> str:
        return "http"

    async def is_alive(self) -> bool:
        """Check the host answers on /status."""
        try:
            resp = await self.request("GET", "/status", timeout=2)
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    async def connect(self) -> None:
        if not await self.is_alive():
            raise ConnectionError(f"Cannot connect to host at {self.base_URL}")

    async def disconnect(self) -> None:
        await self._client.aclose()


##### Connectors #####

class HttpHostConnector(HostDeploymentService):
    """Host deployment service backed by a remote host's REST API."""

    def __init__(self, session: HttpHostSession):
        self.session: HttpHostSession = session

    @property
    def info(self) -> Box:
        return Box({
            "type": self.session.host_type,
            "hostURL": self.session.base_URL,
            "user": self.session.user,
        })

    async def start(self, identifier: str, options: Mapping[str, Any] | None = None) -> str:
        try:
            # identifiers may hold "/" or ":" (import paths), keep them one path segment
            endpoint = f"/units/{quote(identifier, safe='')}/start"
            r = await self.session.request("POST", endpoint, json=dict(options or {}))
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise UnitNotFound(identifier) from exc
            raise
        return r.json()["instanceId"]

    async def list_instances(self) -> list[Box]:
        r = await self.session.request("GET", "/instances")
        return [Box(item) for item in r.json()]
