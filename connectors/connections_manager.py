# connections_manager.py
"""
connections_manager.py
----------------------
Builds host deployment services and keeps sessions with remote hosts.

Sessions are cached per (host_URL, user) pair and reused.
"""

import logging

from connectors.host_interface import HostDeploymentService
from connectors.http_host import HttpHostConnector, HttpHostSession
from connectors.local_host import LocalHost

logger = logging.getLogger(__name__)

######################### Sessions #########################

_active_sessions: dict[tuple[str, str], HttpHostSession] = {}
# key: (host_URL, user) tuple


async def get_session(host_URL: str, user: str = "", password: str = "") -> HttpHostSession:
    """
    Get or create a session with the host at host_URL.
    Reuses an existing session if one matches the (host_URL, user) pair.
    """
    key = (host_URL, user)
    if key in _active_sessions:
        return _active_sessions[key]

    session = HttpHostSession(host_URL, user, password)
    try:
        await session.connect()
    except ConnectionError:
        await session.disconnect()
        raise
    _active_sessions[key] = session
    logger.info("Opened session %s with %s", session.session_id, host_URL)
    return session


async def close_sessions() -> None:
    while _active_sessions:
        _, session = _active_sessions.popitem()
        await session.disconnect()


async def get_host(host_type: str = "local", host_URL: str | None = None, user: str = "", password: str = "") -> HostDeploymentService:
    """Return a host deployment service of the given type ("local" or "http")."""
    if host_type == "local":
        return LocalHost()
    if host_type == "http":
        if not host_URL:
            raise ValueError("host_URL is required for http hosts")
        session = await get_session(host_URL, user, password)
        return HttpHostConnector(session)
    raise ValueError(f"Unsupported host type: {host_type}")
