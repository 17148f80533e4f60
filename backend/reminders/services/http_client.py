"""
Process-wide httpx.AsyncClient for the mail relay.
Opened by the host lifespan (or a one-off script) and closed on shutdown; digest sends reuse its pool.
"""
from __future__ import annotations

import httpx

from reminders.config import Settings, settings as default_settings

USER_AGENT = "sarkari-reminders/0.1"

_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    if _http_client is None:
        raise RuntimeError("Mail relay client not initialized; call init_http_client() at startup.")
    return _http_client


def init_http_client(settings: Settings | None = None) -> httpx.AsyncClient:
    """Create the shared client once; later calls return the existing one."""
    global _http_client
    if _http_client is not None:
        return _http_client
    settings = settings or default_settings
    _http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.mail_timeout_seconds, connect=5.0),
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        headers={"User-Agent": USER_AGENT},
    )
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
