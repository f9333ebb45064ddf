"""Shared HTTP client construction for the form API."""

from __future__ import annotations

import httpx

from formchat import __version__
from formchat.config import Settings

USER_AGENT = f"formchat/{__version__}"


def build_client(settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Build one async client shared by the chat transport and the persistence client."""

    headers = {"User-Agent": USER_AGENT, "Accept": "text/plain, application/json;q=0.9, */*;q=0.8"}
    if settings.api_key:
        headers["Authorization"] = f"Bearer {settings.api_key}"
    return httpx.AsyncClient(
        headers=headers,
        timeout=httpx.Timeout(settings.request_timeout_seconds),
        transport=transport,
    )


def describe_status_error(response: httpx.Response) -> str:
    reason = response.reason_phrase or "error"
    return f"http_{response.status_code}: {reason}"
