from __future__ import annotations

import asyncio
import random
from typing import Any, Dict, Optional

import httpx

TRANSIENT_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
LOCAL_TOKEN_HEADER = "X-Local-Token"


def build_headers(session_token: str = "") -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if session_token:
        headers[LOCAL_TOKEN_HEADER] = session_token
    return headers


def build_httpx_client(
    *,
    base_url: str,
    headers: Dict[str, str],
    connect_timeout_sec: float,
    read_timeout_sec: float,
    max_connections: int = 20,
    max_keepalive_connections: int = 5,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    timeout = httpx.Timeout(connect=connect_timeout_sec, read=read_timeout_sec, write=read_timeout_sec, pool=5.0)
    limits = httpx.Limits(
        max_connections=max(1, int(max_connections)),
        max_keepalive_connections=max(1, int(max_keepalive_connections)),
    )
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=timeout,
        limits=limits,
        transport=transport,
    )


async def get_with_retries(
    client: httpx.AsyncClient,
    *,
    path: str,
    attempts: int = 3,
    base_backoff_sec: float = 0.5,
) -> httpx.Response:
    """GET ``path``, retrying timeouts, connect errors and transient statuses.

    Non-transient statuses are returned to the caller unchanged so it can map
    them onto its own error types.
    """
    last_exc: Exception | None = None
    max_attempts = max(1, int(attempts))
    for idx in range(max_attempts):
        try:
            resp = await client.get(path)
        except httpx.TransportError as exc:
            last_exc = exc
            if idx + 1 >= max_attempts or not _is_transient_error(exc):
                raise
            await _sleep_backoff(idx, base_backoff_sec)
            continue
        if resp.status_code in TRANSIENT_STATUS_CODES and idx + 1 < max_attempts:
            await _sleep_backoff(idx, base_backoff_sec)
            continue
        return resp
    if last_exc is not None:
        raise last_exc
    raise RuntimeError("get_with_retries exhausted without result")


def _is_transient_error(exc: Exception) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    text = type(exc).__name__.lower() + " " + str(exc).lower()
    transient_markers = ["timeout", "readerror", "connecterror", "network", "tempor", "name or service not known"]
    return any(marker in text for marker in transient_markers)


async def _sleep_backoff(attempt_idx: int, base_backoff_sec: float) -> None:
    # bounded exponential backoff with jitter
    delay = min(8.0, max(0.0, float(base_backoff_sec)) * (2 ** attempt_idx))
    delay = delay * (0.8 + random.random() * 0.4)
    await asyncio.sleep(delay)


def error_text(resp: httpx.Response) -> str:
    try:
        body: Any = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            value = body.get(key)
            if value:
                return str(value)
    return resp.reason_phrase or f"HTTP {resp.status_code}"
