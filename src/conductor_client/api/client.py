"""HTTP client for the conductor service.

Every endpoint of the local REST API is exposed as a coroutine returning
domain objects; ``stream_logs`` opens the one-way log event stream of a run.
httpx failures are translated into :mod:`conductor_client.errors` types so
callers never see transport-library exceptions.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from conductor_client.api.sse import iter_sse
from conductor_client.api.transport import (
    build_headers,
    build_httpx_client,
    error_text,
    get_with_retries,
)
from conductor_client.config import ClientConfig
from conductor_client.domain.catalog import Stats, Template
from conductor_client.domain.contracts import SseEvent
from conductor_client.domain.runs import RUN_STATUS_RUNNING, Budget, Run
from conductor_client.errors import ApiError, DecodeError, NotFound, TransportError
from conductor_client.util import redact

logger = logging.getLogger(__name__)


class ConductorApi:
    def __init__(self, client: httpx.AsyncClient, get_attempts: int = 3, backoff_sec: float = 0.5) -> None:
        self._client = client
        self._get_attempts = max(1, int(get_attempts))
        self._backoff_sec = backoff_sec

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ConductorApi":
        client = build_httpx_client(
            base_url=config.api_base,
            headers=build_headers(config.session_token),
            connect_timeout_sec=config.connect_timeout_sec,
            read_timeout_sec=config.read_timeout_sec,
            transport=transport,
        )
        return cls(client, get_attempts=config.get_retries)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def list_runs(self) -> List[Run]:
        data = await self._get_json("/runs")
        if isinstance(data, dict):
            data = data.get("runs")
        if not isinstance(data, list):
            raise DecodeError("GET /runs did not return a list")
        runs: List[Run] = []
        for item in data:
            try:
                runs.append(Run.from_payload(item))
            except DecodeError as exc:
                logger.warning("Skipping undecodable run entry: %s", exc)
        return runs

    async def get_run(self, run_id: str) -> Run:
        return Run.from_payload(await self._get_json(f"/runs/{run_id}"))

    async def start_run(
        self,
        template_id: str,
        config: Any,
        budget: Optional[Budget] = None,
        secrets_ref: Optional[str] = None,
        schedule: Optional[str] = None,
    ) -> Run:
        body: Dict[str, Any] = {"template": template_id, "config": config}
        if secrets_ref:
            body["secretsRef"] = secrets_ref
        if schedule:
            body["schedule"] = schedule
        if budget is not None:
            body["budget"] = budget.to_payload()
        data = await self._post_json("/runs", body)
        return Run.from_payload(data, default_status=RUN_STATUS_RUNNING)

    async def stop_run(self, run_id: str) -> Dict[str, Any]:
        data = await self._post_json(f"/runs/{run_id}/stop", None)
        return data if isinstance(data, dict) else {"ok": True}

    @asynccontextmanager
    async def stream_logs(self, run_id: str) -> AsyncIterator[AsyncIterator[SseEvent]]:
        """Open ``GET /runs/{id}/logs`` and yield its decoded events.

        The connection stays open until the body ends, the caller leaves the
        ``async with`` block, or the transport fails. There is no read timeout.
        """
        request = self._client.build_request(
            "GET",
            f"/runs/{run_id}/logs",
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            timeout=httpx.Timeout(self._client.timeout.connect, read=None),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise TransportError(redact(f"log stream for {run_id} failed to open: {exc}")) from exc
        try:
            if response.status_code >= 400:
                await response.aread()
                raise _status_error(response)
            yield _translate_stream_errors(run_id, iter_sse(response.aiter_lines()))
        finally:
            await response.aclose()

    # ------------------------------------------------------------------
    # Catalog and aggregates
    # ------------------------------------------------------------------

    async def list_templates(self) -> List[Template]:
        data = await self._get_json("/templates")
        if isinstance(data, dict):
            data = data.get("templates")
        if not isinstance(data, list):
            raise DecodeError("GET /templates did not return a list")
        templates: List[Template] = []
        for item in data:
            try:
                templates.append(Template.from_payload(item))
            except DecodeError as exc:
                logger.warning("Skipping undecodable template entry: %s", exc)
        return templates

    async def get_template(self, template_id: str) -> Template:
        return Template.from_payload(await self._get_json(f"/templates/{template_id}"))

    async def get_stats(self) -> Stats:
        return Stats.from_payload(await self._get_json("/stats"))

    async def get_health(self) -> Dict[str, Any]:
        data = await self._get_json("/healthz")
        return data if isinstance(data, dict) else {"status": str(data)}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_json(self, path: str) -> Any:
        try:
            resp = await get_with_retries(
                self._client,
                path=path,
                attempts=self._get_attempts,
                base_backoff_sec=self._backoff_sec,
            )
        except httpx.HTTPError as exc:
            raise TransportError(redact(f"GET {path} failed: {exc}")) from exc
        return _json_or_raise(resp)

    async def _post_json(self, path: str, body: Optional[Dict[str, Any]]) -> Any:
        try:
            resp = await self._client.post(path, json=body)
        except httpx.HTTPError as exc:
            raise TransportError(redact(f"POST {path} failed: {exc}")) from exc
        return _json_or_raise(resp)


def _status_error(resp: httpx.Response) -> ApiError:
    message = error_text(resp)
    if resp.status_code == 404:
        return NotFound(message, status_code=404)
    return ApiError(f"API error: {message}", status_code=resp.status_code)


def _json_or_raise(resp: httpx.Response) -> Any:
    if resp.status_code >= 400:
        raise _status_error(resp)
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as exc:
        raise DecodeError(f"{resp.request.method} {resp.request.url.path} returned invalid JSON") from exc


async def _translate_stream_errors(run_id: str, events: AsyncIterator[SseEvent]) -> AsyncIterator[SseEvent]:
    try:
        async for event in events:
            yield event
    except httpx.HTTPError as exc:
        raise TransportError(redact(f"log stream for {run_id} lost: {exc}")) from exc
