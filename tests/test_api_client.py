import json
import unittest
from pathlib import Path

import httpx

from conductor_client.api.client import ConductorApi
from conductor_client.config import ClientConfig
from conductor_client.domain.runs import RUN_STATUS_RUNNING, Budget
from conductor_client.errors import ApiError, DecodeError, NotFound, TransportError

RUN_PAYLOAD = {
    "id": "r1",
    "templateId": "t1",
    "templateName": "Scraper",
    "status": "running",
    "startedAt": "2026-10-19T10:00:00Z",
    "config": {"query": "x"},
    "budget": {"maxUsd": 5},
}


def _config(token: str = "sess-token") -> ClientConfig:
    return ClientConfig(
        api_base="http://conductor.test/v1",
        session_token=token,
        config_dir=Path("/tmp"),
        env_path=Path("/tmp/.env"),
        get_retries=2,
    )


class TestConductorApi(unittest.IsolatedAsyncioTestCase):
    def _api(self, handler, token: str = "sess-token") -> ConductorApi:
        api = ConductorApi.from_config(_config(token), transport=httpx.MockTransport(handler))
        api._backoff_sec = 0.0
        return api

    async def test_list_runs_sends_token_and_decodes(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["token"] = request.headers.get("X-Local-Token")
            return httpx.Response(200, json=[RUN_PAYLOAD, {"id": "", "status": "running"}])

        api = self._api(handler)
        with self.assertLogs("conductor_client.api.client", level="WARNING"):
            runs = await api.list_runs()
        await api.aclose()
        self.assertEqual(seen, {"path": "/v1/runs", "token": "sess-token"})
        self.assertEqual(len(runs), 1)
        self.assertEqual(runs[0].run_id, "r1")
        self.assertEqual(runs[0].budget, Budget(max_usd=5.0))
        self.assertEqual(runs[0].config, {"query": "x"})

    async def test_list_runs_accepts_wrapped_payload(self):
        api = self._api(lambda request: httpx.Response(200, json={"runs": [RUN_PAYLOAD]}))
        runs = await api.list_runs()
        await api.aclose()
        self.assertEqual([r.run_id for r in runs], ["r1"])

    async def test_no_token_header_when_token_missing(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["has_token"] = "X-Local-Token" in request.headers
            return httpx.Response(200, json={"status": "ok"})

        api = self._api(handler, token="")
        health = await api.get_health()
        await api.aclose()
        self.assertFalse(seen["has_token"])
        self.assertEqual(health, {"status": "ok"})

    async def test_get_retries_transient_status(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"activeRuns": 2, "totalTemplates": 3, "todayCost": 1.25})

        api = self._api(handler)
        stats = await api.get_stats()
        await api.aclose()
        self.assertEqual(len(calls), 2)
        self.assertEqual(stats.active_runs, 2)
        self.assertAlmostEqual(stats.today_cost, 1.25)

    async def test_connect_error_becomes_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        api = self._api(handler)
        with self.assertRaises(TransportError):
            await api.list_runs()
        await api.aclose()

    async def test_start_run_posts_body_without_retry(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"id": "r9", "templateId": "t1"})

        api = self._api(handler)
        run = await api.start_run("t1", {"a": 1}, budget=Budget(max_usd=5), secrets_ref="anthropic/default")
        await api.aclose()
        self.assertEqual(
            bodies,
            [{"template": "t1", "config": {"a": 1}, "budget": {"maxUsd": 5}, "secretsRef": "anthropic/default"}],
        )
        self.assertEqual(run.status, RUN_STATUS_RUNNING)

    async def test_post_error_carries_server_message(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(500, json={"error": "run already stopped"})

        api = self._api(handler)
        with self.assertRaises(ApiError) as ctx:
            await api.stop_run("r1")
        await api.aclose()
        self.assertEqual(len(calls), 1)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("run already stopped", ctx.exception.message)

    async def test_missing_run_raises_not_found(self):
        api = self._api(lambda request: httpx.Response(404, json={"detail": "no such run"}))
        with self.assertRaises(NotFound):
            await api.get_run("zzz")
        await api.aclose()

    async def test_invalid_json_raises_decode_error(self):
        api = self._api(lambda request: httpx.Response(200, content=b"<html>", headers={"Content-Type": "text/html"}))
        with self.assertRaises(DecodeError):
            await api.get_stats()
        await api.aclose()

    async def test_stream_logs_yields_sse_events(self):
        body = (
            'data: {"connected": true}\n\n'
            ": keepalive\n\n"
            'data: {"level": "info", "message": "step1", "cost": 0.01}\n\n'
            "event: completed\n"
            "data: {}\n\n"
        ).encode("utf-8")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["accept"] = request.headers.get("Accept")
            seen["token"] = request.headers.get("X-Local-Token")
            return httpx.Response(200, content=body, headers={"Content-Type": "text/event-stream"})

        api = self._api(handler)
        async with api.stream_logs("r1") as events:
            received = [event async for event in events]
        await api.aclose()
        self.assertEqual(seen, {"path": "/v1/runs/r1/logs", "accept": "text/event-stream", "token": "sess-token"})
        self.assertEqual([e.event for e in received], ["message", "message", "completed"])
        self.assertEqual(json.loads(received[1].data)["message"], "step1")

    async def test_stream_logs_open_failure(self):
        api = self._api(lambda request: httpx.Response(404, json={"error": "unknown run"}))
        with self.assertRaises(NotFound):
            async with api.stream_logs("r404"):
                pass
        await api.aclose()


if __name__ == "__main__":
    unittest.main()
