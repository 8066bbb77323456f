from __future__ import annotations

import logging
from typing import Any, Optional

from conductor_client.domain.contracts import ConductorApiPort
from conductor_client.domain.runs import Budget, Run
from conductor_client.errors import ConductorError, StartFailed, StopFailed
from conductor_client.observability.structured_log import log_json
from conductor_client.services.log_stream import StreamHub
from conductor_client.services.run_registry import RunRegistry

logger = logging.getLogger(__name__)


class RunController:
    """User-initiated start/stop, reconciled with the registry and live streams."""

    def __init__(self, api: ConductorApiPort, registry: RunRegistry, streams: Optional[StreamHub] = None) -> None:
        self._api = api
        self._registry = registry
        self._streams = streams

    async def start(
        self,
        template_id: str,
        config: Any,
        budget: Optional[Budget] = None,
        secrets_ref: Optional[str] = None,
        schedule: Optional[str] = None,
    ) -> Run:
        """Create a run remotely and record it. Raises StartFailed; the registry is untouched then."""
        try:
            run = await self._api.start_run(
                template_id,
                config,
                budget=budget,
                secrets_ref=secrets_ref,
                schedule=schedule,
            )
        except ConductorError as exc:
            log_json(logger, "run.start_failed", level=logging.WARNING, template_id=template_id, error=exc.message)
            raise StartFailed(f"Failed to start {template_id}: {exc.message}") from exc
        self._registry.apply_start(run)
        log_json(logger, "run.started", run_id=run.run_id, template_id=template_id)
        return run

    async def stop(self, run_id: str) -> None:
        """Stop ``run_id``.

        The local mark and the stream teardown happen before the remote call
        returns and are kept even when it fails; the failure is raised as
        StopFailed for the caller to report.
        """
        self._registry.apply_stop(run_id)
        if self._streams is not None:
            self._streams.close_stream(run_id)
        try:
            await self._api.stop_run(run_id)
        except ConductorError as exc:
            log_json(logger, "run.stop_failed", level=logging.WARNING, run_id=run_id, error=exc.message)
            raise StopFailed(f"Failed to stop run {run_id}: {exc.message}", run_id=run_id) from exc
        log_json(logger, "run.stopped", run_id=run_id)
