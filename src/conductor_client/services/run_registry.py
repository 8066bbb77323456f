"""Authoritative in-memory table of known runs.

The table is replaced wholesale by ``refresh`` and mutated in place by the
controller's start/stop actions. Two reconciliation rules keep a lagging
poll from undoing what the user just did:

- a run marked ``stopped`` locally stays ``stopped`` until a poll reports a
  terminal status for it, at which point the pending flag is dropped;
- a run inserted by ``apply_start`` stays listed until a poll includes it.

Independently of both rules, a run that is terminal locally is never moved
back to ``running``.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from conductor_client.domain.contracts import ConductorApiPort
from conductor_client.domain.runs import RUN_STATUS_STOPPED, Run, is_terminal
from conductor_client.errors import ConductorError, NotFound
from conductor_client.observability.structured_log import log_json

logger = logging.getLogger(__name__)


class RunRegistry:
    def __init__(self, api: ConductorApiPort) -> None:
        self._api = api
        self._runs: Dict[str, Run] = {}
        self._pending_stops: Set[str] = set()
        self._unconfirmed_starts: Set[str] = set()
        self._last_refresh_ok: Optional[bool] = None

    def list_runs(self) -> List[Run]:
        return list(self._runs.values())

    def get(self, run_id: str) -> Run:
        run = self._runs.get(run_id)
        if run is None:
            raise NotFound(f"Run {run_id} is not known", status_code=None)
        return run

    def find(self, run_id: str) -> Optional[Run]:
        return self._runs.get(run_id)

    def is_pending_stop(self, run_id: str) -> bool:
        return run_id in self._pending_stops

    @property
    def last_refresh_ok(self) -> Optional[bool]:
        return self._last_refresh_ok

    async def refresh(self) -> bool:
        """Replace the table with the server's list. Returns False on failure.

        Failures are logged and leave the previous table untouched.
        """
        try:
            fetched = await self._api.list_runs()
        except ConductorError as exc:
            self._last_refresh_ok = False
            logger.warning("Failed to refresh runs: %s", exc.message)
            return False
        self._replace(fetched)
        self._last_refresh_ok = True
        return True

    def apply_start(self, run: Run) -> None:
        self._runs[run.run_id] = run
        self._pending_stops.discard(run.run_id)
        self._unconfirmed_starts.add(run.run_id)

    def apply_stop(self, run_id: str) -> Optional[Run]:
        """Mark ``run_id`` stopped without waiting for the server.

        An id the table does not know yet is remembered, so the first poll
        that delivers it shows it stopped.
        """
        self._pending_stops.add(run_id)
        run = self._runs.get(run_id)
        if run is None:
            return None
        if run.status != RUN_STATUS_STOPPED and not run.terminal:
            run = run.with_status(RUN_STATUS_STOPPED)
            self._runs[run_id] = run
        return run

    def _replace(self, fetched: List[Run]) -> None:
        updated: Dict[str, Run] = {}
        for run in fetched:
            local = self._runs.get(run.run_id)
            self._unconfirmed_starts.discard(run.run_id)
            if run.run_id in self._pending_stops:
                if is_terminal(run.status):
                    self._pending_stops.discard(run.run_id)
                    log_json(logger, "run.stop_confirmed", run_id=run.run_id, status=run.status)
                else:
                    run = run.with_status(RUN_STATUS_STOPPED)
            elif local is not None and local.terminal and not run.terminal:
                logger.debug("Ignoring stale %s status for terminal run %s", run.status, run.run_id)
                run = run.with_status(local.status)
            updated[run.run_id] = run
        for run_id in list(self._unconfirmed_starts):
            local = self._runs.get(run_id)
            if local is not None and run_id not in updated:
                updated[run_id] = local
        # A stop flag for an id this poll does not list has nothing left to protect.
        self._pending_stops.intersection_update(updated)
        self._runs = updated
