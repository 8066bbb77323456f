"""Live log streams, one per watched run.

A :class:`LogStream` is a small state machine around a single event-stream
connection::

    idle -> connecting -> open -> closed
                 \\          \\--> errored
                  \\-----------> errored

Any state moves to ``closed`` on an explicit :meth:`LogStream.close`.
``closed`` and ``errored`` are terminal; a stream never reconnects by
itself, the watcher decides whether to call :meth:`StreamHub.watch` again.

:class:`StreamHub` maps run ids to their live stream and guarantees that at
most one transport per run id is open at any time.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional

from conductor_client.api.sse import DEFAULT_EVENT
from conductor_client.domain.contracts import ConductorApiPort, SseEvent
from conductor_client.domain.logs import (
    EVENT_COMPLETED,
    EVENT_CONNECTED,
    decode_payload,
    is_lifecycle_payload,
    record_from_payload,
)
from conductor_client.events.event_bus import (
    KIND_CLOSED,
    KIND_ERRORED,
    KIND_LIFECYCLE,
    KIND_RECORD,
    EventBus,
)
from conductor_client.errors import ConductorError, DecodeError, NotFound, TransportError
from conductor_client.observability.structured_log import log_json
from conductor_client.services.log_accumulator import LogAccumulator, LogStore
from conductor_client.services.run_registry import RunRegistry

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_CONNECTING = "connecting"
STATE_OPEN = "open"
STATE_CLOSING = "closing"
STATE_CLOSED = "closed"
STATE_ERRORED = "errored"
TERMINAL_STATES = frozenset({STATE_CLOSED, STATE_ERRORED})


class LogStream:
    def __init__(
        self,
        run_id: str,
        api: ConductorApiPort,
        accumulator: LogAccumulator,
        bus: Optional[EventBus] = None,
        on_release: Optional[Callable[["LogStream"], None]] = None,
    ) -> None:
        self.run_id = run_id
        self._api = api
        self._accumulator = accumulator
        self._bus = bus or EventBus()
        self._on_release = on_release
        self._state = STATE_IDLE
        self._task: Optional[asyncio.Task] = None
        self._error: Optional[ConductorError] = None
        self._dropped = 0

    @property
    def state(self) -> str:
        return self._state

    @property
    def live(self) -> bool:
        return self._state == STATE_OPEN

    @property
    def terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def error(self) -> Optional[ConductorError]:
        return self._error

    @property
    def dropped_messages(self) -> int:
        return self._dropped

    @property
    def bus(self) -> EventBus:
        return self._bus

    def start(self) -> asyncio.Task:
        """Open the connection in a background task on the running loop."""
        if self._state != STATE_IDLE:
            raise RuntimeError(f"log stream for {self.run_id} already started (state={self._state})")
        self._transition(STATE_CONNECTING)
        self._task = asyncio.create_task(self._pump(), name=f"log-stream-{self.run_id}")
        return self._task

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        # asyncio.wait does not propagate the pump's own cancellation, only ours.
        await asyncio.wait({self._task})

    def close(self) -> None:
        """Close the stream and release its transport. Idempotent.

        The state changes before this returns; the connection itself is torn
        down when the cancelled pump task next runs.
        """
        if self._state == STATE_CLOSED:
            return
        previous = self._state
        if previous not in TERMINAL_STATES:
            self._transition(STATE_CLOSING)
        self._transition(STATE_CLOSED)
        self._cancel_pump()
        if previous not in TERMINAL_STATES:
            self._bus.publish(self.run_id, KIND_CLOSED, detail="unwatched")
            self._release()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _pump(self) -> None:
        try:
            async with self._api.stream_logs(self.run_id) as events:
                if self._state != STATE_CONNECTING:
                    return
                self._transition(STATE_OPEN)
                self._bus.publish(self.run_id, KIND_LIFECYCLE, detail=EVENT_CONNECTED)
                async for event in events:
                    if self._state != STATE_OPEN:
                        break
                    self._handle(event)
                    if self._state != STATE_OPEN:
                        break
            if self._state in (STATE_OPEN, STATE_CONNECTING):
                self._fail(TransportError(f"log stream for {self.run_id} ended without completion"))
        except asyncio.CancelledError:
            if self._state not in TERMINAL_STATES:
                raise
        except ConductorError as exc:
            if self._state not in TERMINAL_STATES:
                self._fail(exc)

    def _handle(self, event: SseEvent) -> None:
        # Decode and append in one synchronous step; nothing here awaits.
        if event.event == EVENT_COMPLETED:
            self._complete()
            return
        if event.event != DEFAULT_EVENT:
            self._bus.publish(self.run_id, KIND_LIFECYCLE, detail=event.event)
            return
        try:
            payload = decode_payload(event.data)
            if is_lifecycle_payload(payload):
                if str(payload.get("event") or "") == EVENT_COMPLETED:
                    self._complete()
                else:
                    self._bus.publish(self.run_id, KIND_LIFECYCLE, detail=str(payload.get("event") or EVENT_CONNECTED))
                return
            record = record_from_payload(payload)
        except DecodeError as exc:
            self._dropped += 1
            logger.error("Dropping malformed log message for run %s: %s", self.run_id, exc.message)
            return
        self._accumulator.append(record)
        self._bus.publish(self.run_id, KIND_RECORD, record=record)

    def _complete(self) -> None:
        self._transition(STATE_CLOSING)
        self._transition(STATE_CLOSED)
        self._bus.publish(self.run_id, KIND_CLOSED, detail=EVENT_COMPLETED)
        self._release()

    def _fail(self, exc: ConductorError) -> None:
        self._error = exc
        self._transition(STATE_ERRORED)
        logger.warning("Log stream for run %s lost: %s", self.run_id, exc.message)
        self._bus.publish(self.run_id, KIND_ERRORED, detail=exc.message, error=exc)
        self._release()

    def _transition(self, state: str) -> None:
        previous, self._state = self._state, state
        log_json(logger, "log_stream.transition", level=logging.DEBUG, run_id=self.run_id, src=previous, dst=state)

    def _cancel_pump(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    def _release(self) -> None:
        if self._on_release is not None:
            callback, self._on_release = self._on_release, None
            callback(self)


class StreamHub:
    """Owns the run id -> live :class:`LogStream` mapping."""

    def __init__(self, api: ConductorApiPort, registry: RunRegistry, logs: LogStore, bus: Optional[EventBus] = None) -> None:
        self._api = api
        self._registry = registry
        self._logs = logs
        self.bus = bus or EventBus()
        self._streams: Dict[str, LogStream] = {}

    def stream_for(self, run_id: str) -> Optional[LogStream]:
        return self._streams.get(run_id)

    def is_live(self, run_id: str) -> bool:
        stream = self._streams.get(run_id)
        return bool(stream and stream.live)

    def watch(self, run_id: str) -> Optional[LogStream]:
        """Start watching ``run_id``; returns None when the run is terminal.

        An existing non-terminal stream for the id is returned as is. Otherwise
        the run's records are cleared and a fresh connection is opened.
        """
        run = self._registry.find(run_id)
        if run is None:
            raise NotFound(f"Run {run_id} is not known")
        existing = self._streams.get(run_id)
        if existing is not None and not existing.terminal:
            return existing
        if run.terminal:
            logger.info("Not opening a log stream for %s run %s", run.status, run_id)
            return None
        self._logs.clear(run_id)
        stream = LogStream(
            run_id,
            self._api,
            self._logs.accumulator(run_id),
            bus=self.bus,
            on_release=self._release,
        )
        self._streams[run_id] = stream
        stream.start()
        log_json(logger, "log_stream.watch", run_id=run_id)
        return stream

    def close_stream(self, run_id: str) -> None:
        """Close the transport for ``run_id`` but keep its records visible."""
        stream = self._streams.pop(run_id, None)
        if stream is not None:
            stream.close()

    def unwatch(self, run_id: str) -> None:
        """Tear down the view of ``run_id``: close its stream and drop its records."""
        self.close_stream(run_id)
        self._logs.clear(run_id)

    async def shutdown(self) -> None:
        streams = list(self._streams.values())
        self._streams.clear()
        for stream in streams:
            stream.close()
        for stream in streams:
            await stream.wait_closed()

    def _release(self, stream: LogStream) -> None:
        if self._streams.get(stream.run_id) is stream:
            del self._streams[stream.run_id]
