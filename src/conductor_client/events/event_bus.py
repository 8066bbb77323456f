import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from conductor_client.domain.logs import LogRecord
from conductor_client.errors import ConductorError

logger = logging.getLogger(__name__)

KIND_RECORD = "record"
KIND_LIFECYCLE = "lifecycle"
KIND_CLOSED = "closed"
KIND_ERRORED = "errored"


@dataclass(frozen=True)
class StreamEvent:
    run_id: str
    kind: str
    created_at: datetime
    record: Optional[LogRecord] = None
    detail: str = ""
    error: Optional[ConductorError] = None


Subscriber = Callable[[StreamEvent], None]


class EventBus:
    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    def publish(
        self,
        run_id: str,
        kind: str,
        record: Optional[LogRecord] = None,
        detail: str = "",
        error: Optional[ConductorError] = None,
    ) -> StreamEvent:
        event = StreamEvent(
            run_id=run_id,
            kind=kind,
            created_at=datetime.now(timezone.utc),
            record=record,
            detail=detail,
            error=error,
        )
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception("Stream subscriber failed on %s event for run %s", kind, run_id)
        return event
