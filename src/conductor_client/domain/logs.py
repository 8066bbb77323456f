import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from conductor_client.errors import DecodeError


LEVEL_INFO = "info"
LEVEL_WARNING = "warning"
LEVEL_ERROR = "error"
LEVELS = (LEVEL_INFO, LEVEL_WARNING, LEVEL_ERROR)

_LEVEL_ALIASES = {
    "warn": LEVEL_WARNING,
    "err": LEVEL_ERROR,
    "fatal": LEVEL_ERROR,
    "critical": LEVEL_ERROR,
    "debug": LEVEL_INFO,
}

EVENT_LOG = "log"
EVENT_CONNECTED = "connected"
EVENT_COMPLETED = "completed"
LIFECYCLE_EVENTS = frozenset({EVENT_CONNECTED, EVENT_COMPLETED})


def normalize_level(raw: Any) -> str:
    value = str(raw or "").strip().lower()
    if value in LEVELS:
        return value
    return _LEVEL_ALIASES.get(value, LEVEL_INFO)


@dataclass(frozen=True)
class LogRecord:
    timestamp: str
    level: str
    message: str
    event: str = EVENT_LOG
    tokens: Optional[int] = None
    cost: Optional[float] = None

    @property
    def is_lifecycle(self) -> bool:
        return self.event in LIFECYCLE_EVENTS


def is_lifecycle_payload(payload: Dict[str, Any]) -> bool:
    if payload.get("connected"):
        return True
    return str(payload.get("event") or "") in LIFECYCLE_EVENTS


def decode_payload(raw: str) -> Dict[str, Any]:
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"log message is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise DecodeError(f"log message must be a JSON object, got {type(payload).__name__}")
    return payload


def record_from_payload(payload: Dict[str, Any]) -> LogRecord:
    tokens = payload.get("tokens")
    cost = payload.get("cost")
    if isinstance(tokens, bool) or isinstance(cost, bool):
        raise DecodeError("usage fields must be numeric")
    try:
        tokens_value = None if tokens is None else int(tokens)
        cost_value = None if cost is None else float(cost)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"invalid usage fields in log record: {exc}") from exc
    message = payload.get("message")
    return LogRecord(
        timestamp=str(payload.get("timestamp") or datetime.now(timezone.utc).isoformat()),
        level=normalize_level(payload.get("level")),
        message="" if message is None else str(message),
        event=str(payload.get("event") or EVENT_LOG),
        tokens=tokens_value,
        cost=cost_value,
    )
