import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict


def log_json(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one JSON object per line; ``None`` fields are dropped."""
    if not logger.isEnabledFor(level):
        return
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event,
    }
    payload.update({key: value for key, value in fields.items() if value is not None})
    logger.log(level, json.dumps(payload, ensure_ascii=True, sort_keys=True, default=str))
