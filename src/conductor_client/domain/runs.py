from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from conductor_client.errors import DecodeError


RUN_STATUS_RUNNING = "running"
RUN_STATUS_STOPPED = "stopped"
RUN_STATUS_FAILED = "failed"
RUN_STATUS_COMPLETED = "completed"

RUN_STATUSES = frozenset(
    {RUN_STATUS_RUNNING, RUN_STATUS_STOPPED, RUN_STATUS_FAILED, RUN_STATUS_COMPLETED}
)
TERMINAL_STATUSES = frozenset({RUN_STATUS_STOPPED, RUN_STATUS_FAILED, RUN_STATUS_COMPLETED})


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


@dataclass(frozen=True)
class Budget:
    max_usd: Optional[float] = None
    max_tokens: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.max_usd is not None:
            payload["maxUsd"] = self.max_usd
        if self.max_tokens is not None:
            payload["maxTokens"] = self.max_tokens
        return payload

    @classmethod
    def from_payload(cls, data: Any) -> Optional["Budget"]:
        if data is None:
            return None
        if not isinstance(data, dict):
            raise DecodeError(f"budget must be an object, got {type(data).__name__}")
        max_usd = data.get("maxUsd")
        max_tokens = data.get("maxTokens")
        try:
            return cls(
                max_usd=None if max_usd is None else float(max_usd),
                max_tokens=None if max_tokens is None else int(max_tokens),
            )
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"invalid budget: {exc}") from exc


@dataclass(frozen=True)
class Run:
    run_id: str
    template_id: str
    status: str
    template_name: str = ""
    started_at: str = ""
    # Opaque launch document; passed through, never inspected.
    config: Any = field(default=None, compare=False)
    budget: Optional[Budget] = None

    @property
    def display_name(self) -> str:
        return self.template_name or self.template_id

    @property
    def terminal(self) -> bool:
        return is_terminal(self.status)

    def with_status(self, status: str) -> "Run":
        return replace(self, status=status)

    @classmethod
    def from_payload(cls, data: Any, default_status: Optional[str] = None) -> "Run":
        if not isinstance(data, dict):
            raise DecodeError(f"run must be an object, got {type(data).__name__}")
        run_id = str(data.get("id") or "").strip()
        if not run_id:
            raise DecodeError("run payload has no id")
        status = str(data.get("status") or default_status or "").strip().lower()
        if status not in RUN_STATUSES:
            raise DecodeError(f"run {run_id} has unknown status {status!r}")
        return cls(
            run_id=run_id,
            template_id=str(data.get("templateId") or data.get("template") or ""),
            status=status,
            template_name=str(data.get("templateName") or ""),
            started_at=str(data.get("startedAt") or ""),
            config=data.get("config"),
            budget=Budget.from_payload(data.get("budget")),
        )
