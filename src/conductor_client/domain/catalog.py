from dataclasses import dataclass, field
from typing import Any, Tuple

from conductor_client.errors import DecodeError


@dataclass(frozen=True)
class Template:
    template_id: str
    name: str
    display_name: str = ""
    description: str = ""
    version: str = ""
    author: str = ""
    tags: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, data: Any) -> "Template":
        if not isinstance(data, dict):
            raise DecodeError(f"template must be an object, got {type(data).__name__}")
        template_id = str(data.get("id") or "").strip()
        if not template_id:
            raise DecodeError("template payload has no id")
        tags = data.get("tags") or []
        return cls(
            template_id=template_id,
            name=str(data.get("name") or template_id),
            display_name=str(data.get("displayName") or ""),
            description=str(data.get("description") or ""),
            version=str(data.get("version") or ""),
            author=str(data.get("author") or ""),
            tags=tuple(str(tag) for tag in tags if tag) if isinstance(tags, list) else (),
        )


@dataclass(frozen=True)
class ActivityItem:
    name: str
    time: str


@dataclass(frozen=True)
class Stats:
    active_runs: int = 0
    total_templates: int = 0
    today_cost: float = 0.0
    recent_activity: Tuple[ActivityItem, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, data: Any) -> "Stats":
        if not isinstance(data, dict):
            raise DecodeError(f"stats must be an object, got {type(data).__name__}")
        activity = []
        for item in data.get("recentActivity") or []:
            if isinstance(item, dict):
                activity.append(ActivityItem(name=str(item.get("name") or ""), time=str(item.get("time") or "")))
        try:
            return cls(
                active_runs=int(data.get("activeRuns") or 0),
                total_templates=int(data.get("totalTemplates") or 0),
                today_cost=float(data.get("todayCost") or 0.0),
                recent_activity=tuple(activity),
            )
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"invalid stats payload: {exc}") from exc
