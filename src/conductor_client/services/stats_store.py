from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from conductor_client.domain.catalog import Stats
from conductor_client.domain.contracts import ConductorApiPort
from conductor_client.errors import ConductorError

logger = logging.getLogger(__name__)


class StatsStore:
    """Holds the last successfully fetched dashboard aggregate."""

    def __init__(self, api: ConductorApiPort) -> None:
        self._api = api
        self._stats: Optional[Stats] = None
        self._fetched_at: Optional[datetime] = None

    @property
    def stats(self) -> Optional[Stats]:
        return self._stats

    @property
    def fetched_at(self) -> Optional[datetime]:
        return self._fetched_at

    async def refresh(self) -> bool:
        try:
            stats = await self._api.get_stats()
        except ConductorError as exc:
            logger.warning("Failed to fetch stats: %s", exc.message)
            return False
        self._stats = stats
        self._fetched_at = datetime.now(timezone.utc)
        return True

    def summary(self) -> Dict[str, Any]:
        stats = self._stats or Stats()
        return {
            "active_runs": stats.active_runs,
            "total_templates": stats.total_templates,
            "today_cost": stats.today_cost,
            "recent_activity": [{"name": item.name, "time": item.time} for item in stats.recent_activity],
            "fetched_at": self._fetched_at.isoformat() if self._fetched_at else None,
        }
