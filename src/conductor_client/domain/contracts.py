from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterator, Dict, List, Optional, Protocol

from conductor_client.domain.catalog import Stats, Template
from conductor_client.domain.runs import Budget, Run


@dataclass(frozen=True)
class SseEvent:
    event: str
    data: str
    event_id: str = ""


class ConductorApiPort(Protocol):
    async def list_runs(self) -> List[Run]:
        ...

    async def get_run(self, run_id: str) -> Run:
        ...

    async def start_run(
        self,
        template_id: str,
        config: Any,
        budget: Optional[Budget] = None,
        secrets_ref: Optional[str] = None,
        schedule: Optional[str] = None,
    ) -> Run:
        ...

    async def stop_run(self, run_id: str) -> Dict[str, Any]:
        ...

    def stream_logs(self, run_id: str) -> AsyncContextManager[AsyncIterator[SseEvent]]:
        ...

    async def list_templates(self) -> List[Template]:
        ...

    async def get_stats(self) -> Stats:
        ...
