import logging
from dataclasses import dataclass, field
from typing import List, Optional

from conductor_client.api.client import ConductorApi
from conductor_client.config import ClientConfig
from conductor_client.domain.contracts import ConductorApiPort
from conductor_client.events.event_bus import EventBus
from conductor_client.services.log_accumulator import LogStore
from conductor_client.services.log_stream import StreamHub
from conductor_client.services.poller import Poller
from conductor_client.services.run_controller import RunController
from conductor_client.services.run_registry import RunRegistry
from conductor_client.services.stats_store import StatsStore

logger = logging.getLogger(__name__)


@dataclass
class ConductorApp:
    """The process-wide store the presentation layer reads from and acts through."""

    api: ConductorApiPort
    registry: RunRegistry
    logs: LogStore
    streams: StreamHub
    controller: RunController
    stats: StatsStore
    bus: EventBus
    pollers: List[Poller] = field(default_factory=list)

    async def start_polling(self) -> None:
        for poller in self.pollers:
            await poller.start()

    async def shutdown(self) -> None:
        for poller in self.pollers:
            await poller.stop()
        await self.streams.shutdown()
        aclose = getattr(self.api, "aclose", None)
        if aclose is not None:
            await aclose()


def build_conductor_app(config: ClientConfig, api: Optional[ConductorApiPort] = None) -> ConductorApp:
    resolved_api = api if api is not None else ConductorApi.from_config(config)
    registry = RunRegistry(resolved_api)
    logs = LogStore()
    bus = EventBus()
    streams = StreamHub(resolved_api, registry, logs, bus=bus)
    controller = RunController(resolved_api, registry, streams)
    stats = StatsStore(resolved_api)
    pollers = [
        Poller("runs", registry.refresh, config.runs_poll_sec),
        Poller("stats", stats.refresh, config.stats_poll_sec),
    ]
    logger.info("Conductor client targeting %s", config.api_base)
    return ConductorApp(
        api=resolved_api,
        registry=registry,
        logs=logs,
        streams=streams,
        controller=controller,
        stats=stats,
        bus=bus,
        pollers=pollers,
    )
