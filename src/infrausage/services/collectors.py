from typing import List

from infrausage.core.errors import NotFoundError
from infrausage.core.models import UsageCollector
from infrausage.infrastructure.envelope import read_items
from infrausage.infrastructure.transport import Transport


class CollectorService:
    """Read access to the usage collectors registered on an orchestrator."""

    def __init__(self, transport: Transport, api_prefix: str) -> None:
        self.transport = transport
        self.api_prefix = api_prefix

    def list(self, orchestrator: str) -> List[UsageCollector]:
        if not orchestrator:
            raise ValueError("Orchestrator name cannot be empty.")

        response = self.transport.send(
            "GET",
            f"{self.api_prefix}/orchestrators/{orchestrator}/registry/infra_usage_collectors",
        )
        return read_items(response, "infrastructures", UsageCollector, f"get collectors on {orchestrator}")

    def get(self, orchestrator: str, collector_id: str) -> UsageCollector:
        for collector in self.list(orchestrator):
            if collector.id == collector_id:
                return collector
        raise NotFoundError(f"Found no collector for {collector_id} on orchestrator {orchestrator}")
