from typing import List

from infrausage.core.errors import NotFoundError
from infrausage.core.models import Orchestrator
from infrausage.infrastructure.envelope import read_items
from infrausage.infrastructure.transport import Transport


class OrchestratorService:
    """Read access to the orchestrators configured on the service."""

    def __init__(self, transport: Transport, api_prefix: str) -> None:
        self.transport = transport
        self.api_prefix = api_prefix

    def list(self) -> List[Orchestrator]:
        response = self.transport.send("GET", f"{self.api_prefix}/orchestrators")
        return read_items(response, "orchestrators", Orchestrator, "get the list of orchestrators")

    def get(self, name: str) -> Orchestrator:
        """Return the orchestrator called `name`, or raise NotFoundError naming the known ones."""
        orchestrators = self.list()
        for orchestrator in orchestrators:
            if orchestrator.name == name:
                return orchestrator

        known = ", ".join(o.name for o in orchestrators) or "none"
        raise NotFoundError(f"No orchestrator {name} found. Known orchestrators: {known}")
