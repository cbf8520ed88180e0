"""REST services of the infra usage collection API."""

from infrausage.services.collectors import CollectorService
from infrausage.services.orchestrators import OrchestratorService
from infrausage.services.queries import QueryRef, QueryService

__all__ = [
	"CollectorService",
	"OrchestratorService",
	"QueryRef",
	"QueryService",
]
