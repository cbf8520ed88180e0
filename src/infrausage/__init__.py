"""Client library for the infra usage collection REST API of an orchestration gateway."""

from infrausage.core.client import InfraUsageClient
from infrausage.core.errors import (
	AuthError,
	ConfigError,
	DecodeError,
	HTTPStatusError,
	InfraUsageError,
	NotFoundError,
	PollTimeoutError,
	ProtocolError,
	QueryCancelledError,
	TransportError,
)
from infrausage.core.models import (
	GatewaySettings,
	Orchestrator,
	PollingSettings,
	QueryStatus,
	Settings,
	UsageCollection,
	UsageCollector,
)
from infrausage.runtime.polling import wait_for_completion

__all__ = [
	"InfraUsageClient",
	"AuthError",
	"ConfigError",
	"DecodeError",
	"HTTPStatusError",
	"InfraUsageError",
	"NotFoundError",
	"PollTimeoutError",
	"ProtocolError",
	"QueryCancelledError",
	"TransportError",
	"GatewaySettings",
	"Orchestrator",
	"PollingSettings",
	"QueryStatus",
	"Settings",
	"UsageCollection",
	"UsageCollector",
	"wait_for_completion",
]
