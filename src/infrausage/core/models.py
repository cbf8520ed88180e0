from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_PREFIX = "/rest/yorc-collector-plugin/latest"


class QueryStatus(str, Enum):
    """Server-side states of a usage collection query."""

    INITIAL = "INITIAL"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


TERMINAL_STATUSES = frozenset({QueryStatus.DONE, QueryStatus.FAILED, QueryStatus.CANCELED})


class Orchestrator(BaseModel):
    """
    An orchestrator configured on the remote service.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    href: str = ""


class UsageCollector(BaseModel):
    """
    A usage collector registered on an orchestrator: its id and the plugin
    implementing it.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    origin: str = ""


class UsageCollection(BaseModel):
    """
    Status of a usage collection query, and its results once it is done.

    `status` keeps the string sent by the server; values outside `QueryStatus`
    are surfaced as-is and never count as terminal.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    status: str
    result_set: Dict[str, Any] = Field(default_factory=dict)

    @property
    def known_status(self) -> Optional[QueryStatus]:
        try:
            return QueryStatus(self.status)
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return self.known_status in TERMINAL_STATUSES

    @property
    def is_done(self) -> bool:
        return self.known_status is QueryStatus.DONE


class GatewaySettings(BaseSettings):
    """
    Connection settings for the gateway (the 'gateway' section in infrausage.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='INFRAUSAGE_', extra='ignore')

    url: str = "http://localhost:8088"
    user: str = "admin"
    password: str = "changeme"
    ca_file: Optional[str] = None
    insecure: bool = False
    api_prefix: str = DEFAULT_API_PREFIX
    timeout: float = Field(default=30.0, gt=0)


class PollingSettings(BaseModel):
    """
    Query polling settings (the 'polling' section in infrausage.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    interval: float = Field(default=1.0, gt=0)
    max_attempts: Optional[int] = Field(default=None, ge=1)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra='ignore')

    level: str = "WARNING"


class Settings(BaseModel):
    """Aggregated client settings."""

    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_config(cls, config_dict: Optional[Dict[str, Any]] = None, **overrides: Any) -> "Settings":
        """
        Build settings from a loaded config dictionary.

        `overrides` are gateway fields (e.g. from CLI flags); None values are ignored.
        Gateway fields missing from both fall back to INFRAUSAGE_* environment variables.
        """
        config_dict = config_dict or {}
        gateway_data = dict(config_dict.get('gateway') or {})
        gateway_data.update({k: v for k, v in overrides.items() if v is not None})

        return cls(
            gateway=GatewaySettings(**gateway_data),
            polling=PollingSettings(**(config_dict.get('polling') or {})),
            logging=LoggingSettings(**(config_dict.get('logging') or {})),
        )
