from __future__ import annotations

import logging
import threading
from typing import Callable, Mapping, Optional

import httpx

from infrausage.core.models import GatewaySettings, PollingSettings, UsageCollection
from infrausage.infrastructure.session import SessionManager, SessionStore
from infrausage.infrastructure.transport import Transport, build_http_client, normalize_base_url
from infrausage.runtime.polling import wait_for_completion
from infrausage.services.collectors import CollectorService
from infrausage.services.orchestrators import OrchestratorService
from infrausage.services.queries import QueryService

logger = logging.getLogger(__name__)


class InfraUsageClient:
    """
    Entry point of the library: one authenticated session on the gateway and the
    orchestrator, collector and query services sharing it.

    Usage::

        with InfraUsageClient(GatewaySettings(url="https://gw:8088", ca_file="ca.pem")) as client:
            client.login()
            collection = client.collect_usage("yorc", "heappe", "myLoc", {"start": "2019-09-01"})
    """

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        polling: Optional[PollingSettings] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.settings = settings or GatewaySettings()
        self.polling = polling or PollingSettings()
        self.base_url = normalize_base_url(self.settings.url)
        api_prefix = "/" + self.settings.api_prefix.strip("/")

        self.http = build_http_client(self.settings, self.base_url, transport=http_transport)
        self.store = SessionStore()
        self.session = SessionManager(
            self.http,
            self.store,
            self.base_url,
            username=self.settings.user,
            password=self.settings.password,
        )
        self.transport = Transport(self.http, self.store, self.session, self.base_url)

        self.orchestrators = OrchestratorService(self.transport, api_prefix)
        self.collectors = CollectorService(self.transport, api_prefix)
        self.queries = QueryService(self.transport, api_prefix)

    def __enter__(self) -> "InfraUsageClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.http.close()

    def login(self) -> None:
        self.session.login()

    def logout(self) -> None:
        self.session.logout()

    def collect_usage(
        self,
        orchestrator: str,
        collector_id: str,
        location: str,
        params: Optional[Mapping[str, str]] = None,
        cancel: Optional[threading.Event] = None,
        on_poll: Optional[Callable[[int, UsageCollection], None]] = None,
    ) -> UsageCollection:
        """
        Run one usage collection: submit, poll to a terminal status, delete.

        The query is deleted once it is DONE, FAILED or CANCELED. When waiting
        fails the query is left on the server and the error propagates.
        """
        query_id = self.queries.submit(orchestrator, collector_id, location, params, cancel=cancel)
        collection = wait_for_completion(
            self.queries,
            query_id,
            interval=self.polling.interval,
            max_attempts=self.polling.max_attempts,
            cancel=cancel,
            on_poll=on_poll,
        )
        self.queries.delete(query_id)
        return collection
