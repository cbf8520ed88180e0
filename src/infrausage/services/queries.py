from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional

import httpx

from infrausage.core.errors import DecodeError, ProtocolError
from infrausage.core.models import UsageCollection
from infrausage.infrastructure.envelope import read_data
from infrausage.infrastructure.transport import Transport

logger = logging.getLogger(__name__)

_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


@dataclass(frozen=True)
class QueryRef:
    """Parts of a query id: `<orchestrator>/infra_usage/<collector>/tasks/<task>`."""

    orchestrator: str
    collector_id: str
    task_id: str

    @property
    def query_id(self) -> str:
        return f"{self.orchestrator}/infra_usage/{self.collector_id}/tasks/{self.task_id}"

    @property
    def task_ref(self) -> str:
        return f"{self.collector_id}/tasks/{self.task_id}"

    @classmethod
    def parse(cls, query_id: str) -> "QueryRef":
        values = query_id.split("/")
        if len(values) != 5 or values[1] != "infra_usage" or values[3] != "tasks" or not all(values):
            raise ProtocolError(
                f"Expected a query id <orchestrator>/infra_usage/<collector ID>/tasks/<query ID>, got {query_id}"
            )
        return cls(orchestrator=values[0], collector_id=values[2], task_id=values[4])


class QueryService:
    """
    Lifecycle of usage collection queries: submit, status, delete and listing.

    A query is only known through its id, the path of the query resource
    below `<api prefix>/orchestrators/`. All state lives on the server.
    """

    def __init__(self, transport: Transport, api_prefix: str) -> None:
        self.transport = transport
        self.api_prefix = api_prefix

    @property
    def orchestrators_prefix(self) -> str:
        return f"{self.api_prefix}/orchestrators/"

    def submit(
        self,
        orchestrator: str,
        collector_id: str,
        location: str,
        params: Optional[Mapping[str, str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """
        Ask the service to collect usage on a location and return the new query id.

        `params` become URL query parameters (time range bounds, user...).
        The id comes only from the Location header of the 201 answer.
        """
        _require(orchestrator=orchestrator, collector_id=collector_id, location=location)

        response = self.transport.send(
            "POST",
            f"{self.orchestrators_prefix}{orchestrator}/infra_usage/{collector_id}/{location}",
            params=dict(params or {}),
            expected=(httpx.codes.CREATED,),
            cancel=cancel,
        )

        header = response.headers.get("Location", "").strip()
        if not header:
            raise ProtocolError(
                f"No Location header in the answer to the usage query on {collector_id} location {location}"
            )

        reference, prefixed = self._strip_reference(header)
        if not prefixed or not reference:
            raise ProtocolError(f"Unexpected Location header {header}, expected {self.orchestrators_prefix}<query>")

        query_id = QueryRef.parse(reference).query_id
        logger.info("Submitted usage query %s", query_id)
        return query_id

    def status(self, query_id: str, cancel: Optional[threading.Event] = None) -> UsageCollection:
        """Read the status of a query, and its results once it is DONE. Safe to repeat."""
        _require(query_id=query_id)

        response = self.transport.send("GET", f"{self.orchestrators_prefix}{query_id}", cancel=cancel)
        data = read_data(response, f"get the status of query {query_id}")

        status = data.get("status")
        if not isinstance(status, str):
            raise DecodeError(f"Missing status in the response to get query {query_id}")

        result_set = data.get("result_set")
        if result_set is None:
            result_set = {}
        if not isinstance(result_set, dict):
            raise DecodeError(f"Expected an object as result set of query {query_id}")

        return UsageCollection(status=status, result_set=result_set)

    def delete(self, query_id: str) -> None:
        """Delete a query. Whether a running query may be deleted is up to the server."""
        _require(query_id=query_id)

        self.transport.send("DELETE", f"{self.orchestrators_prefix}{query_id}")
        logger.info("Deleted usage query %s", query_id)

    def list_ids(self, orchestrator: str, collector_id: str = "") -> List[str]:
        """
        Query ids of an orchestrator as `<collector ID>/tasks/<query ID>`,
        restricted to one collector unless `collector_id` is empty.
        """
        return [
            ref.task_ref
            for ref in self._list_refs(orchestrator)
            if not collector_id or ref.collector_id == collector_id
        ]

    def list_query_ids(self, orchestrator: str, collector_id: str = "") -> List[str]:
        """Same listing as `list_ids`, as full ids accepted by `status` and `delete`."""
        return [
            ref.query_id
            for ref in self._list_refs(orchestrator)
            if not collector_id or ref.collector_id == collector_id
        ]

    def ids_by_collector(self, orchestrator: str) -> Dict[str, List[str]]:
        result: Dict[str, List[str]] = {}
        for ref in self._list_refs(orchestrator):
            result.setdefault(ref.collector_id, []).append(ref.task_ref)
        return result

    def _list_refs(self, orchestrator: str) -> Iterator[QueryRef]:
        _require(orchestrator=orchestrator)

        response = self.transport.send("GET", f"{self.orchestrators_prefix}{orchestrator}/infra_usage")
        data = read_data(response, f"get query IDs on {orchestrator}")

        tasks = data.get("tasks") or []
        if not isinstance(tasks, list):
            raise DecodeError(f"Expected a list of tasks in the response to get query IDs on {orchestrator}")

        for task in tasks:
            href = task.get("href") if isinstance(task, dict) else None
            if not isinstance(href, str):
                logger.warning("Skipping task without href on %s: %r", orchestrator, task)
                continue

            reference, _ = self._strip_reference(href)
            try:
                ref = QueryRef.parse(reference)
            except ProtocolError:
                ref = None
            if ref is None or ref.orchestrator != orchestrator:
                logger.warning("Expected task reference <collector ID>/tasks/<query ID>, got %s", href)
                continue

            yield ref

    def _strip_reference(self, reference: str) -> tuple[str, bool]:
        """Strip the scheme and host, then the orchestrators prefix, from a server reference."""
        if _SCHEME_PATTERN.match(reference):
            try:
                reference = httpx.URL(reference).path
            except httpx.InvalidURL:
                return reference, False

        prefix = self.orchestrators_prefix
        if reference.startswith(prefix):
            return reference[len(prefix):], True
        return reference, False


def _require(**values: str) -> None:
    for name, value in values.items():
        if not value:
            raise ValueError(f"{name} cannot be empty.")
