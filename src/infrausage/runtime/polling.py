from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Protocol

from infrausage.core.errors import PollTimeoutError, QueryCancelledError
from infrausage.core.models import UsageCollection

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


class StatusSource(Protocol):
    def status(self, query_id: str, cancel: Optional[threading.Event] = None) -> UsageCollection:
        ...


def wait_for_completion(
    queries: StatusSource,
    query_id: str,
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    max_attempts: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
    on_poll: Optional[Callable[[int, UsageCollection], None]] = None,
) -> UsageCollection:
    """Poll a query until it is DONE, FAILED or CANCELED and return its last collection.

    The service pushes nothing, so status polling is the only way to see a
    transition. Statuses outside the known set keep the loop going.

    Args:
        queries: Anything with a `status(query_id)` method, usually a QueryService.
        query_id: Id returned by `submit`.
        interval: Seconds to wait before each poll.
        max_attempts: Maximum number of polls, None waits forever.
        cancel: Event stopping the wait with QueryCancelledError once set.
        sleep: Sleep function, used when no cancel event is given.
        on_poll: Called with the attempt number and the collection after each poll.

    Raises:
        PollTimeoutError: `max_attempts` polls without a terminal status.
        QueryCancelledError: `cancel` was set.
    """
    if interval <= 0:
        raise ValueError(f"Poll interval must be positive, got {interval}")
    if max_attempts is not None and max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    attempt = 0
    last: Optional[UsageCollection] = None
    while max_attempts is None or attempt < max_attempts:
        if cancel is not None:
            if cancel.wait(interval):
                raise QueryCancelledError(f"Stopped waiting for query '{query_id}'")
        else:
            sleep(interval)

        attempt += 1
        last = queries.status(query_id, cancel=cancel)
        if on_poll is not None:
            on_poll(attempt, last)

        if last.is_terminal:
            logger.info("Query %s ended with status %s after %d polls", query_id, last.status, attempt)
            return last

        if last.known_status is None:
            logger.warning("Query %s reports unknown status %s", query_id, last.status)

    raise PollTimeoutError(query_id, attempt, last)
