from typing import Optional


class InfraUsageError(Exception):
    """
    Base class for every error raised by the infra usage client.
    """


class ConfigError(InfraUsageError):
    """Invalid client configuration (URL, TLS mode, config file)."""


class TransportError(InfraUsageError):
    """Network or connection failure while talking to the gateway."""


class AuthError(InfraUsageError):
    """Login rejected by the gateway."""


class HTTPStatusError(InfraUsageError):
    """
    Unexpected HTTP status, carrying the server's error envelope when one was
    returned.
    """
    def __init__(self, status_code: int, message: str = "", code: Optional[int] = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        detail = f": {message}" if message else ""
        super().__init__(f"HTTP {status_code}{detail}")


class DecodeError(InfraUsageError):
    """Response body does not match the expected JSON envelope."""


class ProtocolError(InfraUsageError):
    """
    Response violates the protocol contract, e.g. a created query without a
    usable Location header.
    """


class NotFoundError(InfraUsageError):
    """Requested orchestrator or collector is not known to the service."""


class QueryCancelledError(InfraUsageError):
    """Waiting on a query was abandoned through a cancellation event."""


class PollTimeoutError(InfraUsageError):
    """
    A query did not reach a terminal status within the allowed number of polls.
    """
    def __init__(self, query_id: str, attempts: int, last=None):
        self.query_id = query_id
        self.attempts = attempts
        self.last = last
        status = f" (last status {last.status})" if last is not None else ""
        super().__init__(f"Query '{query_id}' not finished after {attempts} polls{status}")
