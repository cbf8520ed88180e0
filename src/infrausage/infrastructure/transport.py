from __future__ import annotations

import logging
import re
import ssl
import threading
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import httpx

from infrausage.core.errors import ConfigError, QueryCancelledError
from infrausage.core.models import GatewaySettings
from infrausage.infrastructure.envelope import error_from_response
from infrausage.infrastructure.session import SessionManager, SessionStore, send_with_session

logger = logging.getLogger(__name__)

_SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)

JSON_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class _NoCookiePolicy(DefaultCookiePolicy):
    """Keeps httpx's own jar empty; session cookies live in SessionStore."""

    def set_ok(self, cookie, request) -> bool:
        return False


def normalize_base_url(url: str) -> str:
    """Strip trailing slashes and default to http:// when no scheme is given."""
    base_url = url.strip().rstrip("/")
    if not base_url:
        raise ConfigError("Gateway URL cannot be empty.")
    if not _SCHEME_PATTERN.match(base_url):
        base_url = f"http://{base_url}"

    try:
        parsed = httpx.URL(base_url)
    except httpx.InvalidURL as exc:
        raise ConfigError(f"Malformed gateway URL: {base_url}") from exc
    if not parsed.host:
        raise ConfigError(f"Malformed gateway URL: {base_url}")
    return base_url


def resolve_verify(base_url: str, ca_file: Optional[str], insecure: bool) -> Union[bool, ssl.SSLContext]:
    """
    Pick the TLS verification mode for a base URL.

    HTTPS requires either a certificate authority file or an explicit insecure
    mode; there is no unverified default.
    """
    if not base_url.lower().startswith("https://"):
        return True

    if insecure:
        return False

    if not ca_file:
        raise ConfigError("You must provide a certificate authority file in TLS verify mode")

    try:
        return ssl.create_default_context(cafile=ca_file)
    except (OSError, ssl.SSLError) as exc:
        raise ConfigError(f"Invalid certificate authority file {ca_file}: {exc}") from exc


def build_http_client(
    settings: GatewaySettings,
    base_url: str,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create the httpx client used by the Transport and the SessionManager."""
    verify = resolve_verify(base_url, settings.ca_file, settings.insecure)
    return httpx.Client(
        verify=verify,
        timeout=httpx.Timeout(settings.timeout, connect=settings.timeout),
        cookies=CookieJar(policy=_NoCookiePolicy()),
        follow_redirects=False,
        transport=transport,
    )


class Transport:
    """
    Sends authenticated requests to the gateway.

    A 403 answer means the session expired: the transport logs in again once and
    replays the request once. A second refusal is returned to the caller as an
    HTTPStatusError.
    """

    def __init__(
        self,
        http: httpx.Client,
        store: SessionStore,
        session: SessionManager,
        base_url: str,
    ) -> None:
        self.http = http
        self.store = store
        self.session = session
        self.base_url = base_url

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def send(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Union[bytes, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
        expected: Iterable[int] = (httpx.codes.OK,),
        cancel: Optional[threading.Event] = None,
    ) -> httpx.Response:
        """Send a request and return the response when its status is in `expected`."""
        request_headers: Dict[str, Any] = dict(JSON_HEADERS)
        if headers:
            request_headers.update(headers)

        def dispatch() -> httpx.Response:
            if cancel is not None and cancel.is_set():
                raise QueryCancelledError(f"{method} {path} cancelled before being sent")
            request = self.http.build_request(
                method,
                self.url(path),
                content=body,
                headers=request_headers,
                params=params,
            )
            logger.debug("%s %s", method, request.url)
            return send_with_session(self.http, self.store, request)

        response = dispatch()

        if response.status_code == httpx.codes.FORBIDDEN:
            logger.info("Session refused on %s %s, logging in again", method, path)
            self.session.login()
            response = dispatch()

        if response.status_code not in set(expected):
            raise error_from_response(response)

        return response
