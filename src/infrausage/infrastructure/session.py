from __future__ import annotations

import logging
import threading
from typing import Dict, Mapping, Optional

import httpx

from infrausage.core.errors import AuthError, TransportError
from infrausage.infrastructure.envelope import error_from_response

logger = logging.getLogger(__name__)


def host_key(url: httpx.URL) -> str:
    """Key cookies by host and explicit port, like the Host header."""
    if url.port is None:
        return url.host
    return f"{url.host}:{url.port}"


class SessionStore:
    """Thread-safe session cookies, keyed by host.

    A response that sets cookies replaces the whole cookie set of its host.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cookies: Dict[str, Dict[str, str]] = {}

    def get(self, host: str) -> Dict[str, str]:
        with self._lock:
            return dict(self._cookies.get(host, {}))

    def set(self, host: str, cookies: Mapping[str, str]) -> None:
        with self._lock:
            self._cookies[host] = dict(cookies)

    def clear(self, host: Optional[str] = None) -> None:
        with self._lock:
            if host is None:
                self._cookies.clear()
            else:
                self._cookies.pop(host, None)

    def attach(self, request: httpx.Request) -> None:
        """Add the stored cookies of the request host as a Cookie header."""
        cookies = self.get(host_key(request.url))
        if cookies:
            request.headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in cookies.items())

    def extract(self, response: httpx.Response) -> None:
        """Save cookies set by a response, if any."""
        received = {cookie.name: cookie.value for cookie in response.cookies.jar}
        if received:
            self.set(host_key(response.request.url), received)


def send_with_session(http: httpx.Client, store: SessionStore, request: httpx.Request) -> httpx.Response:
    """Send a request carrying the session cookies and record the cookies it returns."""
    store.attach(request)
    try:
        response = http.send(request)
    except httpx.TransportError as exc:
        raise TransportError(f"{request.method} {request.url} failed: {exc}") from exc
    store.extract(response)
    return response


class SessionManager:
    """Logs in and out of the gateway; the session lives in the shared SessionStore."""

    def __init__(
        self,
        http: httpx.Client,
        store: SessionStore,
        base_url: str,
        username: str,
        password: str,
    ) -> None:
        self.http = http
        self.store = store
        self.base_url = base_url
        self.username = username
        self.password = password

    def login(self) -> None:
        """Post the credentials form. Any status but 200 is an AuthError; never retried."""
        request = self.http.build_request(
            "POST",
            f"{self.base_url}/login",
            data={"username": self.username, "password": self.password, "submit": "Login"},
            headers={"Accept": "application/json"},
        )
        response = send_with_session(self.http, self.store, request)

        if response.status_code != httpx.codes.OK:
            error = error_from_response(response)
            detail = error.message or f"HTTP {response.status_code}"
            raise AuthError(f"Login as '{self.username}' rejected: {detail}")

        logger.info("Logged in to %s as %s", self.base_url, self.username)

    def logout(self) -> None:
        """Close the session server-side. Local cookies stay until the next login replaces them."""
        request = self.http.build_request(
            "POST",
            f"{self.base_url}/logout",
            headers={"Accept": "application/json", "Connection": "close"},
        )
        response = send_with_session(self.http, self.store, request)

        if response.status_code != httpx.codes.OK:
            raise error_from_response(response)

        logger.info("Logged out from %s", self.base_url)
