import pytest
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from infrausage.core.client import InfraUsageClient
from infrausage.core.models import DEFAULT_API_PREFIX, GatewaySettings, PollingSettings

BASE_URL = "http://gateway.test"
PREFIX = DEFAULT_API_PREFIX

Reply = Union[Tuple[int, Dict[str, Any]], Callable[[httpx.Request], httpx.Response]]


class FakeGateway:
    """
    In-memory gateway behind httpx.MockTransport.

    Routes map (method, path) to a queue of replies; the last reply of a queue
    is repeated once the others are consumed.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.logins = 0
        self.login_status = 200

    def on(self, method: str, path: str, *replies: Reply) -> None:
        self.routes[(method, path)] = list(replies)

    def requests_to(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == "/login":
            self.logins += 1
            if self.login_status != 200:
                return httpx.Response(
                    self.login_status,
                    json={"error": {"code": 401, "message": "Bad credentials"}},
                )
            return httpx.Response(200, headers={"Set-Cookie": f"JSESSIONID=s{self.logins}; Path=/"})

        if request.method == "POST" and path == "/logout":
            return httpx.Response(200)

        queue = self.routes.get((request.method, path))
        if not queue:
            return httpx.Response(404, json={"error": {"code": 404, "message": f"No route for {path}"}})

        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            return reply(request)
        status_code, kwargs = reply
        return httpx.Response(status_code, **kwargs)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(gateway):
    settings = GatewaySettings(url=BASE_URL, user="admin", password="changeme")
    with InfraUsageClient(settings, PollingSettings(interval=0.001), http_transport=gateway.transport()) as c:
        yield c
