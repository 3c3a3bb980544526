import httpx
import pytest

from usos_api_browser.catalog import Installation
from usos_api_browser.transport import HttpTransport


class RecordingHandler:
    """httpx.MockTransport handler that records requests and delegates to a function"""

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def make_transport():
    """Build an HttpTransport whose network is the given handler function"""
    def factory(respond):
        handler = RecordingHandler(respond)
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return HttpTransport(client=client), handler
    return factory


@pytest.fixture
def installation():
    return Installation(base_url="https://usos.example.edu/")


@pytest.fixture
def mother():
    return Installation(base_url="http://apps.example.edu/")
