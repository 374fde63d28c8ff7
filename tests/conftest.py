"""Shared fixtures: an in-memory stand-in for Transport."""

import pytest

from shellenabler.routers.ax5400pro import AX5400ProClient
from shellenabler.task_time import MemoryTaskTimeStore, TaskTime

OK = b'{"code":0}'


class FakeTransport:
    """Records requests and answers from canned responses.

    get_responses maps API path -> bytes or exception instance.
    post_responses is a queue consumed in order; OK once it runs out.
    """

    def __init__(self, host: str = "192.168.31.1"):
        self.host = host
        self.get_responses = {}
        self.post_responses = []
        self.open_ports = set()
        self.requests = []

    async def get(self, path, params=None):
        self.requests.append(("GET", path, params))
        response = self.get_responses.get(path, OK)
        if isinstance(response, Exception):
            raise response
        return response

    async def post(self, path, data):
        self.requests.append(("POST", path, data))
        response = self.post_responses.pop(0) if self.post_responses else OK
        if isinstance(response, Exception):
            raise response
        return response

    async def probe_port(self, port, host=None):
        return port in self.open_ports

    @property
    def posts(self):
        return [r for r in self.requests if r[0] == "POST"]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport):
    """AX5400 Pro client with no waits and a cursor at 12:30."""
    return AX5400ProClient(
        transport,
        task_time_store=MemoryTaskTimeStore(TaskTime(12, 30)),
        step_delay=0,
        post_trigger_delay=0,
    )
