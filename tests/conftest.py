from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import requests


FIXTURES = Path(__file__).parent / "fixtures"


def read_fixture(name: str) -> bytes:
    return (FIXTURES / name).read_bytes()


class FakeSession(requests.Session):
    """
    Session answering from a url -> (status, body) map instead of the network.

    An answer may also be an exception to raise, or a callable returning the
    (status, body) pair when the request is made.
    """

    def __init__(self, pages=None):
        super().__init__()
        self.pages = dict(pages or {})
        self.requested = []

    def get(self, url, **kwargs):
        self.requested.append(url)
        answer = self.pages.get(url, (404, b"not found"))
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            answer = answer()
        status, body = answer
        response = requests.Response()
        response.status_code = status
        response._content = body
        response.url = url
        return response


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()
