"""
Shared fixtures: a scripted requests session and a sleep recorder, so no
test touches the network or waits in real time.
"""
from typing import Any, Dict, List, Optional

import pytest

from frame_exporter.exporter import FrameExporter
from frame_exporter.figma_client import FigmaClient


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None,
                 headers: Optional[Dict[str, str]] = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Replays queued responses in order and records every GET"""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.headers: Dict[str, str] = {}
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def queue(self, *responses):
        self.responses.extend(responses)

    def close(self):
        self.closed = True

    def get(self, url, params=None, timeout=None):
        self.calls.append({'url': url, 'params': dict(params or {}), 'timeout': timeout})
        if not self.responses:
            raise AssertionError(f"Unexpected request to {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class SleepRecorder:
    def __init__(self):
        self.waits: List[float] = []

    def __call__(self, seconds: float):
        self.waits.append(seconds)


def node(node_id: str, name: str, node_type: str, children=None) -> Dict[str, Any]:
    data = {'id': node_id, 'name': name, 'type': node_type}
    if children is not None:
        data['children'] = children
    return data


def file_payload(pages, name: str = "Test File") -> Dict[str, Any]:
    return {'name': name, 'document': node('0:0', 'Document', 'DOCUMENT', pages)}


def images_payload(images: Dict[str, Optional[str]], err=None) -> Dict[str, Any]:
    return {'err': err, 'images': images}


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def client(session, sleeper) -> FigmaClient:
    return FigmaClient("test-token", session=session, sleep=sleeper, jitter=lambda: 0.0)


@pytest.fixture
def exporter(client, sleeper) -> FrameExporter:
    return FrameExporter(client, sleep=sleeper)
