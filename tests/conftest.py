"""
Shared pytest fixtures for tfdeployer tests.

This module provides common fixtures including:
- Control volumes in short temporary paths (unix socket paths are length limited)
- CollectorMocker: Mock log collector behind an httpx.MockTransport
- A runner thread for end-to-end control channel tests
"""

import json
import os
import shutil
import sys
import tempfile
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import httpx
import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tfdeployer.modules.control import ControlVolume
from tfdeployer.modules.executor import CommandRunner


# =============================================================================
# Control Volume Infrastructure
# =============================================================================

@pytest.fixture
def short_tmp():
    """Temporary directory with a path short enough for AF_UNIX sockets."""
    path = tempfile.mkdtemp(prefix="tfd-", dir="/tmp")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def control_volume(short_tmp):
    """Initialized control volume with an existing release workdir."""
    volume = ControlVolume(short_tmp)
    volume.reset()
    volume.workdir.mkdir(parents=True)
    return volume


@pytest.fixture
def runner_thread(control_volume):
    """
    Runner polling the control volume in a background thread.

    The volume is marked done on teardown so the thread always exits.
    """
    runner = CommandRunner(control_volume, poll_interval=0.01)
    errors: List[BaseException] = []

    def target():
        try:
            runner.run()
        except BaseException as e:
            errors.append(e)

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    yield thread
    control_volume.mark_done()
    thread.join(timeout=5)
    assert not thread.is_alive(), "runner did not stop"
    assert not errors, f"runner failed: {errors}"


# =============================================================================
# Log Collector Mocking Infrastructure
# =============================================================================

@dataclass
class CollectorResponse:
    """Represents a scripted collector response."""
    status_code: int = 200
    body: Optional[Union[dict, str]] = None
    error: Optional[Exception] = None

    def to_response(self, request: httpx.Request) -> httpx.Response:
        if self.error is not None:
            raise self.error
        if isinstance(self.body, dict):
            return httpx.Response(self.status_code, json=self.body, request=request)
        return httpx.Response(self.status_code, text=self.body or "", request=request)


@dataclass
class CollectorCall:
    """Record of a log post made during testing."""
    url: str
    payload: Dict
    headers: Dict[str, str] = field(default_factory=dict)


class CollectorMocker:
    """
    Mock log collector with scripted responses.

    Scripted responses are consumed in order; once they run out the
    collector behaves like a healthy session and hands out
    ``<base>/<n>`` continuation URLs.

    Usage:
        async def test_retry(collector):
            collector.script(CollectorResponse(503), CollectorResponse(503))
            relay = LogRelay(collector.first_url, client=collector.client())
            await relay.send(LineGroup(lines=["a"]))
            assert collector.call_count == 3
    """

    def __init__(self, base_url: str = "http://collector.test/log"):
        self.base_url = base_url
        self._scripted: List[CollectorResponse] = []
        self._call_history: List[CollectorCall] = []
        self._sequence = 0

    @property
    def first_url(self) -> str:
        return f"{self.base_url}/0"

    def script(self, *responses: CollectorResponse) -> "CollectorMocker":
        self._scripted.extend(responses)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content) if request.content else {}
        self._call_history.append(
            CollectorCall(url=str(request.url), payload=payload, headers=dict(request.headers))
        )
        if self._scripted:
            return self._scripted.pop(0).to_response(request)
        if payload.get("done"):
            return httpx.Response(200, text="Done.\n", request=request)
        self._sequence += 1
        return httpx.Response(
            200, json={"continue": f"{self.base_url}/{self._sequence}"}, request=request
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    @property
    def calls(self) -> List[CollectorCall]:
        return self._call_history

    @property
    def call_count(self) -> int:
        return len(self._call_history)

    @property
    def urls(self) -> List[str]:
        return [call.url for call in self._call_history]

    @property
    def lines(self) -> List[str]:
        return [line for call in self._call_history for line in call.payload.get("lines", [])]


@pytest.fixture
def collector():
    """Fixture that provides a CollectorMocker."""
    return CollectorMocker()


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Tests that run real processes through the control volume"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
