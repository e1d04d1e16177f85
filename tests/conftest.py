"""공용 테스트 도구 - 가짜 채널, 기록 싱크, 가상 스케줄러 픽스처"""

import json

import pytest

from feed_client.client import DashboardClient
from feed_client.config import Config
from feed_client.models import Severity
from feed_client.scheduler import VirtualScheduler

START_MS = 1_000_000.0


class FakeChannel:
    """테스트가 open/receive/drop을 직접 구동하는 채널"""

    def __init__(self, url, listener):
        self.url = url
        self.listener = listener
        self.sent: list[dict] = []
        self.closed = False
        self.fail_send = False

    def send(self, text):
        if self.fail_send:
            raise OSError("broken pipe")
        self.sent.append(json.loads(text))

    def close(self):
        self.closed = True

    def open(self):
        self.listener.on_open()

    def receive(self, payload):
        if isinstance(payload, dict):
            payload = json.dumps(payload)
        self.listener.on_message(payload)

    def drop(self, reason="remote closed"):
        self.listener.on_close(reason)

    def error(self, exc):
        self.listener.on_error(exc)

    def sent_types(self):
        return [m["type"] for m in self.sent]


class ChannelFactory:
    """생성한 채널을 기록하는 팩토리. refuse=True면 즉시 예외"""

    def __init__(self):
        self.channels: list[FakeChannel] = []
        self.refuse = False

    def __call__(self, url, listener):
        if self.refuse:
            raise OSError("connection refused")
        channel = FakeChannel(url, listener)
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> FakeChannel:
        return self.channels[-1]


class RecordingSink:
    def __init__(self):
        self.events: list[tuple[str, Severity]] = []

    def notify(self, text, severity=Severity.INFO):
        self.events.append((text, severity))

    def clear(self):
        self.events.clear()

    def severities(self):
        return [s for _, s in self.events]

    def texts(self):
        return [t for t, _ in self.events]


@pytest.fixture
def config(tmp_path):
    return Config(log_dir=str(tmp_path / "logs"))


@pytest.fixture
def scheduler():
    return VirtualScheduler(start_ms=START_MS)


@pytest.fixture
def factory():
    return ChannelFactory()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def client(config, scheduler, factory, sink):
    return DashboardClient(config, scheduler, factory, sink=sink)


@pytest.fixture
def connected_client(client, factory):
    client.connect()
    factory.last.open()
    return client
