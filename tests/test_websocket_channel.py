"""WebSocketChannel 테스트 - websockets.connect 목으로 네트워크 없이 검증"""

import asyncio
from unittest.mock import patch

import pytest

from feed_client.connection import WebSocketChannel
from feed_client.errors import TransportFailure


class FakeWebSocket:
    def __init__(self, messages=(), hold=False, fail_connect=None, fail_send=None):
        self.messages = list(messages)
        self.hold = hold
        self.fail_connect = fail_connect
        self.fail_send = fail_send
        self.sent = []
        self.exited = False
        self.close_called = False
        self._stop = asyncio.Event()

    async def __aenter__(self):
        if self.fail_connect:
            raise self.fail_connect
        return self

    async def __aexit__(self, *exc):
        self.exited = True
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for m in self.messages:
            yield m
        if self.hold:
            await self._stop.wait()

    async def send(self, text):
        if self.fail_send:
            raise self.fail_send
        self.sent.append(text)

    async def close(self):
        self.close_called = True
        self._stop.set()


class Listener:
    def __init__(self):
        self.events = []

    def on_open(self):
        self.events.append(("open",))

    def on_message(self, raw):
        self.events.append(("message", raw))

    def on_close(self, reason):
        self.events.append(("close", reason))

    def on_error(self, exc):
        self.events.append(("error", type(exc).__name__))


def run_channel(fake, body=None):
    listener = Listener()

    async def run():
        with patch("feed_client.connection.websockets.connect", return_value=fake):
            channel = WebSocketChannel("ws://test", listener)
            if body:
                await body(channel)
            await asyncio.gather(channel._task, return_exceptions=True)

    asyncio.run(run())
    return listener


class TestWebSocketChannel:

    def test_messages_then_remote_close(self):
        listener = run_channel(FakeWebSocket(["a", "b"]))
        assert listener.events == [
            ("open",), ("message", "a"), ("message", "b"), ("close", "원격 종료"),
        ]

    def test_connect_failure_reports_error_then_close(self):
        listener = run_channel(FakeWebSocket(fail_connect=OSError("refused")))
        assert listener.events == [("error", "OSError"), ("close", "refused")]

    def test_close_suppresses_callbacks(self):
        fake = FakeWebSocket(["a"], hold=True)

        async def body(channel):
            await asyncio.sleep(0.01)
            channel.close()

        listener = run_channel(fake, body)
        assert listener.events == [("open",), ("message", "a")]
        assert fake.exited

    def test_send_while_open(self):
        fake = FakeWebSocket(hold=True)

        async def body(channel):
            await asyncio.sleep(0.01)
            channel.send('{"type":"ping"}')
            await asyncio.sleep(0.01)
            channel.close()

        run_channel(fake, body)
        assert fake.sent == ['{"type":"ping"}']

    def test_send_before_open_fails(self):
        async def body(channel):
            with pytest.raises(TransportFailure):
                channel.send("x")
            channel.close()

        run_channel(FakeWebSocket(hold=True), body)

    def test_async_send_failure_reports_error_then_close(self):
        """비동기 전송 실패 → on_error 후 소켓 종료 → on_close (재연결 경로)"""
        fake = FakeWebSocket(hold=True, fail_send=OSError("broken pipe"))

        async def body(channel):
            await asyncio.sleep(0.01)
            channel.send('{"type":"heartbeat"}')
            channel.send('{"type":"ping"}')

        listener = run_channel(fake, body)
        assert fake.close_called
        assert listener.events == [
            ("open",), ("error", "OSError"), ("close", "전송 실패 (broken pipe)"),
        ]
