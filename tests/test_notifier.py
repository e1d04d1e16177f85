"""알림 싱크 테스트
Feature: market-data-client
로깅 싱크 보관 한도, 텔레그램 error 전달 (aiohttp 목)
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from feed_client.config import Config
from feed_client.models import Severity
from feed_client.notifier import LoggingSink, TelegramSink


def mock_session(status=200):
    mock_resp = MagicMock()
    mock_resp.status = status
    mock_resp.text = AsyncMock(return_value="error body")
    mock_resp.__aenter__ = AsyncMock(return_value=mock_resp)
    mock_resp.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post = MagicMock(return_value=mock_resp)
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session


class TestLoggingSink:

    def test_bounded_message_log(self):
        sink = LoggingSink(max_messages=3)
        for i in range(5):
            sink.notify(f"m{i}")
        assert [m.text for m in sink.messages] == ["m2", "m3", "m4"]

    def test_severity_maps_to_level(self, caplog):
        sink = LoggingSink()
        with caplog.at_level(logging.INFO, logger="feed_client.notifier"):
            sink.notify("boom", Severity.ERROR)
            sink.notify("ok", Severity.SUCCESS)
        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.ERROR, logging.INFO]

    def test_clear(self):
        sink = LoggingSink()
        sink.notify("x")
        sink.clear()
        assert len(sink.messages) == 0


class TestTelegramSink:

    @pytest.fixture
    def config(self):
        return Config(telegram_bot_token="123:abc", telegram_chat_id="42")

    def test_disabled_without_token(self):
        sink = TelegramSink(Config())
        assert sink.enabled is False
        sink.notify("error", Severity.ERROR)
        assert len(sink.inner.messages) == 1

    def test_error_forwarded(self, config):
        session = mock_session()

        async def run():
            with patch("aiohttp.ClientSession", return_value=session):
                sink = TelegramSink(config)
                sink.notify("connection lost", Severity.ERROR)
                sink.notify("just info", Severity.INFO)
                await asyncio.sleep(0)
                await asyncio.sleep(0)

        asyncio.run(run())
        session.post.assert_called_once()
        payload = session.post.call_args.kwargs["json"]
        assert payload["chat_id"] == "42"
        assert "connection lost" in payload["text"]

    def test_no_loop_skips_send(self, config):
        sink = TelegramSink(config)
        sink.notify("offline error", Severity.ERROR)
        assert sink.inner.messages[-1].text == "offline error"

    def test_send_failure_swallowed(self, config):
        session = MagicMock()
        session.__aenter__ = AsyncMock(side_effect=ConnectionError("fail"))
        session.__aexit__ = AsyncMock(return_value=False)

        async def run():
            with patch("aiohttp.ClientSession", return_value=session):
                await TelegramSink(config).send_message("x")

        asyncio.run(run())

    def test_non_200_logged(self, config, caplog):
        session = mock_session(status=400)

        async def run():
            with patch("aiohttp.ClientSession", return_value=session):
                await TelegramSink(config).send_message("x")

        with caplog.at_level(logging.WARNING, logger="feed_client.notifier"):
            asyncio.run(run())
        assert any("400" in r.getMessage() for r in caplog.records)
