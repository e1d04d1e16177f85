"""통합 테스트
Feature: market-data-client
모듈 간 연결 및 초기화 흐름 검증
"""

import pytest

from feed_client.client import DashboardClient
from feed_client.config import Config
from feed_client.connection import websocket_channel_factory
from feed_client.models import ConnectionState
from feed_client.notifier import LoggingSink, TelegramSink
from feed_client.scheduler import VirtualScheduler
from feed_client.stats_logger import StatsLogger


class TestModuleInitialization:

    @pytest.fixture
    def config(self, tmp_path):
        return Config(log_dir=str(tmp_path / "logs"), symbols=["TEST", "AAPL"])

    def test_all_modules_initialize(self, config):
        """모든 모듈이 예외 없이 초기화"""
        stats = StatsLogger(config.log_dir)
        sink = TelegramSink(config, LoggingSink(config.message_log_size))
        client = DashboardClient(config, VirtualScheduler(), websocket_channel_factory(),
                                 sink=sink, stats_logger=stats)
        assert client.connection_state is ConnectionState.DISCONNECTED
        assert client.state.store.symbols() == ["TEST", "AAPL"]
        assert sink.enabled is False  # 토큰 미설정

    def test_config_from_yaml(self, tmp_path):
        yaml_path = tmp_path / "config.yaml"
        Config(ws_url="ws://feed:9000/md", max_reconnect_attempts=3).to_yaml(str(yaml_path))
        loaded = Config.from_yaml(str(yaml_path))
        assert loaded.ws_url == "ws://feed:9000/md"
        assert loaded.max_reconnect_attempts == 3

    def test_reconnects_recorded_in_stats(self, config, factory, scheduler, sink):
        stats = StatsLogger(config.log_dir)
        client = DashboardClient(config, scheduler, factory, sink=sink, stats_logger=stats)
        client.connect()
        factory.last.drop("refused")
        scheduler.advance(3000)
        factory.last.drop("refused")
        assert stats.get_periodic_stats()["reconnect_count"] == 2

    def test_config_limits_flow_through(self, tmp_path, factory, scheduler, sink):
        config = Config(log_dir=str(tmp_path), history_size=5, trade_log_size=2,
                        max_reconnect_attempts=1)
        client = DashboardClient(config, scheduler, factory, sink=sink)
        client.connect()
        factory.last.open()
        for i in range(10):
            factory.last.receive({"type": "market_data", "symbol": "TEST", "last": i + 1})
        assert len(client.record().history) == 5
        assert len(client.trade_log) == 2
        factory.last.drop()
        scheduler.advance(3000)
        factory.last.drop()
        assert client.connection_state is ConnectionState.DISCONNECTED
