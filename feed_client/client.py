"""대시보드 데이터 클라이언트 - 렌더링 계층이 사용하는 API 파사드

ClientState를 소유하고 ConnectionManager, IngestPipeline, StatisticsEngine,
ChartWindower를 연결한다. 정책 위반은 싱크에 보고하고 False를 반환한다.
"""

from __future__ import annotations

import logging
from typing import Iterable

from feed_client.chart import ChartWindower
from feed_client.config import Config
from feed_client.connection import ChannelFactory, ConnectionManager
from feed_client.errors import PolicyViolation
from feed_client.ingest import IngestPipeline
from feed_client.models import (
    Chat, ConnectionState, GetMetrics, MetricsSnapshot, Ping, Severity,
    Subscribe, SymbolRecord, TradeLogEntry,
)
from feed_client.notifier import LoggingSink, NotificationSink
from feed_client.scheduler import Scheduler
from feed_client.simulator import PriceSimulator
from feed_client.state import ClientState
from feed_client.statistics import StatisticsEngine, SymbolStats, format_duration
from feed_client.stats_logger import StatsLogger

logger = logging.getLogger(__name__)

COMMAND_HELP = [
    "/help - 도움말",
    "/clear - 메시지 로그 비우기",
    "/stats - 통계 보기",
    "/ping - 지연 테스트",
    "/symbols - 심볼 목록",
    "/metrics - 서버 메트릭 요청",
]


class DashboardClient:
    def __init__(self, config: Config, scheduler: Scheduler, channel_factory: ChannelFactory,
                 sink: NotificationSink | None = None, stats_logger: StatsLogger | None = None):
        self.config = config
        self.scheduler = scheduler
        self.sink = sink or LoggingSink(config.message_log_size)
        self.stats_logger = stats_logger
        self.state = ClientState.from_config(config, clock=scheduler.now)
        self.statistics = StatisticsEngine(config.bytes_per_message)
        self.pipeline = IngestPipeline(
            self.state, self.sink, clock=scheduler.now,
            trade_threshold=config.trade_threshold, stats_logger=stats_logger,
        )
        self.connection = ConnectionManager(
            config, self.state, scheduler, channel_factory,
            on_message=self.pipeline.process, sink=self.sink, stats_logger=stats_logger,
        )
        self.simulator: PriceSimulator | None = None
        if config.simulate_prices:
            self.simulator = PriceSimulator(
                self.pipeline, scheduler, lambda: self.connection.connected,
                interval=config.simulate_interval,
            )
            self.simulator.start()

    # ── 연결 ──

    @property
    def connection_state(self) -> ConnectionState:
        return self.connection.state

    @property
    def connected(self) -> bool:
        return self.connection.connected

    def connect(self) -> None:
        self.connection.connect()

    def disconnect(self) -> None:
        self.connection.disconnect()

    def reconnect(self) -> None:
        self.connection.reconnect()

    def close(self) -> None:
        """종료 - 시뮬레이터 중지 후 연결 해제"""
        if self.simulator:
            self.simulator.stop()
        self.connection.disconnect()

    def request_metrics(self) -> bool:
        if not self.connected:
            self.sink.notify("메트릭 요청 불가 - 연결되지 않음", Severity.WARNING)
            return False
        if self.connection.try_send(GetMetrics(timestamp=int(self.scheduler.now()))):
            self.sink.notify("서버 메트릭 요청 중...", Severity.INFO)
            return True
        return False

    # ── 심볼 / 타임프레임 ──

    def _reject(self, error: PolicyViolation) -> bool:
        self.sink.notify(str(error), Severity.WARNING)
        return False

    def select_symbol(self, symbol: str) -> bool:
        sym = self.state.store.normalize(symbol)
        if not sym:
            return self._reject(PolicyViolation("심볼을 입력해야 함"))
        self.state.store.select(sym)
        if self.connected:
            self.connection.try_send(Subscribe(symbol=sym))
        self.sink.notify(f"선택 심볼: {sym}", Severity.INFO)
        return True

    def add_symbol(self, symbol: str) -> bool:
        try:
            record = self.state.store.add(symbol)
        except PolicyViolation as e:
            return self._reject(e)
        self.sink.notify(f"심볼 추가: {record.symbol}", Severity.SUCCESS)
        return True

    def remove_symbol(self, symbol: str) -> bool:
        try:
            self.state.store.remove(symbol)
        except PolicyViolation as e:
            return self._reject(e)
        self.sink.notify(f"심볼 삭제: {self.state.store.normalize(symbol)}", Severity.SUCCESS)
        return True

    def set_timeframe(self, timeframe: str) -> bool:
        try:
            self.state.set_timeframe(timeframe)
        except ValueError as e:
            return self._reject(PolicyViolation(str(e)))
        self.sink.notify(f"타임프레임 변경: {timeframe}", Severity.INFO)
        return True

    def clear_trade_log(self) -> None:
        self.state.trade_log.clear()
        self.sink.notify("체결 로그 초기화", Severity.INFO)

    # ── 채팅 / 명령 ──

    def send_chat(self, text: str) -> bool:
        message = text.strip()
        if not message:
            return False
        if message.startswith("/"):
            return self.handle_command(message)
        if not self.connected:
            return self._reject(PolicyViolation("메시지 전송 불가 - 연결되지 않음"))
        if self.connection.try_send(Chat(message=message)):
            self.sink.notify(f"You: {message}", Severity.INFO)
            return True
        return False

    def handle_command(self, command: str) -> bool:
        cmd = command.strip().lower()
        if cmd == "/help":
            self.sink.notify("사용 가능한 명령:", Severity.INFO)
            for line in COMMAND_HELP:
                self.sink.notify(line, Severity.INFO)
        elif cmd == "/clear":
            clear = getattr(self.sink, "clear", None)
            if clear:
                clear()
            self.sink.notify("메시지 로그 초기화", Severity.SUCCESS)
        elif cmd == "/stats":
            status = self.status()
            self.sink.notify(f"전체 메시지: {status['total_messages']}", Severity.INFO)
            self.sink.notify(f"연결 상태: {status['state']}", Severity.INFO)
            self.sink.notify(f"선택 심볼: {status['selected_symbol']}", Severity.INFO)
            self.sink.notify(f"가동 시간: {status['uptime']}", Severity.INFO)
            self.sink.notify(f"서버 접속 수: {status['connections']}", Severity.INFO)
        elif cmd == "/ping":
            if not self.connected:
                return self._reject(PolicyViolation("ping 불가 - 연결되지 않음"))
            if not self.connection.try_send(Ping()):
                return False
            self.sink.notify("ping 전송 (pong 응답은 처리하지 않음)", Severity.INFO)
        elif cmd == "/symbols":
            self.sink.notify(f"심볼 목록: {', '.join(self.state.store.symbols())}", Severity.INFO)
        elif cmd == "/metrics":
            return self.request_metrics()
        else:
            self.sink.notify(f"알 수 없는 명령: {command}", Severity.ERROR)
            self.sink.notify("/help 로 명령 목록 확인", Severity.INFO)
            return False
        return True

    # ── 조회 ──

    @property
    def selected_symbol(self) -> str:
        return self.state.store.selected

    @property
    def metrics(self) -> MetricsSnapshot | None:
        return self.state.metrics

    @property
    def trade_log(self) -> list[TradeLogEntry]:
        """최신 순"""
        return list(self.state.trade_log)

    def record(self, symbol: str | None = None) -> SymbolRecord | None:
        return self.state.store.get(symbol or self.selected_symbol)

    def stats(self, symbol: str | None = None) -> SymbolStats | None:
        record = self.record(symbol)
        return self.statistics.summary(record) if record else None

    def chart(self, symbol: str | None = None,
              timeframe: str | None = None) -> Iterable[tuple[float, float]]:
        record = self.record(symbol)
        if record is None:
            return ()
        return ChartWindower.window(record.history, timeframe or self.state.timeframe,
                                    self.scheduler.now())

    def message_rate(self) -> int:
        return self.statistics.message_rate(self.state.rate_window, self.scheduler.now())

    def data_rate_kb(self) -> float:
        return self.statistics.data_rate_kb(self.state.total_messages)

    def uptime(self) -> str:
        session = self.connection.session
        if session is None:
            return format_duration(0)
        return format_duration(session.uptime_seconds(self.scheduler.now()))

    def status(self) -> dict:
        session = self.connection.session
        metrics = self.state.metrics
        return {
            "state": self.connection_state.value,
            "connection_id": session.connection_id if session else None,
            "selected_symbol": self.selected_symbol,
            "symbols": self.state.store.symbols(),
            "total_messages": self.state.total_messages,
            "message_rate": self.message_rate(),
            "data_rate_kb": round(self.data_rate_kb(), 1),
            "uptime": self.uptime(),
            "connections": metrics.connections if metrics else 0,
            "reconnect_attempts": self.connection.attempts,
        }
