"""수신 파이프라인 - 메시지 파싱, type별 라우팅, 심볼/메트릭/체결 로그 갱신"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Mapping

from feed_client.errors import ProtocolError
from feed_client.models import (
    ConnectionNotice, InboundMessage, MarketDataUpdate, MetricsSnapshot,
    MetricsUpdate, Severity, SymbolRecord, TradeLogEntry, UnknownMessage,
)
from feed_client.protocol import parse_inbound

if TYPE_CHECKING:
    from feed_client.notifier import NotificationSink
    from feed_client.state import ClientState
    from feed_client.stats_logger import StatsLogger

logger = logging.getLogger(__name__)

DEFAULT_TRADE_SIZE = 100


class IngestPipeline:
    """수신 메시지 한 건을 끝까지 처리 (중첩 디스패치 없음)"""

    def __init__(self, state: ClientState, sink: NotificationSink,
                 clock: Callable[[], float], trade_threshold: float = 0.01,
                 stats_logger: StatsLogger | None = None):
        self.state = state
        self.sink = sink
        self.clock = clock
        self.trade_threshold = trade_threshold
        self.stats_logger = stats_logger

    def process(self, payload: str | bytes | Mapping) -> InboundMessage | None:
        """수신 페이로드 처리. 파싱 실패 시 보고 후 None"""
        now = self.clock()
        self.state.total_messages += 1
        self.state.rate_window.record(now)

        try:
            message = parse_inbound(payload)
        except ProtocolError as e:
            self._report_malformed(now, payload, e)
            return None

        # 값 변환 실패도 파싱 오류로 격리 (스트림은 계속)
        try:
            self.dispatch(message)
        except (ValueError, OverflowError) as e:
            self._report_malformed(now, payload, ProtocolError(f"값 변환 실패: {e}"))
            return None
        return message

    def _report_malformed(self, now: float, payload, error: ProtocolError) -> None:
        logger.debug(f"[수신] 파싱 실패 페이로드: {payload!r:.200}")
        if self.stats_logger:
            self.stats_logger.record_protocol_error(now, str(error))
        self.sink.notify(f"메시지 파싱 오류: {error}", Severity.ERROR)

    def dispatch(self, message: InboundMessage) -> None:
        if isinstance(message, MetricsUpdate):
            self._apply_metrics(message)
        elif isinstance(message, MarketDataUpdate):
            self.apply_market_data(message)
        elif isinstance(message, ConnectionNotice):
            self.sink.notify(message.message, Severity.SUCCESS)
        elif isinstance(message, UnknownMessage):
            if self.stats_logger:
                self.stats_logger.record_protocol_error(self.clock(), f"unknown type {message.type}")
            self.sink.notify(f"알 수 없는 메시지 type: {message.type}", Severity.WARNING)

    def _apply_metrics(self, update: MetricsUpdate) -> MetricsSnapshot:
        """스냅샷 교체 - 누락 필드는 이전 스냅샷 값, 이전이 없으면 0"""
        prev = self.state.metrics or MetricsSnapshot()

        def pick(value, fallback):
            return fallback if value is None else value

        snapshot = MetricsSnapshot(
            connections=int(pick(update.connections, prev.connections)),
            total_orders=int(pick(update.total_orders, prev.total_orders)),
            total_trades=int(pick(update.total_trades, prev.total_trades)),
            avg_latency_ms=float(pick(update.avg_latency, prev.avg_latency_ms)),
            received_at=self.clock(),
        )
        self.state.metrics = snapshot
        self.sink.notify(f"메트릭 갱신: 접속 {snapshot.connections}개", Severity.INFO)
        return snapshot

    def apply_market_data(self, update: MarketDataUpdate) -> SymbolRecord:
        """시세 반영 (수신 카운터와 무관 - 로컬 시뮬레이터도 이 경로 사용)"""
        store = self.state.store
        existing = store.get(update.symbol)
        previous_price = existing.last if existing else 0.0

        record = store.upsert(update)

        if record.symbol == store.selected:
            new_price = record.last
            if abs(new_price - previous_price) > self.trade_threshold:
                self._append_trade(record, previous_price, update.volume)
        return record

    def _append_trade(self, record: SymbolRecord, previous_price: float,
                      volume: float | None) -> TradeLogEntry:
        side = "BUY" if record.last > previous_price else "SELL"
        entry = TradeLogEntry(
            time=self.clock(),
            symbol=record.symbol,
            side=side,
            price=record.last,
            size=volume if volume is not None else DEFAULT_TRADE_SIZE,
        )
        # 최신이 앞쪽, 용량 초과 시 가장 오래된 항목 제거
        self.state.trade_log.appendleft(entry)
        return entry
