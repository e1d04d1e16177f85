"""통계 엔진 - 메시지율, 데이터율, 변동성, 스프레드, 고저가"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Sequence

from feed_client.models import HistoryPoint, SymbolRecord
from feed_client.symbol_store import SymbolStore

RATE_SPAN_MS = 1000
VOLATILITY_POINTS = 20


class MessageRateWindow:
    """최근 수신 시각 N개 (기본 60) - 초당 메시지 수 계산용"""

    def __init__(self, size: int = 60):
        self._stamps: deque[float] = deque(maxlen=size)

    def record(self, now: float) -> None:
        self._stamps.append(now)

    def rate(self, now: float, span_ms: float = RATE_SPAN_MS) -> int:
        return sum(1 for t in self._stamps if now - t <= span_ms)

    def __len__(self) -> int:
        return len(self._stamps)


@dataclass(frozen=True)
class SymbolStats:
    """렌더러가 소비하는 심볼 통계 요약"""
    symbol: str
    last: float
    bid: float
    ask: float
    spread: float
    spread_percent: float
    change_percent: float
    day_high: float
    day_low: float
    volatility: float
    volume: float


class StatisticsEngine:
    """원시 히스토리/카운터로부터 파생 통계 계산 (상태 없음)"""

    def __init__(self, bytes_per_message: int = 100):
        self.bytes_per_message = bytes_per_message

    @staticmethod
    def message_rate(window: MessageRateWindow, now: float) -> int:
        return window.rate(now)

    def data_rate_kb(self, total_messages: int) -> float:
        """추정 데이터율 (KB/s) - 실제 바이트가 아닌 메시지당 가정치 기반"""
        return total_messages * self.bytes_per_message / 1024

    @staticmethod
    def volatility(prices: Sequence[float] | Iterable[HistoryPoint]) -> float:
        """최근 20개 가격의 변동계수(%) = 모표준편차 / 평균 * 100"""
        values = [p.price if isinstance(p, HistoryPoint) else p for p in prices]
        if len(values) < VOLATILITY_POINTS:
            return 0.0
        recent = values[-VOLATILITY_POINTS:]
        mean = sum(recent) / len(recent)
        if mean == 0:
            return 0.0
        variance = sum((x - mean) ** 2 for x in recent) / len(recent)
        return math.sqrt(variance) / mean * 100

    @staticmethod
    def spread(record: SymbolRecord) -> tuple[float, float]:
        """(ask - bid, 스프레드 %)"""
        spread = record.ask - record.bid
        percent = spread / record.last * 100 if record.last > 0 else 0.0
        return spread, percent

    @staticmethod
    def change_percent(record: SymbolRecord) -> float:
        prev, cur = record.previous_last, record.last
        if prev > 0 and cur > 0:
            return (cur - prev) / prev * 100
        return 0.0

    def summary(self, record: SymbolRecord) -> SymbolStats:
        spread, spread_pct = self.spread(record)
        high, low = SymbolStore.day_range(record)
        return SymbolStats(
            symbol=record.symbol,
            last=record.last,
            bid=record.bid,
            ask=record.ask,
            spread=spread,
            spread_percent=spread_pct,
            change_percent=self.change_percent(record),
            day_high=high,
            day_low=low,
            volatility=self.volatility(record.history),
            volume=record.volume,
        )


def format_duration(seconds: int) -> str:
    """초 → HH:MM:SS"""
    hours, rem = divmod(max(0, int(seconds)), 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
