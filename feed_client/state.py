"""클라이언트 상태 - 전역 싱글톤 대신 명시적으로 소유되는 상태 묶음"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from feed_client.chart import TIMEFRAMES
from feed_client.config import Config
from feed_client.models import MetricsSnapshot, TradeLogEntry
from feed_client.statistics import MessageRateWindow
from feed_client.symbol_store import SymbolStore


@dataclass
class ClientState:
    store: SymbolStore
    rate_window: MessageRateWindow
    trade_log: deque[TradeLogEntry]
    metrics: MetricsSnapshot | None = None
    total_messages: int = 0
    timeframe: str = "1s"

    @classmethod
    def from_config(cls, config: Config, clock=None) -> "ClientState":
        kwargs = {"clock": clock} if clock is not None else {}
        store = SymbolStore(
            config.symbols,
            selected=config.selected_symbol,
            history_size=config.history_size,
            zero_is_absent=config.zero_is_absent,
            **kwargs,
        )
        return cls(
            store=store,
            rate_window=MessageRateWindow(config.rate_window_size),
            trade_log=deque(maxlen=config.trade_log_size),
        )

    def set_timeframe(self, timeframe: str) -> None:
        if timeframe not in TIMEFRAMES:
            raise ValueError(f"알 수 없는 타임프레임: {timeframe!r}")
        self.timeframe = timeframe
