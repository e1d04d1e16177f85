"""데이터 모델 정의 - 연결 상태, 심볼 레코드, 메트릭, 송수신 메시지"""

from __future__ import annotations

import math
import random
import string
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union


# ── 연결 관련 ──

class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class Severity(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


def generate_connection_id(rng: random.Random | None = None) -> str:
    """CONN- 접두어 + 대문자/숫자 9자리 (서버가 아닌 클라이언트가 생성)"""
    rng = rng or random
    chars = string.ascii_uppercase + string.digits
    return "CONN-" + "".join(rng.choice(chars) for _ in range(9))


@dataclass
class ConnectionSession:
    """연결 성공 시 생성, 종료 시 폐기"""
    connection_id: str
    started_at: float            # ms

    def uptime_seconds(self, now: float) -> int:
        return max(0, int((now - self.started_at) // 1000))


# ── 심볼 관련 ──

@dataclass(frozen=True)
class HistoryPoint:
    """가격 히스토리 한 점"""
    time: float                  # 로컬 수신 시각 (ms)
    price: float
    bid: float
    ask: float


@dataclass
class SymbolRecord:
    """심볼별 시세 상태 (대문자 티커 키)"""
    symbol: str
    bid: float = 0.0
    ask: float = 0.0
    last: float = 0.0
    volume: float = 0.0
    timestamp: float = 0.0       # ms
    previous_last: float = 0.0
    day_high: float = 0.0
    day_low: float = math.inf
    history: deque[HistoryPoint] = field(default_factory=lambda: deque(maxlen=1000))


# ── 메트릭 / 통계 관련 ──

@dataclass(frozen=True)
class MetricsSnapshot:
    """서버 메트릭 스냅샷 - 메시지마다 통째로 교체"""
    connections: int = 0
    total_orders: int = 0
    total_trades: int = 0
    avg_latency_ms: float = 0.0
    received_at: float = 0.0     # ms


@dataclass(frozen=True)
class TradeLogEntry:
    """선택 심볼의 가격 변동으로 파생된 체결 로그 (side는 수신값이 아님)"""
    time: float                  # ms
    symbol: str
    side: str                    # BUY / SELL
    price: float
    size: float

    @property
    def value(self) -> float:
        return self.price * self.size


@dataclass(frozen=True)
class SystemMessage:
    time: float                  # ms
    text: str
    severity: Severity


# ── 수신 메시지 (type 판별자) ──

@dataclass(frozen=True)
class MetricsUpdate:
    """type=metrics, 누락 필드는 None"""
    type: ClassVar[str] = "metrics"
    connections: Optional[float] = None
    total_orders: Optional[float] = None
    total_trades: Optional[float] = None
    avg_latency: Optional[float] = None


@dataclass(frozen=True)
class MarketDataUpdate:
    """type=market_data, symbol 외 필드는 희소 업데이트 (None = 누락)"""
    type: ClassVar[str] = "market_data"
    symbol: str
    bid: Optional[float] = None
    ask: Optional[float] = None
    last: Optional[float] = None
    volume: Optional[float] = None
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class ConnectionNotice:
    type: ClassVar[str] = "connection"
    message: str
    status: Optional[str] = None


@dataclass(frozen=True)
class UnknownMessage:
    """인식하지 못한 type - 로깅만 하고 상태는 변경하지 않음"""
    type: str


InboundMessage = Union[MetricsUpdate, MarketDataUpdate, ConnectionNotice, UnknownMessage]


# ── 송신 메시지 ──

@dataclass(frozen=True)
class Subscribe:
    type: ClassVar[str] = "subscribe"
    symbol: str


@dataclass(frozen=True)
class GetMetrics:
    type: ClassVar[str] = "get_metrics"
    timestamp: int


@dataclass(frozen=True)
class Heartbeat:
    type: ClassVar[str] = "heartbeat"
    timestamp: int


@dataclass(frozen=True)
class Chat:
    type: ClassVar[str] = "chat"
    message: str


@dataclass(frozen=True)
class Ping:
    type: ClassVar[str] = "ping"


OutboundMessage = Union[Subscribe, GetMetrics, Heartbeat, Chat, Ping]
