"""차트 윈도우 - 타임프레임별 최대 나이 + 위치 기반 stride 다운샘플링"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from feed_client.models import HistoryPoint


@dataclass(frozen=True)
class Timeframe:
    name: str
    max_age_ms: int
    stride: int


# stride는 저장된 히스토리의 인덱스 기준 (시간 버킷이 아님)
TIMEFRAMES: dict[str, Timeframe] = {
    "1s": Timeframe("1s", 60_000, 1),
    "5s": Timeframe("5s", 300_000, 5),
    "30s": Timeframe("30s", 1_800_000, 30),
    "1m": Timeframe("1m", 3_600_000, 60),
}


def get_timeframe(name: str) -> Timeframe:
    try:
        return TIMEFRAMES[name]
    except KeyError:
        raise ValueError(f"알 수 없는 타임프레임: {name!r} (지원: {', '.join(TIMEFRAMES)})") from None


class ChartWindow:
    """(time, price) 지연 시퀀스 - 순회할 때마다 다시 계산, 캐시 없음"""

    def __init__(self, history: Sequence[HistoryPoint], timeframe: Timeframe, now: float):
        self.history = history
        self.timeframe = timeframe
        self.now = now

    def __iter__(self) -> Iterator[tuple[float, float]]:
        stride = self.timeframe.stride
        max_age = self.timeframe.max_age_ms
        for i, point in enumerate(self.history):
            if i % stride == 0 and self.now - point.time <= max_age:
                yield point.time, point.price


class ChartWindower:
    @staticmethod
    def window(history: Sequence[HistoryPoint], timeframe: str, now: float) -> ChartWindow:
        return ChartWindow(history, get_timeframe(timeframe), now)
