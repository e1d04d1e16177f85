"""심볼 저장소 - 심볼별 시세 레코드, 희소 업데이트, 히스토리/고저가 관리"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from typing import Callable, Iterable

from feed_client.errors import PolicyViolation
from feed_client.models import HistoryPoint, MarketDataUpdate, SymbolRecord

logger = logging.getLogger(__name__)

PROTECTED_SYMBOL = "TEST"
ADDED_SYMBOL_PRICE = 100.0


def _wall_clock_ms() -> float:
    return time.time() * 1000


class SymbolStore:
    """대문자 티커 → SymbolRecord 매핑"""

    def __init__(self, symbols: Iterable[str] = (), selected: str = PROTECTED_SYMBOL,
                 history_size: int = 1000, zero_is_absent: bool = False,
                 clock: Callable[[], float] = _wall_clock_ms):
        self.history_size = history_size
        self.zero_is_absent = zero_is_absent
        self.clock = clock
        self._records: dict[str, SymbolRecord] = {}
        for s in symbols:
            sym = self.normalize(s)
            if sym:
                self._ensure(sym)
        self.selected = self.normalize(selected)

    @staticmethod
    def normalize(symbol: str) -> str:
        return symbol.strip().upper()

    # ── 조회 ──

    def get(self, symbol: str) -> SymbolRecord | None:
        return self._records.get(self.normalize(symbol))

    def symbols(self) -> list[str]:
        return list(self._records)

    def __contains__(self, symbol: str) -> bool:
        return self.normalize(symbol) in self._records

    def __len__(self) -> int:
        return len(self._records)

    def select(self, symbol: str) -> str:
        self.selected = self.normalize(symbol)
        return self.selected

    # ── 변경 ──

    def _ensure(self, sym: str) -> SymbolRecord:
        record = self._records.get(sym)
        if record is None:
            record = SymbolRecord(symbol=sym, history=deque(maxlen=self.history_size))
            self._records[sym] = record
        return record

    def _present(self, value: float | None) -> bool:
        """희소 업데이트에서 필드가 '존재'하는지 판단 (zero_is_absent 정책 적용)"""
        if value is None:
            return False
        return not (self.zero_is_absent and value == 0)

    def upsert(self, update: MarketDataUpdate) -> SymbolRecord:
        """업데이트에 포함된 필드만 병합하고 히스토리/고저가 갱신"""
        now = self.clock()
        record = self._ensure(self.normalize(update.symbol))

        if self._present(update.bid):
            record.bid = float(update.bid)
        if self._present(update.ask):
            record.ask = float(update.ask)
        if self._present(update.volume):
            record.volume = max(0.0, float(update.volume))

        priced = self._present(update.last)
        if priced:
            price = float(update.last)
            record.previous_last = record.last
            record.last = price
            record.day_high = max(record.day_high, price)
            record.day_low = min(record.day_low, price)

        record.timestamp = update.timestamp if update.timestamp else now
        record.history.append(HistoryPoint(
            time=now, price=record.last, bid=record.bid, ask=record.ask,
        ))
        return record

    def add(self, symbol: str) -> SymbolRecord:
        """심볼 추가 - 기본가 100, 고저가 100 고정"""
        sym = self.normalize(symbol)
        if not sym:
            raise PolicyViolation("심볼을 입력해야 함")
        if sym in self._records:
            raise PolicyViolation(f"{sym} 심볼이 이미 존재함")
        record = self._ensure(sym)
        record.last = ADDED_SYMBOL_PRICE
        record.day_high = ADDED_SYMBOL_PRICE
        record.day_low = ADDED_SYMBOL_PRICE
        logger.info(f"[심볼] {sym} 추가")
        return record

    def remove(self, symbol: str) -> None:
        """심볼 삭제 - TEST 및 현재 선택 심볼은 보호"""
        sym = self.normalize(symbol)
        if sym == PROTECTED_SYMBOL:
            raise PolicyViolation(f"{PROTECTED_SYMBOL} 심볼은 삭제할 수 없음")
        if sym == self.selected:
            raise PolicyViolation(f"{sym} 심볼은 현재 선택되어 있어 삭제할 수 없음")
        if sym not in self._records:
            raise PolicyViolation(f"{sym} 심볼이 존재하지 않음")
        del self._records[sym]
        logger.info(f"[심볼] {sym} 삭제")

    @staticmethod
    def day_range(record: SymbolRecord) -> tuple[float, float]:
        """표시용 고저가 (관측 전 day_low=inf는 0으로)"""
        low = record.day_low if math.isfinite(record.day_low) else 0.0
        return record.day_high, low
