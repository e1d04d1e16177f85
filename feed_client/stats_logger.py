"""통계 로깅 모듈 - 재연결/프로토콜 에러 기록, 주기 통계 JSON"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


class StatsLogger:
    """수신 스트림 상태 로깅 (상태 복원용이 아닌 관측용)"""

    MAX_EVENT_BUFFER = 1000  # 이벤트 기록 최대 보관 수

    def __init__(self, log_dir: Path | str):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._reconnects: list[dict] = []
        self._protocol_errors: list[dict] = []

    def _append(self, events: list[dict], entry: dict) -> None:
        if len(events) >= self.MAX_EVENT_BUFFER:
            del events[:self.MAX_EVENT_BUFFER // 2]
        events.append(entry)

    def record_reconnect(self, timestamp: float, reason: str) -> None:
        """재연결 예약 이벤트 기록 (timestamp: ms)"""
        self._append(self._reconnects, {"timestamp": timestamp, "reason": reason})

    def record_protocol_error(self, timestamp: float, reason: str) -> None:
        self._append(self._protocol_errors, {"timestamp": timestamp, "reason": reason})

    def get_periodic_stats(self, extra: dict | None = None) -> dict:
        """현재 주기 통계 반환"""
        stats = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "reconnect_count": len(self._reconnects),
            "reconnects": list(self._reconnects),
            "protocol_error_count": len(self._protocol_errors),
            "protocol_errors": list(self._protocol_errors),
        }
        if extra:
            stats.update(extra)
        return stats

    async def write_periodic_log(self, extra: dict | None = None) -> Path:
        """주기적 통계 JSON 로그 작성 후 주기 카운터 리셋"""
        stats = self.get_periodic_stats(extra)
        now = datetime.now(timezone.utc)
        # 쓰기마다 별도 파일 (같은 시각이면 순번 추가)
        stem = f"stats_{now.strftime('%Y%m%d_%H%M%S_%f')}"
        log_file = self.log_dir / f"{stem}.json"
        seq = 1
        while log_file.exists():
            log_file = self.log_dir / f"{stem}_{seq}.json"
            seq += 1
        with open(log_file, "x") as f:
            json.dump(stats, f, indent=2, default=str)
        self._reconnects.clear()
        self._protocol_errors.clear()
        logger.info(f"[로그] {log_file}")
        return log_file
