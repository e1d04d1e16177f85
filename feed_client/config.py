"""클라이언트 설정 모듈 - config.yaml 로드 및 Config 데이터클래스"""

from dataclasses import dataclass, field, asdict
from pathlib import Path

import yaml


@dataclass
class Config:
    """대시보드 데이터 클라이언트 설정 (config.yaml에서 로드)"""
    ws_url: str = "ws://localhost:8080/market-data"
    symbols: list[str] = field(
        default_factory=lambda: ["TEST", "AAPL", "GOOGL", "MSFT", "AMZN", "TSLA"]
    )
    selected_symbol: str = "TEST"
    # 재연결
    max_reconnect_attempts: int = 5
    reconnect_base_delay_ms: int = 3000
    reconnect_backoff_factor: float = 1.5
    # 주기 (초)
    heartbeat_interval: float = 30
    metrics_interval: float = 5
    initial_metrics_delay: float = 1
    auto_connect_delay: float = 1
    ping_interval: float = 20
    # 롤링 상태 크기
    history_size: int = 1000
    rate_window_size: int = 60
    trade_log_size: int = 100
    message_log_size: int = 100
    bytes_per_message: int = 100
    trade_threshold: float = 0.01
    zero_is_absent: bool = False
    # 로컬 가격 시뮬레이션
    simulate_prices: bool = False
    simulate_interval: float = 2
    # 로그 / 알림
    stats_interval: int = 60
    log_dir: str = "./logs"
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        """YAML 파일에서 Config 객체 생성"""
        p = Path(path)
        if not p.exists():
            return cls()
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def to_yaml(self, path: str) -> None:
        """Config 객체를 YAML 파일로 저장"""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)

    def to_dict(self) -> dict:
        """Config를 딕셔너리로 변환"""
        return asdict(self)
