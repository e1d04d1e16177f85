"""클라이언트 에러 분류 - 어떤 에러도 프로세스에 치명적이지 않음"""


class FeedClientError(Exception):
    """데이터 클라이언트 에러 기반 클래스"""


class TransportFailure(FeedClientError):
    """채널 open/send/close 실패 → 재연결 경로"""


class ProtocolError(FeedClientError):
    """잘못된 형식의 수신 메시지 → 로깅 후 버림"""


class PolicyViolation(FeedClientError):
    """허용되지 않는 요청 (보호 심볼 삭제, 중복 추가, 미연결 상태 전송)"""


class ExhaustedRetries(FeedClientError):
    """최대 재연결 시도 초과 → 수동 reconnect() 필요"""
