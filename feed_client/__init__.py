"""실시간 마켓 데이터 클라이언트 - 재연결 채널, 연결 유지 타이머, 심볼별 롤링 통계"""
