"""검증 엔진 예외 계층

검증 실패(레이어가 통과하지 못함)는 예외가 아니라 결과 값으로 표현합니다.
여기의 예외는 인프라 장애와 잘못된 상태 전이에만 사용됩니다.
"""


class TrustEngineError(Exception):
    """검증 엔진 기본 예외"""


class InfrastructureError(TrustEngineError):
    """외부 의존성 장애 (재시도 가능)"""

    retryable = True


class AIVisionTimeoutError(InfrastructureError):
    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"AI vision request timed out after {timeout_seconds:g}s")


class AIVisionServiceError(InfrastructureError):
    pass


class AIVisionUnavailableError(InfrastructureError):
    """분류기 자격 증명이 설정되지 않음"""


class TerminalResultError(TrustEngineError):
    """이미 종료된 검증 결과에 쓰기를 시도함"""


class InvalidTransitionError(TrustEngineError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move attempt from '{current}' to '{target}'")


class ConfigurationError(TrustEngineError):
    """퀘스트/챕터 설정이 잘못됨 (예: 알 수 없는 시간대)"""
