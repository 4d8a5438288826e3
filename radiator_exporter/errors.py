"""익스포터 예외 계층

ConfigError 만 프로세스를 종료시킨다. 나머지는 한 폴링 주기 단위로 처리된다.
"""


class ExporterError(Exception):
    """모든 익스포터 예외의 기본 클래스"""


class ConfigError(ExporterError):
    """설정 파일 또는 메트릭 카탈로그 오류 (시작 시 치명적)"""


class ConnectError(ExporterError):
    """Radiator 관리 포트 연결 실패 또는 연결 끊김"""


class AuthError(ExporterError):
    """Radiator 가 로그인 자격 증명을 거부함"""


class ProtocolError(ExporterError):
    """Monitor 응답이 잘못되었거나 잘림"""


class DiscoveryError(ExporterError):
    """한 오브젝트 종류(kind)에 한정된 탐색 실패"""

    def __init__(self, kind: str, cause: Exception) -> None:
        super().__init__(f"discovery of {kind} objects failed: {cause}")
        self.kind = kind
        self.cause = cause
