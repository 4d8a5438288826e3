"""통계 프로바이더 추상 베이스 클래스"""

from abc import ABC, abstractmethod

from radiator_exporter.models.metric import Number, ObjectRef


class BaseProvider(ABC):
    """폴러가 통계를 가져오는 대상

    Radiator Monitor 포트 구현은 RadiatorProvider 이고,
    테스트에서는 메모리 상의 가짜 구현으로 대체한다.
    """

    @abstractmethod
    async def connect(self) -> None:
        """연결이 없으면 연결하고 인증한다 (ConnectError / AuthError)"""
        ...

    @abstractmethod
    async def close(self) -> None:
        """연결을 닫는다. 다음 connect() 가 다시 연결한다"""
        ...

    @abstractmethod
    async def fetch_global_statistics(self) -> dict[str, Number]:
        """전역 통계 조회"""
        ...

    @abstractmethod
    async def discover(self, kind: str) -> list[ObjectRef]:
        """kind 종류의 현재 오브젝트 목록 조회"""
        ...

    @abstractmethod
    async def is_current(self, obj: ObjectRef) -> bool:
        """obj.address 에 아직 같은 식별자의 오브젝트가 있는지 확인"""
        ...

    @abstractmethod
    async def fetch_object_statistics(self, obj: ObjectRef) -> dict[str, Number] | None:
        """오브젝트 하나의 통계 조회 (그 사이 사라졌으면 None)"""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """업스트림 연결 상태 확인"""
        ...
