"""Radiator Monitor 포트 프로바이더"""

import logging
from collections.abc import Awaitable, Callable
from itertools import count
from typing import TypeVar

from radiator_exporter.config import RadiatorConfig
from radiator_exporter.errors import ConnectError
from radiator_exporter.models.metric import Number, ObjectRef
from radiator_exporter.monitor import MonitorConnection
from radiator_exporter.providers.base import BaseProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RadiatorProvider(BaseProvider):
    """Monitor 연결 하나를 여러 폴링 주기에 걸쳐 유지

    연결이 끊긴 채로 요청이 실패하면 한 번만 다시 연결해서 재시도한다.
    """

    def __init__(self, config: RadiatorConfig) -> None:
        self.config = config
        self._connection: MonitorConnection | None = None

    async def connect(self) -> None:
        if self._connection is not None and not self._connection.closed:
            return
        self._connection = await MonitorConnection.open(
            self.config.target,
            self.config.mgmt_port,
            self.config.username,
            self.config.password,
            timeout=self.config.timeout,
        )

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> MonitorConnection:
        if self._connection is None or self._connection.closed:
            raise ConnectError("not connected to Radiator management port")
        return self._connection

    async def _call(self, operation: Callable[[MonitorConnection], Awaitable[T]]) -> T:
        connection = self._require_connection()
        try:
            return await operation(connection)
        except ConnectError as e:
            logger.warning("Radiator management connection lost (%s); reconnecting once", e)
        await self.close()
        await self.connect()
        return await operation(self._require_connection())

    async def fetch_global_statistics(self) -> dict[str, Number]:
        stats = await self._call(lambda connection: connection.query_stats("."))
        return stats or {}

    async def discover(self, kind: str) -> list[ObjectRef]:
        return await self._call(lambda connection: self._walk(connection, kind))

    async def _walk(self, connection: MonitorConnection, kind: str) -> list[ObjectRef]:
        objects: list[ObjectRef] = []
        seen: set[str] = set()
        # 인덱스 0 부터 NOSUCHOBJECT 가 나올 때까지
        for index in count():
            exists, identifier = await connection.describe(f"{kind}.{index}")
            if not exists:
                break
            if identifier is None:
                logger.warning(
                    "Radiator object %s.%d does not have an identifier; skipping", kind, index
                )
                continue
            if identifier in seen:
                logger.warning(
                    "Radiator object %s.%d repeats identifier %r; skipping", kind, index, identifier
                )
                continue
            seen.add(identifier)
            objects.append(ObjectRef(kind=kind, index=index, identifier=identifier))
        return objects

    async def is_current(self, obj: ObjectRef) -> bool:
        exists, identifier = await self._call(lambda connection: connection.describe(obj.address))
        return exists and identifier == obj.identifier

    async def fetch_object_statistics(self, obj: ObjectRef) -> dict[str, Number] | None:
        return await self._call(lambda connection: connection.query_stats(obj.address))

    async def health_check(self) -> bool:
        return self._connection is not None and not self._connection.closed
