"""폴링 주기 실행기

한 주기: DISCOVERING -> QUERYING -> TRANSLATING -> RENDERED -> IDLE
주기가 실패하면 이전 노출 텍스트를 그대로 둔다.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum

from radiator_exporter.errors import (
    AuthError,
    ConnectError,
    DiscoveryError,
    ProtocolError,
)
from radiator_exporter.models.catalog import Catalog, PerObjectMetricGroup
from radiator_exporter.models.metric import Number, ObjectRef, RawStatisticsSnapshot
from radiator_exporter.openmetrics import EOF_MARKER, MIME_TYPE, render
from radiator_exporter.providers.base import BaseProvider
from radiator_exporter.translate import translate

logger = logging.getLogger(__name__)


class PollState(Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    QUERYING = "querying"
    TRANSLATING = "translating"
    RENDERED = "rendered"


@dataclass(frozen=True)
class Exposition:
    text: str
    content_type: str = MIME_TYPE
    generated_at: float | None = None


class ExpositionStore:
    """현재 노출 텍스트 보관소

    publish() 는 불변 Exposition 참조 하나를 바꿔 끼우므로
    읽는 쪽은 항상 이전 것 또는 새 것 전체를 본다.
    """

    def __init__(self) -> None:
        self._current = Exposition(text=EOF_MARKER)

    def current(self) -> Exposition:
        return self._current

    def publish(self, text: str) -> Exposition:
        exposition = Exposition(text=text, generated_at=time.time())
        self._current = exposition
        return exposition


@dataclass
class KindStatus:
    ok: bool = True
    objects: int = 0
    stale: bool = False
    error: str | None = None


@dataclass
class PollStatus:
    cycles_total: int = 0
    failed_cycles_total: int = 0
    consecutive_failures: int = 0
    last_success: float | None = None
    last_error: str | None = None
    last_duration_seconds: float | None = None
    kinds: dict[str, KindStatus] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.consecutive_failures == 0

    def to_dict(self) -> dict:
        return asdict(self)


class Poller:
    """Radiator 통계를 주기적으로 가져와 ExpositionStore 에 게시"""

    def __init__(
        self,
        catalog: Catalog,
        provider: BaseProvider,
        store: ExpositionStore,
        poll_interval: float = 15.0,
        backoff_max: float = 300.0,
    ) -> None:
        self.catalog = catalog
        self.provider = provider
        self.store = store
        self.poll_interval = poll_interval
        self.backoff_max = backoff_max
        self.state = PollState.IDLE
        self.status = PollStatus()
        # 마지막으로 탐색에 성공한 오브젝트 (tolerate_stale 그룹에서만 재사용)
        self._known_objects: dict[str, list[ObjectRef]] = {}

    def next_delay(self) -> float:
        """다음 주기까지 대기 시간 (연속 실패 시 지수 백오프)"""
        failures = self.status.consecutive_failures
        if failures == 0:
            return self.poll_interval
        return min(self.poll_interval * 2 ** (failures - 1), self.backoff_max)

    async def _verify_known(self, objects: list[ObjectRef]) -> list[ObjectRef]:
        """이전 오브젝트 중 같은 인덱스에 같은 식별자로 남아 있는 것만"""
        current: list[ObjectRef] = []
        for obj in objects:
            if await self.provider.is_current(obj):
                current.append(obj)
            else:
                logger.warning(
                    "Radiator object %s is no longer %r; dropping it from known objects",
                    obj.address,
                    obj.identifier,
                )
        return current

    async def _discover_kind(
        self, group: PerObjectMetricGroup, kind_status: KindStatus
    ) -> list[ObjectRef] | None:
        """kind 하나 탐색. 실패하면 DiscoveryError 를 기록하고 대체 목록 또는 None"""
        try:
            objects = await self.provider.discover(group.kind)
        except ProtocolError as e:
            error = DiscoveryError(group.kind, e)
            kind_status.ok = False
            kind_status.error = str(error)
            previous = self._known_objects.get(group.kind)
            if not group.tolerate_stale or previous is None:
                logger.warning("%s; no %s samples this cycle", error, group.kind)
                return None
            try:
                objects = await self._verify_known(previous)
            except ProtocolError as verify_error:
                logger.warning(
                    "%s; cannot verify known objects (%s); no %s samples this cycle",
                    error,
                    verify_error,
                    group.kind,
                )
                return None
            logger.warning("%s; reusing %d of %d known objects", error, len(objects), len(previous))
            kind_status.stale = True

        self._known_objects[group.kind] = objects
        return objects

    async def _query_kind(
        self, group: PerObjectMetricGroup, objects: list[ObjectRef], kind_status: KindStatus
    ) -> dict[str, dict[str, Number]] | None:
        per_identifier: dict[str, dict[str, Number]] = {}
        try:
            for obj in objects:
                stats = await self.provider.fetch_object_statistics(obj)
                if stats is None:
                    logger.debug("Radiator object %s disappeared before its stats query", obj.address)
                    continue
                per_identifier[obj.identifier] = stats
        except ProtocolError as e:
            error = DiscoveryError(group.kind, e)
            kind_status.ok = False
            kind_status.error = str(error)
            logger.warning("%s; no %s samples this cycle", error, group.kind)
            return None
        kind_status.objects = len(per_identifier)
        return per_identifier

    async def _collect(self, kinds: dict[str, KindStatus]) -> RawStatisticsSnapshot:
        await self.provider.connect()

        self.state = PollState.DISCOVERING
        discovered: dict[str, list[ObjectRef]] = {}
        for group in self.catalog.per_object_metrics:
            objects = await self._discover_kind(group, kinds[group.kind])
            if objects is not None:
                discovered[group.kind] = objects

        self.state = PollState.QUERYING
        snapshot = RawStatisticsSnapshot()
        snapshot.global_stats = await self.provider.fetch_global_statistics()
        for group in self.catalog.per_object_metrics:
            if group.kind not in discovered:
                continue
            per_identifier = await self._query_kind(group, discovered[group.kind], kinds[group.kind])
            if per_identifier is not None:
                snapshot.per_object[group.kind] = per_identifier
        return snapshot

    async def poll_once(self) -> PollStatus:
        """주기 하나 실행. 실패해도 예외를 올리지 않고 상태에 기록

        status.kinds 는 주기가 끝날 때 한 번에 바뀐다.
        """
        started = time.monotonic()
        self.status.cycles_total += 1
        kinds = {kind: KindStatus() for kind in self.catalog.kinds}

        try:
            snapshot = await self._collect(kinds)
        except (ConnectError, AuthError, ProtocolError) as e:
            self.status.failed_cycles_total += 1
            self.status.consecutive_failures += 1
            self.status.last_error = f"{type(e).__name__}: {e}"
            # 버려진 주기에서는 어떤 kind 도 수집되지 않았다
            self.status.kinds = {
                kind: KindStatus(ok=False, error=self.status.last_error)
                for kind in self.catalog.kinds
            }
            logger.error(
                "Poll cycle %d abandoned, keeping previous exposition (%d consecutive failures): %s",
                self.status.cycles_total,
                self.status.consecutive_failures,
                self.status.last_error,
            )
            await self.provider.close()
            self.state = PollState.IDLE
            self.status.last_duration_seconds = time.monotonic() - started
            return self.status

        self.state = PollState.TRANSLATING
        samples = translate(self.catalog, snapshot.global_stats, snapshot.per_object)

        text = render(samples)
        exposition = self.store.publish(text)
        self.state = PollState.RENDERED

        self.status.kinds = kinds
        self.status.consecutive_failures = 0
        self.status.last_success = exposition.generated_at
        self.status.last_duration_seconds = time.monotonic() - started
        logger.debug(
            "Poll cycle %d rendered %d samples in %.3fs",
            self.status.cycles_total,
            len(samples),
            self.status.last_duration_seconds,
        )
        self.state = PollState.IDLE
        return self.status

    async def run(self) -> None:
        logger.info(
            "Polling Radiator every %.1fs (%d global metrics, %d per-object groups)",
            self.poll_interval,
            len(self.catalog.metrics),
            len(self.catalog.per_object_metrics),
        )
        try:
            while True:
                await self.poll_once()
                await asyncio.sleep(self.next_delay())
        finally:
            await self.provider.close()
