"""메트릭 값/샘플 모델"""

import math
from dataclasses import dataclass, field
from enum import Enum

Number = int | float

# (label name, label value) 쌍, 라벨 이름순 정렬
LabelSet = tuple[tuple[str, str], ...]


class MetricKind(Enum):
    """노출 가능한 메트릭 종류"""

    COUNTER = "counter"
    GAUGE = "gauge"

    @property
    def sample_suffix(self) -> str:
        return "_total" if self is MetricKind.COUNTER else ""


def parse_number(raw: str) -> Number:
    """Radiator 통계값 파싱: 정수 우선, 실패하면 실수

    int()/float() 가 허용하는 공백과 밑줄 구분자는 받지 않는다.
    """
    if "_" in raw or raw != raw.strip():
        raise ValueError(f"invalid number {raw!r}")
    try:
        return int(raw)
    except ValueError:
        return float(raw)


def format_number(value: Number) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return repr(value)


def make_label_set(labels: dict[str, str]) -> LabelSet:
    return tuple(sorted(labels.items()))


@dataclass(frozen=True)
class ResolvedSample:
    """한 폴링 주기에서 확정된 샘플 하나"""

    metric_name: str
    kind: MetricKind
    value: Number
    labels: LabelSet = ()
    unit: str | None = None
    help: str | None = None

    @property
    def sample_name(self) -> str:
        return f"{self.metric_name}{self.kind.sample_suffix}"


@dataclass(frozen=True)
class ObjectRef:
    """Radiator 에서 탐색된 오브젝트 (Handler, Client, AuthBy ...)"""

    kind: str
    index: int
    identifier: str

    @property
    def address(self) -> str:
        return f"{self.kind}.{self.index}"


@dataclass
class RawStatisticsSnapshot:
    """한 주기에서 가져온 통계 전체 (매 주기 통째로 새로 만든다)"""

    global_stats: dict[str, Number] = field(default_factory=dict)
    # kind -> identifier -> statistic -> value
    per_object: dict[str, dict[str, dict[str, Number]]] = field(default_factory=dict)
