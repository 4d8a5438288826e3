"""메트릭 카탈로그 모델

설정의 [[metrics]] / [[per_object_metrics]] 목록을 검증해서 불변 객체로 만든다.
검증에 실패하면 부분 카탈로그 없이 ConfigError 로 끝난다.
"""

import re
from dataclasses import dataclass
from typing import Any

from radiator_exporter.errors import ConfigError
from radiator_exporter.models.metric import LabelSet, MetricKind, make_label_set

METRIC_NAME_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
UNIT_RE = re.compile(r"[a-zA-Z0-9_:]+")
LABEL_NAME_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
KIND_RE = re.compile(r"[^\s.\x00]+")


@dataclass(frozen=True)
class SampleMapping:
    """통계 이름 하나를 고정 라벨셋에 연결"""

    statistic: str
    labels: LabelSet = ()

    @property
    def label_names(self) -> frozenset[str]:
        return frozenset(name for name, _ in self.labels)


@dataclass(frozen=True)
class MetricDefinition:
    """노출할 메트릭 패밀리 하나"""

    name: str
    kind: MetricKind
    samples: tuple[SampleMapping, ...]
    help: str | None = None
    unit: str | None = None

    @property
    def label_names(self) -> frozenset[str]:
        return self.samples[0].label_names if self.samples else frozenset()


@dataclass(frozen=True)
class PerObjectMetricGroup:
    """오브젝트 종류별 메트릭 템플릿

    탐색된 오브젝트마다 라벨셋에 {identifier_label: <identifier>} 가 추가된다.
    """

    kind: str
    identifier_label: str
    metrics: tuple[MetricDefinition, ...]
    tolerate_stale: bool = False


@dataclass(frozen=True)
class Catalog:
    metrics: tuple[MetricDefinition, ...] = ()
    per_object_metrics: tuple[PerObjectMetricGroup, ...] = ()

    @property
    def kinds(self) -> list[str]:
        return [group.kind for group in self.per_object_metrics]


def _require(table: dict[str, Any], key: str, path: str, expected: type) -> Any:
    if key not in table:
        raise ConfigError(f"{path}.{key} is required")
    return _optional(table, key, path, expected)


def _optional(table: dict[str, Any], key: str, path: str, expected: type) -> Any:
    value = table.get(key)
    if value is not None and not isinstance(value, expected):
        raise ConfigError(f"{path}.{key} must be of type {expected.__name__}")
    return value


def _as_table(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{path} must be a table")
    return value


def _as_list(value: Any, path: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{path} must be a list")
    return value


def _parse_sample(raw: Any, path: str) -> SampleMapping:
    table = _as_table(raw, path)
    statistic = _require(table, "statistic", path, str)
    if not statistic:
        raise ConfigError(f"{path}.statistic must not be empty")
    if ":" in statistic:
        raise ConfigError(f"{path}.statistic must not contain a colon")

    labels = _optional(table, "labels", path, dict) or {}
    for key, value in labels.items():
        if not LABEL_NAME_RE.fullmatch(key):
            raise ConfigError(
                f"{path}.labels[{key!r}] key must start with an ASCII letter or an underscore "
                "and consist only of ASCII letters, ASCII digits and underscores"
            )
        if not isinstance(value, str):
            raise ConfigError(f"{path}.labels[{key!r}] value must be a string")

    return SampleMapping(statistic=statistic, labels=make_label_set(labels))


def _parse_metric(raw: Any, path: str) -> MetricDefinition:
    table = _as_table(raw, path)

    name = _require(table, "metric", path, str)
    if not METRIC_NAME_RE.fullmatch(name):
        raise ConfigError(
            f"{path}.metric must start with an ASCII letter, an underscore or a colon "
            "and consist only of ASCII letters, ASCII digits, underscores and colons"
        )

    kind_name = _require(table, "kind", path, str)
    try:
        kind = MetricKind(kind_name)
    except ValueError:
        raise ConfigError(f"{path}.kind must be one of: counter, gauge") from None

    help_text = _optional(table, "help", path, str)
    if help_text is not None and not help_text:
        raise ConfigError(f"{path}.help must not be empty")

    unit = _optional(table, "unit", path, str)
    if unit is not None and not UNIT_RE.fullmatch(unit):
        raise ConfigError(
            f"{path}.unit must consist only of ASCII letters, ASCII digits, underscores and colons"
        )

    raw_samples = _as_list(table.get("samples"), f"{path}.samples")
    if not raw_samples:
        raise ConfigError(f"{path}.samples must not be empty")
    samples = tuple(
        _parse_sample(raw_sample, f"{path}.samples[{j}]")
        for j, raw_sample in enumerate(raw_samples)
    )

    # 같은 메트릭의 샘플은 라벨 이름 구성이 같아야 하고 라벨셋은 겹치면 안 된다
    label_names = samples[0].label_names
    seen: set[LabelSet] = set()
    for j, sample in enumerate(samples):
        if sample.label_names != label_names:
            raise ConfigError(
                f"{path}.samples[{j}].labels must use the same label names as "
                f"{path}.samples[0] ({', '.join(sorted(label_names)) or 'none'})"
            )
        if sample.labels in seen:
            raise ConfigError(f"{path}.samples[{j}].labels duplicates an earlier sample's labels")
        seen.add(sample.labels)

    return MetricDefinition(name=name, kind=kind, samples=samples, help=help_text, unit=unit)


def _parse_group(raw: Any, path: str) -> PerObjectMetricGroup:
    table = _as_table(raw, path)

    kind = _require(table, "kind", path, str)
    if not KIND_RE.fullmatch(kind):
        raise ConfigError(f"{path}.kind must be non-empty and contain no whitespace or dots")

    identifier_label = _require(table, "identifier_label", path, str)
    if not LABEL_NAME_RE.fullmatch(identifier_label):
        raise ConfigError(f"{path}.identifier_label must be a valid label name")

    tolerate_stale = _optional(table, "tolerate_stale", path, bool) or False

    raw_metrics = _as_list(table.get("metrics"), f"{path}.metrics")
    metrics = tuple(
        _parse_metric(raw_metric, f"{path}.metrics[{i}]")
        for i, raw_metric in enumerate(raw_metrics)
    )
    for i, metric in enumerate(metrics):
        if identifier_label in metric.label_names:
            raise ConfigError(
                f"{path}.identifier_label {identifier_label!r} collides with a label "
                f"of {path}.metrics[{i}]"
            )

    return PerObjectMetricGroup(
        kind=kind,
        identifier_label=identifier_label,
        metrics=metrics,
        tolerate_stale=tolerate_stale,
    )


def parse_catalog(metrics: Any, per_object_metrics: Any = None) -> Catalog:
    """설정 목록을 Catalog 로 변환 (실패 시 ConfigError)"""
    global_metrics = tuple(
        _parse_metric(raw, f"metrics[{i}]")
        for i, raw in enumerate(_as_list(metrics, "metrics"))
    )
    groups = tuple(
        _parse_group(raw, f"per_object_metrics[{i}]")
        for i, raw in enumerate(_as_list(per_object_metrics, "per_object_metrics"))
    )

    known_names: set[str] = set()
    all_metrics = [(f"metrics[{i}]", m) for i, m in enumerate(global_metrics)]
    for i, group in enumerate(groups):
        all_metrics.extend(
            (f"per_object_metrics[{i}].metrics[{j}]", m) for j, m in enumerate(group.metrics)
        )
    for path, metric in all_metrics:
        if metric.name in known_names:
            raise ConfigError(f"{path}.metric {metric.name!r} is not unique")
        known_names.add(metric.name)

    known_kinds: set[str] = set()
    for i, group in enumerate(groups):
        if group.kind in known_kinds:
            raise ConfigError(f"per_object_metrics[{i}].kind {group.kind!r} is not unique")
        known_kinds.add(group.kind)

    return Catalog(metrics=global_metrics, per_object_metrics=groups)
