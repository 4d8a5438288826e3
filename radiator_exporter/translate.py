"""카탈로그 + 원시 통계 -> ResolvedSample 변환

없는 통계는 0 도 오류도 아니다. 그 샘플이 이번 주기에 나오지 않을 뿐이다.
값은 그대로 통과시킨다 (단위 변환, 카운터 리셋 보정 없음).
"""

from collections.abc import Mapping

from radiator_exporter.models.catalog import Catalog, MetricDefinition
from radiator_exporter.models.metric import LabelSet, Number, ResolvedSample


def _resolve_metric(
    metric: MetricDefinition,
    statistics: Mapping[str, Number],
    extra_label: tuple[str, str] | None = None,
) -> list[ResolvedSample]:
    samples = []
    for mapping in metric.samples:
        value = statistics.get(mapping.statistic)
        if value is None:
            continue
        labels: LabelSet = mapping.labels
        if extra_label is not None:
            labels = tuple(sorted(labels + (extra_label,)))
        samples.append(
            ResolvedSample(
                metric_name=metric.name,
                kind=metric.kind,
                value=value,
                labels=labels,
                unit=metric.unit,
                help=metric.help,
            )
        )
    return samples


def translate(
    catalog: Catalog,
    global_snapshot: Mapping[str, Number],
    per_object_snapshots: Mapping[str, Mapping[str, Mapping[str, Number]]],
) -> list[ResolvedSample]:
    """per_object_snapshots: kind -> identifier -> 통계"""
    samples: list[ResolvedSample] = []

    for metric in catalog.metrics:
        samples.extend(_resolve_metric(metric, global_snapshot))

    for group in catalog.per_object_metrics:
        objects = per_object_snapshots.get(group.kind, {})
        for identifier in sorted(objects):
            statistics = objects[identifier]
            for metric in group.metrics:
                samples.extend(
                    _resolve_metric(metric, statistics, (group.identifier_label, identifier))
                )

    return samples
