"""OpenMetrics 텍스트 포맷 렌더러"""

from collections.abc import Iterable

from radiator_exporter.models.metric import LabelSet, Number, ResolvedSample, format_number

MIME_TYPE = "application/openmetrics-text; version=1.0.0; charset=utf-8"
EOF_MARKER = "# EOF\n"


def escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def format_labels(labels: LabelSet) -> str:
    if not labels:
        return ""
    label_str = ",".join(f'{k}="{escape(v)}"' for k, v in sorted(labels))
    return f"{{{label_str}}}"


def _render_family(family: list[ResolvedSample]) -> list[str]:
    first = family[0]
    name = first.metric_name
    lines = [f"# TYPE {name} {first.kind.value}"]
    if first.unit:
        lines.append(f"# UNIT {name} {first.unit}")
    if first.help:
        lines.append(f"# HELP {name} {escape(first.help)}")

    # 같은 라벨셋이 두 번 나오면 나중 값이 남는다
    by_labels: dict[LabelSet, Number] = {}
    for sample in family:
        by_labels[tuple(sorted(sample.labels))] = sample.value

    sample_name = first.sample_name
    for labels in sorted(by_labels):
        lines.append(f"{sample_name}{format_labels(labels)} {format_number(by_labels[labels])}")
    return lines


def render(samples: Iterable[ResolvedSample]) -> str:
    """샘플 집합을 OpenMetrics 텍스트로 변환

    샘플이 없는 패밀리는 헤더도 출력하지 않는다.
    """
    families: dict[str, list[ResolvedSample]] = {}
    for sample in samples:
        families.setdefault(sample.metric_name, []).append(sample)

    lines: list[str] = []
    for name in sorted(families):
        lines.extend(_render_family(families[name]))
    return "".join(f"{line}\n" for line in lines) + EOF_MARKER
