"""
Tests for metric catalog parsing and validation.
"""

import pytest

from radiator_exporter.errors import ConfigError
from radiator_exporter.models.catalog import parse_catalog
from radiator_exporter.models.metric import MetricKind


def _metric(name="radiator_requests", kind="counter", samples=None, **extra):
    if samples is None:
        samples = [
            {"labels": {"request_type": "access"}, "statistic": "Access requests"},
            {"labels": {"request_type": "accounting"}, "statistic": "Accounting requests"},
        ]
    return {"metric": name, "kind": kind, "samples": samples, **extra}


def _group(kind="Handler", identifier_label="handler", metrics=None, **extra):
    if metrics is None:
        metrics = [_metric("radiator_handler_requests")]
    return {"kind": kind, "identifier_label": identifier_label, "metrics": metrics, **extra}


class TestParseCatalog:
    """Test well-formed catalogs."""

    def test_global_metric(self):
        catalog = parse_catalog([_metric(help="Requests", unit="requests")])

        assert len(catalog.metrics) == 1
        metric = catalog.metrics[0]
        assert metric.name == "radiator_requests"
        assert metric.kind is MetricKind.COUNTER
        assert metric.help == "Requests"
        assert metric.unit == "requests"
        assert [s.statistic for s in metric.samples] == ["Access requests", "Accounting requests"]
        assert metric.samples[0].labels == (("request_type", "access"),)

    def test_labels_are_sorted_by_name(self):
        catalog = parse_catalog(
            [_metric(samples=[{"labels": {"z": "1", "a": "2"}, "statistic": "X"}])]
        )

        assert catalog.metrics[0].samples[0].labels == (("a", "2"), ("z", "1"))

    def test_unlabeled_sample(self):
        catalog = parse_catalog([_metric(kind="gauge", samples=[{"statistic": "Average response time"}])])

        assert catalog.metrics[0].samples[0].labels == ()
        assert catalog.metrics[0].kind is MetricKind.GAUGE

    def test_per_object_group(self):
        catalog = parse_catalog([], [_group(tolerate_stale=True)])

        group = catalog.per_object_metrics[0]
        assert group.kind == "Handler"
        assert group.identifier_label == "handler"
        assert group.tolerate_stale is True
        assert group.metrics[0].name == "radiator_handler_requests"
        assert catalog.kinds == ["Handler"]

    def test_missing_sections_give_empty_catalog(self):
        catalog = parse_catalog(None, None)

        assert catalog.metrics == ()
        assert catalog.per_object_metrics == ()

    def test_colon_is_allowed_in_metric_name(self):
        catalog = parse_catalog([_metric(name="radiator:requests")])

        assert catalog.metrics[0].name == "radiator:requests"


class TestCatalogValidation:
    """Test that malformed catalogs are rejected as a whole."""

    @pytest.mark.parametrize(
        "name", ["", "1requests", "radiator-requests", "radiator requests", "radiator_requests\n"]
    )
    def test_invalid_metric_name(self, name):
        with pytest.raises(ConfigError, match=r"metrics\[0\]\.metric"):
            parse_catalog([_metric(name=name)])

    def test_unknown_kind(self):
        with pytest.raises(ConfigError, match="counter, gauge"):
            parse_catalog([_metric(kind="histogram")])

    def test_missing_statistic(self):
        with pytest.raises(ConfigError, match=r"samples\[0\]\.statistic is required"):
            parse_catalog([_metric(samples=[{"labels": {}}])])

    def test_statistic_with_colon(self):
        with pytest.raises(ConfigError, match="colon"):
            parse_catalog([_metric(samples=[{"statistic": "Access:requests"}])])

    def test_empty_samples(self):
        with pytest.raises(ConfigError, match="must not be empty"):
            parse_catalog([_metric(samples=[])])

    def test_invalid_label_name(self):
        samples = [{"labels": {"request type": "access"}, "statistic": "Access requests"}]
        with pytest.raises(ConfigError, match=r"labels\['request type'\]"):
            parse_catalog([_metric(samples=samples)])

    def test_label_name_with_trailing_newline(self):
        samples = [{"labels": {"request_type\n": "access"}, "statistic": "Access requests"}]
        with pytest.raises(ConfigError, match=r"labels\['request_type\\n'\]"):
            parse_catalog([_metric(samples=samples)])

    def test_non_string_label_value(self):
        samples = [{"labels": {"request_type": 1}, "statistic": "Access requests"}]
        with pytest.raises(ConfigError, match="must be a string"):
            parse_catalog([_metric(samples=samples)])

    def test_duplicate_label_set(self):
        samples = [
            {"labels": {"request_type": "access"}, "statistic": "Access requests"},
            {"labels": {"request_type": "access"}, "statistic": "Accounting requests"},
        ]
        with pytest.raises(ConfigError, match="duplicates"):
            parse_catalog([_metric(samples=samples)])

    def test_duplicate_unlabeled_samples(self):
        samples = [{"statistic": "Access requests"}, {"statistic": "Accounting requests"}]
        with pytest.raises(ConfigError, match="duplicates"):
            parse_catalog([_metric(samples=samples)])

    def test_inconsistent_label_names(self):
        samples = [
            {"labels": {"request_type": "access"}, "statistic": "Access requests"},
            {"labels": {"type": "accounting"}, "statistic": "Accounting requests"},
        ]
        with pytest.raises(ConfigError, match="same label names"):
            parse_catalog([_metric(samples=samples)])

    def test_mixed_labeled_and_unlabeled(self):
        samples = [
            {"labels": {"request_type": "access"}, "statistic": "Access requests"},
            {"statistic": "Accounting requests"},
        ]
        with pytest.raises(ConfigError, match="same label names"):
            parse_catalog([_metric(samples=samples)])

    @pytest.mark.parametrize("unit", ["per second", "seconds\n"])
    def test_invalid_unit(self, unit):
        with pytest.raises(ConfigError, match="unit"):
            parse_catalog([_metric(unit=unit)])

    def test_empty_help(self):
        with pytest.raises(ConfigError, match="help"):
            parse_catalog([_metric(help="")])

    def test_duplicate_metric_name_across_groups(self):
        with pytest.raises(ConfigError, match="not unique"):
            parse_catalog([_metric()], [_group(metrics=[_metric()])])

    def test_identifier_label_collision(self):
        samples = [{"labels": {"handler": "x"}, "statistic": "Access requests"}]
        group = _group(metrics=[_metric("radiator_handler_requests", samples=samples)])
        with pytest.raises(ConfigError, match="collides"):
            parse_catalog([], [group])

    @pytest.mark.parametrize("identifier_label", ["", "1handler", "handler-id", "handler\n"])
    def test_invalid_identifier_label(self, identifier_label):
        with pytest.raises(ConfigError, match="identifier_label"):
            parse_catalog([], [_group(identifier_label=identifier_label)])

    def test_missing_identifier_label(self):
        group = _group()
        del group["identifier_label"]
        with pytest.raises(ConfigError, match="identifier_label is required"):
            parse_catalog([], [group])

    @pytest.mark.parametrize("kind", ["", "Auth By", "Handler.0", "Handler\n"])
    def test_invalid_kind(self, kind):
        with pytest.raises(ConfigError, match=r"per_object_metrics\[0\]\.kind"):
            parse_catalog([], [_group(kind=kind)])

    def test_duplicate_kind(self):
        first = _group(metrics=[_metric("radiator_handler_a")])
        second = _group(metrics=[_metric("radiator_handler_b")])
        with pytest.raises(ConfigError, match="kind 'Handler' is not unique"):
            parse_catalog([], [first, second])

    def test_metrics_must_be_a_list(self):
        with pytest.raises(ConfigError, match="metrics must be a list"):
            parse_catalog({"metric": "radiator_requests"})
