"""Root test configuration."""

import importlib.util
import logging
from pathlib import Path

import pytest
import pytest_asyncio

from radiator_exporter.config import RadiatorConfig
from radiator_exporter.models.catalog import parse_catalog

MOCK_PATH = Path(__file__).resolve().parent.parent / "mock" / "radiator-monitor" / "main.py"


def _load_mock_module():
    spec = importlib.util.spec_from_file_location("radiator_monitor_mock", MOCK_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


mock_monitor = _load_mock_module()


def pytest_configure(config):
    """Keep exporter debug output out of test runs."""
    logging.basicConfig(level=logging.WARNING, force=True)


REQUESTS_METRIC = {
    "metric": "radiator_requests",
    "kind": "counter",
    "help": "RADIUS requests received by Radiator",
    "samples": [
        {"labels": {"request_type": "access"}, "statistic": "Access requests"},
        {"labels": {"request_type": "accounting"}, "statistic": "Accounting requests"},
    ],
}

RESPONSE_TIME_METRIC = {
    "metric": "radiator_response_time_seconds",
    "kind": "gauge",
    "unit": "seconds",
    "samples": [{"statistic": "Average response time"}],
}

HANDLER_GROUP = {
    "kind": "Handler",
    "identifier_label": "handler",
    "metrics": [
        {
            "metric": "radiator_handler_requests",
            "kind": "counter",
            "samples": [
                {"labels": {"request_type": "access"}, "statistic": "Access requests"},
                {"labels": {"request_type": "accounting"}, "statistic": "Accounting requests"},
            ],
        }
    ],
}

CLIENT_GROUP = {
    "kind": "Client",
    "identifier_label": "client",
    "tolerate_stale": True,
    "metrics": [
        {
            "metric": "radiator_client_requests",
            "kind": "counter",
            "samples": [{"statistic": "Access requests"}],
        }
    ],
}


@pytest.fixture
def catalog():
    """Reference catalog: two global metrics, Handler and Client groups."""
    return parse_catalog(
        [REQUESTS_METRIC, RESPONSE_TIME_METRIC],
        [HANDLER_GROUP, CLIENT_GROUP],
    )


@pytest.fixture
def mock_module():
    return mock_monitor


@pytest_asyncio.fixture
async def mock_radiator():
    """Mock Monitor server on a random local port with fixed statistics."""
    radiator = mock_monitor.MockRadiator(
        objects={"Handler": ["default", "wlan"], "Client": ["ap-01"]},
        global_stats={
            "Access requests": 42,
            "Accounting requests": 7,
            "Average response time": 0.0125,
        },
        object_stats={
            "default": {"Access requests": 30, "Accounting requests": 5},
            "wlan": {"Access requests": 12},
            "ap-01": {"Access requests": 3},
        },
    )
    port = await radiator.start()
    radiator.port = port
    yield radiator
    await radiator.close()


@pytest.fixture
def radiator_config(mock_radiator):
    return RadiatorConfig(
        target="127.0.0.1",
        mgmt_port=mock_radiator.port,
        username="mgmt",
        password="mgmt",
        poll_interval=1.0,
        timeout=2.0,
        backoff_max=10.0,
    )
