import pytest
from unittest.mock import Mock

from customerio_client import CustomerIOClient, Page
from proxy_app import create_app
from proxy_config import ProxyConfig

API_KEY = "inbound-secret"


@pytest.fixture
def config():
    return ProxyConfig(
        customer_io_api_key="cio-token",
        api_key=API_KEY,
        aggregate_page_delay=1.0,
        cursor_walk_delay=0.5
    )


@pytest.fixture
def upstream():
    """Customer.io client double; set fetch_page.side_effect per test."""
    return Mock(spec=CustomerIOClient)


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def app(config, upstream, sleep):
    app = create_app(config, client=upstream, sleep=sleep)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def http(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"X-API-KEY": API_KEY}


@pytest.fixture
def two_pages():
    """Segment 42: [A, B] -> tok1 -> [C]."""
    return [
        Page(identifiers=[{"id": "A"}, {"id": "B"}], next="tok1"),
        Page(identifiers=[{"id": "C"}], next=None),
    ]
