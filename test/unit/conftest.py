from unittest.mock import MagicMock

import pytest
import structlog

from configsync.configuration import AppSpec, EngineConfig, SyncConfiguration
from configsync.logging.named import reset_named_loggers
from configsync.statistics import reset_statsd
from configsync.storage import LocalStore
from configsync.types import HostEndpoint


@pytest.fixture(autouse=True)
def statsd():
    reset_statsd()
    yield
    reset_statsd()


@pytest.fixture(autouse=True)
def structlog_defaults():
    yield
    structlog.reset_defaults()
    reset_named_loggers()


@pytest.fixture(scope="session")
def mock_logger():
    return MagicMock()


@pytest.fixture
def sync_config():
    return SyncConfiguration(
        long_poll_timeout=1.0,
        connect_timeout=0.5,
        fetch_timeout=0.5,
        backoff_min=1.0,
        backoff_max=30.0,
        backoff_multiplier=2.0,
    )


@pytest.fixture
def engine_config(tmp_path, sync_config):
    return EngineConfig(
        dir=tmp_path / "configs",
        config_service_url="http://apollo.test:8080",
        workers=2,
        sync=sync_config,
        apps=[AppSpec(app_id="A1", namespaces=["app.properties"])],
    )


@pytest.fixture
def endpoints():
    return [
        HostEndpoint(url="http://apollo-1.test:8080"),
        HostEndpoint(url="http://apollo-2.test:8080"),
    ]


@pytest.fixture
def resolver(endpoints):
    ret = MagicMock()
    ret.endpoints.return_value = endpoints
    return ret


@pytest.fixture
def store(engine_config, mock_logger):
    return LocalStore(engine_config.dir, logger=mock_logger)
