import pytest

from configsync.configuration import StatsdConfig
from configsync.statistics import StatsdNoop, configure_statsd


def test_disabled_statsd_is_a_noop():
    stats = configure_statsd(StatsdConfig(enabled=False))

    stats.increment("poll.changed", tags=["app:A1"])
    with stats.timed("commit_ms"):
        pass

    @stats.timed("commit_ms")
    def commit():
        return "done"

    assert commit() == "done"
    assert stats.increment is StatsdNoop


def test_statsd_is_configured_once():
    assert configure_statsd() is configure_statsd(StatsdConfig(enabled=True))


def test_enabled_statsd_uses_dogstatsd():
    datadog = pytest.importorskip("datadog")
    stats = configure_statsd(StatsdConfig(enabled=True, tags={"env": "test"}))
    assert isinstance(stats.statsd, datadog.DogStatsd)
    assert "env:test" in stats.statsd.constant_tags
