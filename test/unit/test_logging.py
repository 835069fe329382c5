import json
import logging

import structlog
from structlog.testing import CapturingLoggerFactory

from configsync.configuration import (
    ApplicationLogConfiguration,
    EngineConfig,
    LoggingConfiguration,
)
from configsync.logging.bootstrapper import LoggerBootstrapper
from configsync.logging.named import get_named_logger
from configsync.types import HostEndpoint, NoChange
from configsync.worker import SyncWorker


def make_config(tmp_path, **kwargs):
    return EngineConfig(
        dir=tmp_path,
        config_service_url="http://apollo",
        apps=[{"app_id": "A1"}],
        **kwargs,
    )


def test_debug_logs_are_dropped_by_default(tmp_path):
    logs = LoggerBootstrapper(config=make_config(tmp_path))

    cf = CapturingLoggerFactory()
    structlog.configure(logger_factory=cf, processors=[logs.debug_logs_processor])

    logs.logger.info("test log info")
    logs.logger.debug("test log debug")

    assert len(cf.logger.calls) == 1


def test_debug_logs_are_not_dropped_when_true(tmp_path):
    logs = LoggerBootstrapper(config=make_config(tmp_path, debug=True))

    cf = CapturingLoggerFactory()
    structlog.configure(logger_factory=cf, processors=[logs.debug_logs_processor])

    logs.logger.info("test log info")
    logs.logger.debug("test log debug")

    assert len(cf.logger.calls) == 2


def test_application_logs_are_dropped_when_not_enabled(tmp_path):
    logging_config = LoggingConfiguration(
        application_logs=ApplicationLogConfiguration(enabled=False)
    )
    logs = LoggerBootstrapper(config=make_config(tmp_path, logging=logging_config))

    cf = CapturingLoggerFactory()
    structlog.configure(logger_factory=cf)

    logs.application_logger.logger.info("test log info")
    logs.application_logger.logger.error("test log error")

    assert len(cf.logger.calls) == 0


def test_application_logs_use_the_default_format(tmp_path):
    logs = LoggerBootstrapper(config=make_config(tmp_path))

    cf = CapturingLoggerFactory()
    structlog.configure(logger_factory=cf)

    logs.application_logger.logger.info(
        event="Committed namespace", app_id="A1", namespace="app.properties", bytes=12
    )

    assert len(cf.logger.calls) == 1
    parsed = json.loads(cf.logger.calls[0].args[0])
    assert parsed["type"] == "application"
    assert parsed["app_id"] == "A1"
    assert parsed["namespace"] == "app.properties"
    assert "bytes" not in parsed


def test_application_logs_can_use_custom_formatter(tmp_path):
    custom_formatter = json.dumps({"app": "{app_id}", "why": "{error}"})
    logging_config = LoggingConfiguration(
        application_logs=ApplicationLogConfiguration(log_fmt=custom_formatter)
    )
    logs = LoggerBootstrapper(config=make_config(tmp_path, logging=logging_config))

    cf = CapturingLoggerFactory()
    structlog.configure(logger_factory=cf)

    logs.application_logger.logger.warning(
        event="Backing off", app_id="A1", error="FetchError", delay=2
    )

    parsed = json.loads(cf.logger.calls[0].args[0])
    assert parsed["event"] == "Backing off"
    assert parsed["app"] == "A1"
    assert parsed["why"] == "FetchError"
    assert "delay" not in parsed


def test_named_loggers_filter_by_level_and_serialise_models(tmp_path, capsys):
    LoggerBootstrapper(config=make_config(tmp_path))
    logger = get_named_logger("configsync.test", level=logging.WARNING)

    logger.info("quiet")
    logger.warning("loud", endpoint=HostEndpoint(url="http://apollo"))

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 1
    parsed = json.loads(lines[0])
    assert parsed["event"] == "loud"
    assert parsed["logger_name"] == "configsync.test"
    assert parsed["level"] == "warning"
    assert parsed["endpoint"] == {"url": "http://apollo", "strategy": "HostName"}


def idle_worker(config, mocker):
    poller = mocker.Mock()
    poller.poll.return_value = NoChange.TIMEOUT
    resolver = mocker.Mock()
    resolver.endpoints.return_value = [HostEndpoint(url="http://apollo")]
    return SyncWorker(
        config.apps,
        config,
        resolver,
        mocker.Mock(),
        poller=poller,
        fetcher=mocker.Mock(),
    )


def test_component_debug_logs_follow_the_debug_flag(tmp_path, capsys, mocker):
    config = make_config(tmp_path, debug=True)
    LoggerBootstrapper(config)

    idle_worker(config, mocker).run_once()

    events = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    [no_changes] = [e for e in events if e["event"] == "No changes"]
    assert no_changes["level"] == "debug"
    assert no_changes["app_id"] == "A1"
    assert no_changes["logger_name"] == "configsync.worker.SyncWorker"


def test_component_debug_logs_are_dropped_by_default(tmp_path, capsys, mocker):
    config = make_config(tmp_path)
    LoggerBootstrapper(config)

    idle_worker(config, mocker).run_once()

    assert "No changes" not in capsys.readouterr().out


def test_component_logs_respect_application_log_settings(tmp_path, capsys, mocker):
    logging_config = LoggingConfiguration(
        application_logs=ApplicationLogConfiguration(enabled=False)
    )
    config = make_config(tmp_path, debug=True, logging=logging_config)
    LoggerBootstrapper(config)

    worker = idle_worker(config, mocker)
    worker.run_once()
    worker.logger.warning("Backing off", app_id="A1")

    assert capsys.readouterr().out == ""


def test_component_logs_use_the_custom_format(tmp_path, capsys):
    logging_config = LoggingConfiguration(
        application_logs=ApplicationLogConfiguration(
            log_fmt=json.dumps({"app": "{app_id}", "source": "{logger_name}"})
        )
    )
    LoggerBootstrapper(make_config(tmp_path, logging=logging_config))

    get_named_logger("configsync.test").info("Committed namespace", app_id="A1", bytes=3)

    parsed = json.loads(capsys.readouterr().out)
    assert parsed["event"] == "Committed namespace"
    assert parsed["app"] == "A1"
    assert parsed["source"] == "configsync.test"
    assert "bytes" not in parsed
