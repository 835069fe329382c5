import argparse
import signal
import threading
from types import FrameType
from typing import List, Optional

from configsync import __version__
from configsync.configuration import EngineConfig, load_config
from configsync.engine import Engine
from configsync.error_info import ErrorInfo
from configsync.logging.bootstrapper import LoggerBootstrapper
from configsync.statistics import configure_statsd
from configsync.status import StatusServer

try:
    import sentry_sdk

    SENTRY_INSTALLED = True
except ImportError:  # pragma: no cover
    SENTRY_INSTALLED = False


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="configsync",
        description="Keeps local files in sync with an Apollo config service",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="where to load configuration from, eg. file:///etc/configsync.yaml "
        "(default: $CONFIGSYNC_CONFIG)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="sync every app once and exit",
    )
    parser.add_argument(
        "--stop-timeout",
        type=float,
        default=30.0,
        help="seconds to wait for in-flight commits on shutdown",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser.parse_args(argv)


def init_sentry(config: EngineConfig) -> None:
    dsn = config.sentry_dsn.get_secret_value()
    if SENTRY_INSTALLED and dsn:
        sentry_sdk.init(dsn)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)

    bootstrapper = LoggerBootstrapper(config)
    log = bootstrapper.application_logger.logger
    configure_statsd(config.statsd)
    init_sentry(config)

    engine = Engine(config)
    if args.once:
        config.dir.mkdir(parents=True, exist_ok=True)
        engine.pool.run_once()
        failed = [
            app_id
            for app_id, status in engine.pool.snapshot().items()
            if status["last_error"] is not None
        ]
        if failed:
            log.error("Sync failed", apps=failed)
            return 1
        log.info("Sync complete", apps=len(config.apps))
        return 0

    shutdown = threading.Event()

    # noinspection PyUnusedLocal
    def request_shutdown(signum: int, frame: Optional[FrameType]) -> None:
        log.info("Shutdown requested", signal=signal.Signals(signum).name)
        shutdown.set()

    signal.signal(signal.SIGINT, request_shutdown)
    signal.signal(signal.SIGTERM, request_shutdown)

    status_server: Optional[StatusServer] = None
    try:
        engine.start()
        if config.status.enabled:
            status_server = StatusServer(engine, config.status, debug=config.debug)
            status_server.start()
        log.info("Started", version=__version__, apps=len(config.apps))
        while not shutdown.wait(1.0):
            if not engine.pool.is_alive():
                log.error("A sync worker exited unexpectedly")
                break
    except Exception as e:
        log.error("Failed to start", **ErrorInfo.with_traceback(e).response)
        raise
    finally:
        if status_server is not None:
            status_server.stop()
        drained = engine.stop(args.stop_timeout)
        log.info("Stopped", drained=drained)
    return 0 if shutdown.is_set() else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
