"""
Entry points for embedding the sync engine in another process.

    engine = start(config)
    ...
    stop(engine)
"""
from typing import Any, Dict, Optional

from structlog.typing import FilteringBoundLogger

from configsync.configuration import CustomResolver, EngineConfig
from configsync.logging.named import logger_for
from configsync.resolver import HostResolver
from configsync.scheduler import WorkerPool
from configsync.statistics import configure_statsd
from configsync.storage import LocalStore
from configsync.storage.filesystem import FilesystemStorage
from configsync.storage.types import Storage


class Engine:
    def __init__(
        self,
        config: EngineConfig,
        custom_resolver: Optional[CustomResolver] = None,
        storage: Optional[Storage] = None,
        logger: Optional[FilteringBoundLogger] = None,
    ) -> None:
        self.config = config
        self.logger = logger or logger_for(self)
        stats = configure_statsd(config.statsd)
        self.resolver = HostResolver(config, custom_resolver=custom_resolver, stats=stats)
        self.store = LocalStore(
            config.dir,
            storage=storage or FilesystemStorage(file_mode=config.storage.file_mode),
            stats=stats,
        )
        self.pool = WorkerPool(config, self.resolver, self.store, stats=stats)
        self.running = False

    def start(self) -> "Engine":
        self.config.dir.mkdir(parents=True, exist_ok=True)
        self.pool.start()
        self.running = True
        self.logger.info(
            "Engine started",
            dir=str(self.config.dir),
            apps=[app.app_id for app in self.config.apps],
            workers=len(self.pool.workers),
        )
        return self

    def stop(self, timeout: Optional[float] = None) -> bool:
        if not self.running:
            return True
        self.logger.info("Engine stopping")
        drained = self.pool.stop(timeout)
        self.running = False
        return drained

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "healthy": self.running and self.pool.is_alive(),
            "apps": self.pool.snapshot(),
        }


def start(
    config: EngineConfig,
    custom_resolver: Optional[CustomResolver] = None,
    storage: Optional[Storage] = None,
) -> Engine:
    return Engine(config, custom_resolver=custom_resolver, storage=storage).start()


def stop(engine: Engine, timeout: Optional[float] = None) -> bool:
    return engine.stop(timeout)
