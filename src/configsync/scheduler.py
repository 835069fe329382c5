import threading
from typing import Any, Dict, List, Optional, Sequence

from structlog.typing import FilteringBoundLogger

from configsync.configuration import AppSpec, EngineConfig
from configsync.logging.named import logger_for
from configsync.resolver import HostResolver
from configsync.statistics import StatsDProxy, configure_statsd
from configsync.storage import LocalStore
from configsync.worker import SyncWorker


def partition(apps: Sequence[AppSpec], workers: int) -> List[List[AppSpec]]:
    """
    Round-robin split into at most ``workers`` non-empty groups. An app's
    namespaces always stay together.
    """
    count = max(1, min(workers, len(apps)))
    ret: List[List[AppSpec]] = [[] for _ in range(count)]
    for i, app in enumerate(apps):
        ret[i % count].append(app)
    return [group for group in ret if group]


class WorkerPool:
    def __init__(
        self,
        config: EngineConfig,
        resolver: HostResolver,
        store: LocalStore,
        logger: Optional[FilteringBoundLogger] = None,
        stats: Optional[StatsDProxy] = None,
    ) -> None:
        self.config = config
        self.logger = logger or logger_for(self)
        self.stats = stats or configure_statsd()
        self.workers: List[SyncWorker] = [
            SyncWorker(
                group,
                config,
                resolver,
                store,
                stats=self.stats,
                name=f"sync-worker-{i}",
            )
            for i, group in enumerate(partition(config.apps, config.workers))
        ]
        self.threads: List[threading.Thread] = []

    def start(self) -> None:
        if self.threads:
            raise RuntimeError("Worker pool already started")
        for worker in self.workers:
            # not daemonised: exiting must wait for commits in flight
            thread = threading.Thread(target=worker.run, name=worker.name)
            thread.start()
            self.threads.append(thread)
        self.logger.info(
            "Worker pool started",
            workers=len(self.workers),
            apps=len(self.config.apps),
        )

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Asks every worker to stop and waits for them. Returns False if some
        worker was still busy when ``timeout`` ran out.
        """
        for worker in self.workers:
            worker.stop()
        for thread in self.threads:
            thread.join(timeout)
        alive = [t.name for t in self.threads if t.is_alive()]
        if alive:
            self.logger.warning("Workers still running after stop", workers=alive)
            return False
        self.logger.info("Worker pool stopped", workers=len(self.workers))
        return True

    def run_once(self) -> None:
        for worker in self.workers:
            worker.run_once()

    def is_alive(self) -> bool:
        return bool(self.threads) and all(t.is_alive() for t in self.threads)

    def snapshot(self) -> Dict[str, Any]:
        ret: Dict[str, Any] = dict()
        for worker in self.workers:
            ret.update(worker.snapshot())
        return ret
