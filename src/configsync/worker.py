"""
Sync worker
-----------
One thread, a disjoint set of apps. For every app the worker runs

    IDLE -> LONG_POLLING -> FETCHING -> COMMITTING -> LONG_POLLING

and parks the app in BACKOFF when a step fails. Long polls are the only
calls that can block for a long time, so they run in the background and the
worker waits for whichever happens first: a poll finishing, an app's
backoff running out, or a stop request. Fetches and commits run on the
worker thread and are never abandoned halfway.

A namespace's notification id is only advanced once its content is on disk
(or the service confirmed it did not change), so a crash at any point means
at worst one redundant fetch after restart.
"""
import threading
import time
from concurrent.futures import Future
from datetime import datetime
from enum import StrEnum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from structlog.typing import FilteringBoundLogger

from configsync.configuration import AppSpec, EngineConfig
from configsync.error_info import ErrorInfo
from configsync.exceptions import (
    ConfigSyncError,
    FetchError,
    ResolutionError,
    ServiceConnectionError,
    StoreError,
)
from configsync.logging.named import logger_for
from configsync.remote import ConfigServiceClient
from configsync.remote.configs import NamespaceFetcher
from configsync.remote.notifications import LongPollClient, PollResult
from configsync.resolver import HostResolver
from configsync.statistics import StatsDProxy, configure_statsd
from configsync.storage import LocalStore
from configsync.tracker import NotificationTracker
from configsync.types import ChangeSet, HostEndpoint, NoChange, Notification
from configsync.utils.backoff import Backoff
from configsync.utils.interruptible import run_in_background

T = TypeVar("T")


class SyncState(StrEnum):
    IDLE = "idle"
    LONG_POLLING = "long_polling"
    FETCHING = "fetching"
    COMMITTING = "committing"
    BACKOFF = "backoff"


class AppState:
    def __init__(self, app: AppSpec, backoff: Backoff, due: float) -> None:
        self.app = app
        self.backoff = backoff
        self.state = SyncState.IDLE
        self.due = due
        self.poll: Optional["Future[PollResult]"] = None
        self.last_error: Optional[ErrorInfo] = None
        self.last_success: Optional[datetime] = None

    @property
    def app_id(self) -> str:
        return self.app.app_id

    def __str__(self) -> str:
        return f"AppState({self.app_id}, {self.state.value})"


class SyncWorker:
    def __init__(
        self,
        apps: Iterable[AppSpec],
        config: EngineConfig,
        resolver: HostResolver,
        store: LocalStore,
        poller: Optional[LongPollClient] = None,
        fetcher: Optional[NamespaceFetcher] = None,
        tracker: Optional[NotificationTracker] = None,
        logger: Optional[FilteringBoundLogger] = None,
        stats: Optional[StatsDProxy] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "sync-worker",
    ) -> None:
        self.config = config
        self.resolver = resolver
        self.store = store
        self.name = name
        self.clock = clock
        self.logger = logger or logger_for(self)
        self.stats = stats or configure_statsd()

        if poller is None or fetcher is None:
            client = ConfigServiceClient(config)
            poller = poller or LongPollClient(client, config)
            fetcher = fetcher or NamespaceFetcher(client, config)
        self.poller = poller
        self.fetcher = fetcher
        self.tracker = tracker or NotificationTracker()

        now = self.clock()
        self.apps: Dict[str, AppState] = {
            app.app_id: AppState(app, Backoff.from_config(config.sync), now)
            for app in apps
        }

        self._stop = threading.Event()
        self._wakeup = threading.Event()

    # Lifecycle

    def run(self) -> None:
        self.logger.info("Worker starting", worker=self.name, apps=list(self.apps))
        for state in self.apps.values():
            self.recover(state.app)
        while not self._stop.is_set():
            self.step()
        self.logger.info("Worker stopped", worker=self.name)

    def stop(self) -> None:
        self._stop.set()
        self._wakeup.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def step(self) -> None:
        """
        One pass of the loop: start polls for apps that are due, process
        polls that have finished, then sleep until something happens.
        """
        self._wakeup.clear()
        for state in self.apps.values():
            if self._stop.is_set():
                return
            if state.poll is None and state.due <= self.clock():
                self._start_poll(state)
        for state in self.apps.values():
            if self._stop.is_set():
                return
            if state.poll is not None and state.poll.done():
                future, state.poll = state.poll, None
                self._complete_poll(state, future)
        self._wakeup.wait(self._next_wait())

    def run_once(self) -> None:
        """
        A single poll-fetch-commit cycle per app, on the calling thread.
        Failures are logged and leave the app in BACKOFF as usual.
        """
        for state in self.apps.values():
            if self._stop.is_set():
                return
            state.state = SyncState.LONG_POLLING
            future: "Future[PollResult]" = Future()
            try:
                future.set_result(self._poll_with_failover(state.app))
            except Exception as e:
                future.set_exception(e)
            self._complete_poll(state, future)

    def recover(self, app: AppSpec) -> None:
        for namespace in app.namespaces:
            existing = self.store.recover(app.app_id, namespace)
            if existing is not None:
                self.logger.debug(
                    "Serving existing file until resync",
                    app_id=app.app_id,
                    namespace=namespace,
                    bytes=len(existing),
                )

    # Scheduling

    def _next_wait(self) -> Optional[float]:
        waiting = [s.due for s in self.apps.values() if s.poll is None]
        if not waiting:
            # only finished polls or stop() can wake us
            return None
        return max(0.0, min(waiting) - self.clock())

    def _start_poll(self, state: AppState) -> None:
        state.state = SyncState.LONG_POLLING
        future = run_in_background(
            self._poll_with_failover, state.app, name=f"long-poll-{state.app_id}"
        )
        future.add_done_callback(lambda _: self._wakeup.set())
        state.poll = future

    def _poll_with_failover(self, app: AppSpec) -> PollResult:
        known_ids = self.tracker.known_ids(app.app_id, app.namespaces)
        _, result = self._with_failover(
            lambda endpoint: self.poller.poll(endpoint, app, known_ids)
        )
        return result

    def _with_failover(
        self, call: Callable[[HostEndpoint], T]
    ) -> Tuple[HostEndpoint, T]:
        """
        Tries every endpoint in order, moving on only when one cannot be
        reached. The cache is dropped once all of them failed so that the
        next attempt resolves again.
        """
        endpoints = self.resolver.endpoints()
        error: Optional[ServiceConnectionError] = None
        for endpoint in endpoints:
            try:
                return endpoint, call(endpoint)
            except ServiceConnectionError as e:
                error = e
                self.logger.warning(
                    "Config service endpoint unreachable",
                    endpoint=endpoint.url,
                    **ErrorInfo.from_exception(e).response,
                )
        self.resolver.invalidate()
        if error is None:
            raise ResolutionError("No config service endpoints to try")
        raise error

    # Sync cycle

    def _complete_poll(self, state: AppState, future: "Future[PollResult]") -> None:
        try:
            result = future.result()
        except ConfigSyncError as e:
            self.stats.increment("poll.error", tags=[f"app:{state.app_id}"])
            self._backoff(state, e)
            return
        except Exception as e:
            self.stats.increment("poll.error", tags=[f"app:{state.app_id}"])
            self.logger.error(
                "Unexpected error while polling",
                app_id=state.app_id,
                **ErrorInfo.with_traceback(e).response,
            )
            self._backoff(state, e)
            return

        if isinstance(result, ChangeSet):
            self._sync(state, result)
            return

        self.stats.increment("poll.timeout", tags=[f"app:{state.app_id}"])
        self.logger.debug("No changes", app_id=state.app_id)
        self._succeeded(state)

    def _sync(self, state: AppState, changes: ChangeSet) -> None:
        self.stats.increment(
            "poll.changed", value=len(changes), tags=[f"app:{state.app_id}"]
        )
        self.logger.info(
            "Namespaces changed", app_id=state.app_id, namespaces=changes.namespaces
        )
        failed: List[str] = []
        error: Optional[Exception] = None
        for notification in changes.notifications:
            if self._stop.is_set():
                # the rest is fetched again after restart
                return
            try:
                self._sync_namespace(state, notification)
            except (FetchError, StoreError) as e:
                failed.append(notification.namespace)
                error = e
            except (ServiceConnectionError, ResolutionError) as e:
                self._backoff(state, e)
                return
            except Exception as e:
                self.logger.error(
                    "Unexpected error while syncing",
                    app_id=state.app_id,
                    namespace=notification.namespace,
                    **ErrorInfo.with_traceback(e).response,
                )
                self._backoff(state, e)
                return

        if error is not None:
            self._backoff(state, error, namespaces=failed)
        else:
            self._succeeded(state)

    def _sync_namespace(self, state: AppState, notification: Notification) -> None:
        app = state.app
        namespace = notification.namespace
        current = self.tracker.current(app.app_id, namespace)
        release_key = None if current is None else current[1]

        state.state = SyncState.FETCHING
        try:
            _, result = self._with_failover(
                lambda endpoint: self.fetcher.fetch(endpoint, app, namespace, release_key)
            )
        except FetchError as e:
            self.stats.increment(
                "fetch.error", tags=[f"app:{app.app_id}", f"namespace:{namespace}"]
            )
            self.logger.warning(
                "Could not fetch namespace",
                app_id=app.app_id,
                namespace=namespace,
                **ErrorInfo.from_exception(e).response,
            )
            raise

        if result is NoChange.NOT_MODIFIED:
            self.stats.increment(
                "fetch.not_modified",
                tags=[f"app:{app.app_id}", f"namespace:{namespace}"],
            )
            self.tracker.advance(
                app.app_id, namespace, notification.notification_id, release_key
            )
            return

        self.stats.increment(
            "fetch.success", tags=[f"app:{app.app_id}", f"namespace:{namespace}"]
        )
        state.state = SyncState.COMMITTING
        try:
            self.store.commit(app.app_id, namespace, result)
        except StoreError as e:
            self.logger.error(
                "Could not commit namespace",
                app_id=app.app_id,
                namespace=namespace,
                **ErrorInfo.from_exception(e).response,
            )
            raise
        self.tracker.advance(
            app.app_id, namespace, notification.notification_id, result.release_key
        )

    def _succeeded(self, state: AppState) -> None:
        if state.backoff.failures:
            self.logger.info(
                "Recovered", app_id=state.app_id, failures=state.backoff.failures
            )
        state.backoff.reset()
        state.state = SyncState.IDLE
        state.due = self.clock()
        state.last_error = None
        state.last_success = datetime.now()

    def _backoff(
        self,
        state: AppState,
        error: Exception,
        namespaces: Optional[List[str]] = None,
    ) -> None:
        if isinstance(error, (ServiceConnectionError, ResolutionError)):
            self.resolver.invalidate()
        delay = state.backoff.next()
        state.state = SyncState.BACKOFF
        state.due = self.clock() + delay
        state.last_error = ErrorInfo.from_exception(error)
        self.stats.increment("backoff", tags=[f"app:{state.app_id}"])
        self.logger.warning(
            "Backing off",
            app_id=state.app_id,
            namespaces=namespaces,
            delay=delay,
            failures=state.backoff.failures,
            error=state.last_error.error,
            detail=state.last_error.detail_str,
        )

    # Status

    def snapshot(self) -> Dict[str, Any]:
        tracked = self.tracker.snapshot()
        ret: Dict[str, Any] = dict()
        for app_id, state in list(self.apps.items()):
            namespaces: Dict[str, Any] = dict()
            for namespace in state.app.namespaces:
                current = tracked.get((app_id, namespace))
                namespaces[namespace] = {
                    "notification_id": None if current is None else current.notification_id,
                    "release_key": None if current is None else current.release_key,
                    "path": str(self.store.path_for(app_id, namespace)),
                }
            error = state.last_error
            ret[app_id] = {
                "worker": self.name,
                "state": state.state.value,
                "failures": state.backoff.failures,
                "last_success": state.last_success.isoformat()
                if state.last_success
                else None,
                "last_error": None if error is None else error.response,
                "namespaces": namespaces,
            }
        return ret
