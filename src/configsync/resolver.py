"""
Host resolution
---------------
Turns the configured host strategy into an ordered list of config service
base addresses. The order is the failover order.

    HostName  - the configured name (or config_service_url), as is
    HostCidr  - hosts of a network, optionally only those accepting TCP now
    Custom    - whatever a user supplied callable/loadable returns
"""
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from itertools import islice
from typing import Any, Callable, Iterable, List, Optional

from structlog.typing import FilteringBoundLogger

from configsync.configuration import (
    Custom,
    CustomResolver,
    EngineConfig,
    HostCidr,
    HostName,
    HostStrategy,
)
from configsync.exceptions import ResolutionError
from configsync.logging.named import logger_for
from configsync.statistics import StatsDProxy, configure_statsd
from configsync.types import HostEndpoint

Probe = Callable[[str, int, float], bool]

MAX_PROBE_CONCURRENCY = 32


def tcp_probe(host: str, port: int, timeout: float) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def _with_scheme(url: str) -> str:
    if "://" in url:
        return url.rstrip("/")
    return f"http://{url}".rstrip("/")


class HostResolver:
    def __init__(
        self,
        config: EngineConfig,
        custom_resolver: Optional[CustomResolver] = None,
        probe: Probe = tcp_probe,
        logger: Optional[FilteringBoundLogger] = None,
        stats: Optional[StatsDProxy] = None,
    ) -> None:
        self.config = config
        self.custom_resolver = custom_resolver
        self.probe = probe
        self.logger = logger or logger_for(self)
        self.stats = stats or configure_statsd()

        # shared by every worker
        self._lock = threading.Lock()
        self._endpoints: Optional[List[HostEndpoint]] = None

    def endpoints(self) -> List[HostEndpoint]:
        """
        Cached endpoints, resolving them first if needed.
        Raises ResolutionError when nothing usable comes out.
        """
        with self._lock:
            if self._endpoints is None:
                self._endpoints = self.resolve()
                self.stats.increment("resolver.refresh")
                self.logger.info(
                    "Resolved config service endpoints",
                    endpoints=[e.url for e in self._endpoints],
                )
            return list(self._endpoints)

    def invalidate(self) -> None:
        with self._lock:
            self._endpoints = None

    def resolve(self, strategy: Optional[HostStrategy] = None) -> List[HostEndpoint]:
        if strategy is None:
            strategy = self.config.host
        match strategy:
            case HostName():
                ret = self._resolve_host_name(strategy)
            case HostCidr():
                ret = self._resolve_cidr(strategy)
            case Custom():
                ret = self._resolve_custom(strategy)
            case _:
                raise ResolutionError(f"Unknown host strategy {strategy!r}")
        if not ret:
            raise ResolutionError(f"Host strategy {strategy.type} yielded no endpoints")
        return ret

    def _resolve_host_name(self, strategy: HostName) -> List[HostEndpoint]:
        name = strategy.name or self.config.config_service_url
        if not name:
            raise ResolutionError("HostName strategy has no name to use")
        return [HostEndpoint(url=_with_scheme(name), strategy=strategy.type)]

    def _resolve_cidr(self, strategy: HostCidr) -> List[HostEndpoint]:
        network = strategy.cidr
        if network.num_addresses == 1:
            hosts: Iterable[Any] = [network.network_address]
        else:
            hosts = network.hosts()
        candidates = [str(ip) for ip in islice(hosts, strategy.max_candidates)]

        if strategy.probe and candidates:
            workers = min(MAX_PROBE_CONCURRENCY, len(candidates))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                reachable = list(
                    pool.map(
                        lambda ip: self.probe(ip, strategy.port, strategy.probe_timeout),
                        candidates,
                    )
                )
            candidates = [ip for ip, ok in zip(candidates, reachable) if ok]

        if not candidates:
            raise ResolutionError(
                f"No reachable candidates in {network} on port {strategy.port}"
            )

        ret = []
        for ip in candidates:
            host = f"[{ip}]" if network.version == 6 else ip
            ret.append(
                HostEndpoint(
                    url=f"{strategy.scheme}://{host}:{strategy.port}",
                    strategy=strategy.type,
                )
            )
        return ret

    def _resolve_custom(self, strategy: Custom) -> List[HostEndpoint]:
        capability: Any = self.custom_resolver
        if capability is None and strategy.loadable is not None:
            try:
                capability = strategy.loadable.load()
            except Exception as e:
                raise ResolutionError(
                    f"Could not load custom resolver {strategy.loadable}", detail=str(e)
                ) from e
        if capability is None:
            raise ResolutionError("Custom host strategy has no resolver configured")

        try:
            value = capability(self.config) if callable(capability) else capability
        except Exception as e:
            raise ResolutionError("Custom resolver failed", detail=repr(e)) from e

        if isinstance(value, (str, HostEndpoint)):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ResolutionError(
                f"Custom resolver returned {type(value).__name__}, expected urls"
            )
        ret = []
        for item in value:
            if isinstance(item, HostEndpoint):
                ret.append(item)
                continue
            for url in str(item).split(","):
                if url.strip():
                    ret.append(
                        HostEndpoint(url=_with_scheme(url.strip()), strategy=strategy.type)
                    )
        return ret
