import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional

from configsync.configuration import StatsdConfig

STATSD: Dict[str, Optional["StatsDProxy"]] = {"instance": None}


class StatsDProxy:
    def __init__(self, statsd_instance: Optional[Any] = None) -> None:
        self.statsd = statsd_instance

    def __getattr__(self, item: str) -> Any:
        if self.statsd is not None:
            return getattr(self.statsd, item)
        return StatsdNoop


class StatsdNoop:
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        pass

    def __enter__(self) -> "StatsdNoop":
        return self

    def __exit__(self, type: Any, value: Any, traceback: Any) -> None:
        pass

    def __call__(self, func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapped(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapped


def configure_statsd(config: Optional[StatsdConfig] = None) -> StatsDProxy:
    if STATSD["instance"] is not None:
        return STATSD["instance"]
    config = config or StatsdConfig()
    module: Optional[Any] = None
    try:
        from datadog import DogStatsd

        if config.enabled:
            module = DogStatsd(
                host=config.host,
                port=config.port,
                namespace=config.namespace,
                use_ms=config.use_ms,
                constant_tags=[f"{tag}:{value}" for tag, value in config.tags.items()],
            )
        else:
            statsd_logger = logging.getLogger("datadog.dogstatsd")
            statsd_logger.disabled = True
    except ImportError:
        if config.enabled:
            raise

    ret = StatsDProxy(module)
    STATSD["instance"] = ret
    return ret


def reset_statsd() -> None:
    STATSD["instance"] = None
