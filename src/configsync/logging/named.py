"""
Component loggers
-----------------
Every engine component logs through a logger named after its class. Before
the LoggerBootstrapper has run these log at INFO with structlog's defaults.
Once it has, they follow the engine's ``debug`` flag and run through the
application log processors, so ``application_logs.enabled`` and ``log_fmt``
apply to resolver, worker and store events alike.
"""
import logging
from typing import Any, Dict, List, MutableMapping, Optional, Sequence

import structlog
from pydantic import BaseModel
from structlog.typing import FilteringBoundLogger, Processor

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "exception": logging.ERROR,
}

NAMED_LOGGERS: Dict[str, Any] = {"level": logging.INFO, "processors": []}


def configure_named_loggers(debug: bool, processors: Sequence[Processor]) -> None:
    """
    Applies to loggers created afterwards. Components create theirs on
    construction, which is why the bootstrapper runs before the engine.
    """
    NAMED_LOGGERS["level"] = logging.DEBUG if debug else logging.INFO
    NAMED_LOGGERS["processors"] = list(processors)


def reset_named_loggers() -> None:
    NAMED_LOGGERS["level"] = logging.INFO
    NAMED_LOGGERS["processors"] = []


# noinspection PyUnusedLocal
def serialise_pydantic_models(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, BaseModel):
            event_dict[key] = value.model_dump(mode="json")
    return event_dict


def get_named_logger(name: str, level: Optional[int] = None) -> FilteringBoundLogger:
    if level is None:
        level = NAMED_LOGGERS["level"]

    # noinspection PyUnusedLocal
    def filter_by_level(
        logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        if LEVELS.get(method_name, logging.INFO) < level:
            raise structlog.DropEvent
        return event_dict

    processors: List[Processor] = [
        filter_by_level,
        structlog.stdlib.add_log_level,
        serialise_pydantic_models,
        structlog.processors.format_exc_info,
    ]
    processors += NAMED_LOGGERS["processors"]
    processors += structlog.get_config()["processors"]

    return structlog.wrap_logger(
        structlog.PrintLogger(),
        processors=processors,
        context_class=dict,
    ).bind(logger_name=name)


def logger_for(component: Any) -> FilteringBoundLogger:
    cls = type(component)
    return get_named_logger(f"{cls.__module__}.{cls.__qualname__}")
