import json
import re
from functools import cached_property
from typing import Any, Dict, List, Optional

import structlog
from structlog.exceptions import DropEvent
from structlog.stdlib import BoundLogger
from structlog.typing import Processor

from configsync.configuration import ApplicationLogConfiguration
from configsync.logging.types import EventDict, ProcessedMessage

# "{key}" and nothing else: the value is kept as is instead of formatted
WHOLE_FIELD = re.compile(r"^\{(\w+)\}$")

DEFAULT_LOG_FMT: Dict[str, str] = {
    "type": "{type}",
    "event": "{event}",
    "logger_name": "{logger_name}",
    "app_id": "{app_id}",
    "namespace": "{namespace}",
    "namespaces": "{namespaces}",
    "release_key": "{release_key}",
    "path": "{path}",
    "endpoint": "{endpoint}",
    "endpoints": "{endpoints}",
    "delay": "{delay}",
    "failures": "{failures}",
    "worker": "{worker}",
    "workers": "{workers}",
    "apps": "{apps}",
    "dir": "{dir}",
    "error": "{error}",
    "detail": "{detail}",
    "traceback": "{traceback}",
    "exception": "{exception}",
}


class ApplicationLogger:
    """
    Shapes every application event into the fields of ``log_fmt`` (a JSON
    object of output key to format string), or drops it when application
    logs are disabled. Component loggers share these processors.
    """

    def __init__(self, root_logger: BoundLogger, config: ApplicationLogConfiguration):
        self.is_enabled = config.enabled
        self._user_log_fmt = config.log_fmt

        self.logger: BoundLogger = structlog.wrap_logger(
            root_logger,
            wrapper_class=structlog.BoundLogger,
            processors=self.processors,
            type="application",
        )

    @property
    def processors(self) -> List[Processor]:
        return [self.is_enabled_processor, self.format_application_log_fields]

    @cached_property
    def log_format(self) -> Dict[str, str]:
        if not self._user_log_fmt:
            return DEFAULT_LOG_FMT
        fmt: Optional[Any] = json.loads(self._user_log_fmt)
        if not isinstance(fmt, dict):
            raise RuntimeError(f"Failed to parse log format as JSON: {self._user_log_fmt}")
        fmt.setdefault("event", "{event}")
        return fmt

    def is_enabled_processor(
        self, logger: Any, method_name: str, event_dict: EventDict
    ) -> ProcessedMessage:
        if not self.is_enabled:
            raise DropEvent
        return event_dict

    def format_application_log_fields(
        self, logger: Any, method_name: str, event_dict: EventDict
    ) -> ProcessedMessage:
        formatted_dict: Dict[str, Any] = {
            "level": method_name,
        }
        for k, v in self.log_format.items():
            if match := WHOLE_FIELD.match(v):
                if match.group(1) in event_dict:
                    formatted_dict[k] = event_dict[match.group(1)]
                continue
            try:
                formatted_dict[k] = v.format(**event_dict)
            except KeyError:
                continue
        return formatted_dict
