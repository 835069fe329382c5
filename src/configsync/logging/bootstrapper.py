import structlog
from structlog.exceptions import DropEvent
from structlog.stdlib import BoundLogger

from configsync.configuration import EngineConfig
from configsync.logging.application_logger import ApplicationLogger
from configsync.logging.named import configure_named_loggers
from configsync.logging.types import EventDict, ProcessedMessage


class LoggerBootstrapper:
    """
    Configures structlog for the whole process. Has to run before the
    engine is built so that component loggers pick up these settings.
    """

    def __init__(self, config: EngineConfig) -> None:
        self.show_debug: bool = config.debug

        structlog.configure(
            processors=[
                self.debug_logs_processor,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.JSONRenderer(),
            ]
        )
        root_logger: BoundLogger = structlog.get_logger()
        self.logger = root_logger

        self.application_logger = ApplicationLogger(
            root_logger=root_logger, config=config.logging.application_logs
        )
        configure_named_loggers(
            debug=self.show_debug, processors=self.application_logger.processors
        )

    def debug_logs_processor(
        self, logger: BoundLogger, method_name: str, event_dict: EventDict
    ) -> ProcessedMessage:
        if method_name == "debug" and not self.show_debug:
            raise DropEvent
        return event_dict
