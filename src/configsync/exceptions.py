from typing import Optional


class ConfigSyncError(Exception):
    """
    Base class for every error raised by the synchronization engine.

    ``detail`` is picked up by ErrorInfo when the error is logged.
    """

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.detail = detail or message


class ResolutionError(ConfigSyncError):
    """No usable config service endpoint could be produced"""


class ServiceConnectionError(ConfigSyncError):
    """Transport level failure talking to the config service, triggers failover"""

    def __init__(
        self, message: str, endpoint: Optional[str] = None, detail: Optional[str] = None
    ) -> None:
        super().__init__(message, detail)
        self.endpoint = endpoint


class FetchError(ConfigSyncError):
    """The config service answered, but the answer was unusable"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message, detail)
        self.status_code = status_code


class StoreError(ConfigSyncError):
    """Writing a namespace to local storage failed"""
