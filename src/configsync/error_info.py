import json
import traceback as tb
from dataclasses import asdict, dataclass
from functools import singledispatchmethod
from typing import Any, Optional, Union

from configsync.exceptions import ConfigSyncError, FetchError, ServiceConnectionError

StrKeyDict = dict[str, Any]
Detail = Union[str, StrKeyDict]


@dataclass
class ErrorInfo:
    error: str
    detail: Detail
    traceback: Optional[list[str]] = None

    @classmethod
    def _get_error(cls, exc: Exception, detail: Detail) -> "ErrorInfo":
        return cls(exc.__class__.__name__, detail)

    @singledispatchmethod
    @classmethod
    def from_exception(cls, exc: Exception) -> "ErrorInfo":
        return cls._get_error(exc, getattr(exc, "detail", None) or str(exc) or "-")

    @from_exception.register
    @classmethod
    def _(cls, exc: FetchError) -> Any:
        detail: StrKeyDict = {"message": exc.detail}
        if exc.status_code is not None:
            detail["status_code"] = exc.status_code
        return cls._get_error(exc, detail)

    @from_exception.register
    @classmethod
    def _(cls, exc: ServiceConnectionError) -> Any:
        detail: StrKeyDict = {"message": exc.detail}
        if exc.endpoint is not None:
            detail["endpoint"] = exc.endpoint
        return cls._get_error(exc, detail)

    @classmethod
    def with_traceback(cls, exc: Exception) -> "ErrorInfo":
        ret = cls.from_exception(exc)
        if not isinstance(exc, ConfigSyncError):
            ret.traceback = [
                line
                for line in "".join(tb.format_exception(exc)).split("\n")
                if line
            ]
        return ret

    @property
    def detail_str(self) -> str:
        if isinstance(self.detail, str):
            return self.detail
        return json.dumps(self.detail)

    @property
    def response(self) -> StrKeyDict:
        data = asdict(self)

        if data["traceback"] is None:
            del data["traceback"]

        return data
