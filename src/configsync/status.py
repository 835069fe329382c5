"""
Read only HTTP view of a running engine, for probes and humans.
Consumers still only ever read the files.
"""
import threading
from typing import Any, Dict, Optional, Protocol

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from configsync import __version__
from configsync.configuration import StatusConfiguration


class StatusSource(Protocol):
    def status(self) -> Dict[str, Any]: ...


def init_app(engine: StatusSource, debug: bool = False) -> FastAPI:
    application = FastAPI(title="configsync", version=__version__, debug=debug)

    @application.get("/health", summary="Are the sync workers running?")
    async def health() -> Response:
        status = engine.status()
        if status["healthy"]:
            return PlainTextResponse("OK", status_code=200)
        return PlainTextResponse("FAIL", status_code=503)

    @application.get("/status", summary="Sync state of every app and namespace")
    async def sync_status() -> Response:
        return JSONResponse(content=engine.status())

    return application


class StatusServer:
    def __init__(
        self,
        engine: StatusSource,
        config: StatusConfiguration,
        debug: bool = False,
    ) -> None:
        self.server = uvicorn.Server(
            uvicorn.Config(
                init_app(engine, debug=debug),
                host=config.host,
                port=config.port,
                log_level="debug" if debug else "warning",
                access_log=False,
            )
        )
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self.thread = threading.Thread(
            target=self.server.run, name="status-server", daemon=True
        )
        self.thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self.server.should_exit = True
        if self.thread is not None:
            self.thread.join(timeout)
