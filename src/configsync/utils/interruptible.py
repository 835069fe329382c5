import threading
from concurrent.futures import Future
from typing import Any, Callable, TypeVar

T = TypeVar("T")


def run_in_background(
    fn: Callable[..., T], *args: Any, name: str = "background-call", **kwargs: Any
) -> "Future[T]":
    """
    Runs a blocking call on a daemon thread and hands back a future for it.

    The caller waits on the future and may abandon it at any time, eg. to
    stop promptly while a long poll is still held open by the server. An
    abandoned call finishes on its own and never keeps the process alive.
    """
    future: "Future[T]" = Future()

    def job() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args, **kwargs)
        except BaseException as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    threading.Thread(target=job, name=name, daemon=True).start()
    return future
