from typing import Dict, Iterable, Optional, Tuple

from structlog.typing import FilteringBoundLogger

from configsync.logging.named import logger_for
from configsync.types import NotificationState

Key = Tuple[str, str]


class NotificationTracker:
    """
    Last notification id and release key seen per (app, namespace).

    Owned by a single worker, so no locking. ``advance`` is only called
    once a namespace's content is durably on disk (or confirmed unchanged).
    """

    def __init__(self, logger: Optional[FilteringBoundLogger] = None) -> None:
        self.logger = logger or logger_for(self)
        self._states: Dict[Key, NotificationState] = {}

    def current(self, app_id: str, namespace: str) -> Optional[Tuple[int, Optional[str]]]:
        state = self._states.get((app_id, namespace))
        if state is None:
            return None
        return state.notification_id, state.release_key

    def advance(
        self,
        app_id: str,
        namespace: str,
        notification_id: int,
        release_key: Optional[str],
    ) -> bool:
        """
        Returns False, leaving the state untouched, when ``notification_id``
        is behind what is already stored. Replayed or raced long poll
        responses end up here.
        """
        key = (app_id, namespace)
        existing = self._states.get(key)
        if existing is not None and notification_id < existing.notification_id:
            self.logger.warning(
                "Ignoring stale notification",
                app_id=app_id,
                namespace=namespace,
                notification_id=notification_id,
                current_notification_id=existing.notification_id,
            )
            return False
        self._states[key] = NotificationState(
            notification_id=notification_id,
            release_key=release_key,
        )
        return True

    def known_ids(self, app_id: str, namespaces: Iterable[str]) -> Dict[str, Optional[int]]:
        ret: Dict[str, Optional[int]] = dict()
        for namespace in namespaces:
            current = self.current(app_id, namespace)
            ret[namespace] = None if current is None else current[0]
        return ret

    def snapshot(self) -> Dict[Key, NotificationState]:
        return dict(self._states)
