"""
Local storage of synchronized namespaces.

Every (app, namespace) pair owns one file under ``<dir>/<app_id>/``, which
is the only interface consumers have. Files are replaced atomically, so a
failed or interrupted write always leaves the previous content in place.
"""
from pathlib import Path
from typing import Optional

from structlog.typing import FilteringBoundLogger

from configsync.exceptions import StoreError
from configsync.logging.named import logger_for
from configsync.namespaces import canonical_filename
from configsync.statistics import StatsDProxy, configure_statsd
from configsync.storage.filesystem import FilesystemStorage
from configsync.storage.rendering import render
from configsync.storage.types import Storage
from configsync.types import NamespaceContent


class LocalStore:
    def __init__(
        self,
        base_dir: Path,
        storage: Optional[Storage] = None,
        logger: Optional[FilteringBoundLogger] = None,
        stats: Optional[StatsDProxy] = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.storage: Storage = storage or FilesystemStorage()
        self.logger = logger or logger_for(self)
        self.stats = stats or configure_statsd()

    def path_for(self, app_id: str, namespace: str) -> Path:
        return self.base_dir / app_id / canonical_filename(namespace)

    def commit(self, app_id: str, namespace: str, content: NamespaceContent) -> Path:
        path = self.path_for(app_id, namespace)
        try:
            data = render(content)
            with self.stats.timed("commit_ms"):
                self.storage.write_atomic(path, data)
        except (OSError, ValueError) as e:
            self.stats.increment("commit.error")
            raise StoreError(f"Could not write {path}", detail=repr(e)) from e
        self.stats.increment("commit.success")
        self.logger.info(
            "Committed namespace",
            app_id=app_id,
            namespace=namespace,
            release_key=content.release_key,
            path=str(path),
            bytes=len(data),
        )
        return path

    def recover(self, app_id: str, namespace: str) -> Optional[bytes]:
        """
        Last-known-good content, if any. Only informational: what is on disk
        is kept serving consumers until a fresh fetch replaces it.
        """
        path = self.path_for(app_id, namespace)
        try:
            return self.storage.read(path)
        except OSError as e:
            self.logger.warning(
                "Could not read existing file", path=str(path), error=repr(e)
            )
            return None
