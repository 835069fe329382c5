from datetime import datetime
from enum import StrEnum
from typing import Dict, Optional

from pydantic import BaseModel, Field

from configsync.namespaces import NamespaceFormat, canonical_filename, namespace_format

# Notification id sent for namespaces we have never seen a notification for
INITIAL_NOTIFICATION_ID = -1


class NoChange(StrEnum):
    TIMEOUT = "timeout"
    NOT_MODIFIED = "not_modified"


class HostEndpoint(BaseModel):
    url: str
    strategy: str = "HostName"

    def __str__(self) -> str:
        return self.url


class Notification(BaseModel):
    namespace: str
    notification_id: int


class ChangeSet(BaseModel):
    app_id: str
    notifications: list[Notification] = Field(default_factory=list)

    @property
    def namespaces(self) -> list[str]:
        return [n.namespace for n in self.notifications]

    def __len__(self) -> int:
        return len(self.notifications)


class NamespaceContent(BaseModel):
    app_id: str
    namespace: str
    release_key: Optional[str] = None
    configurations: Dict[str, str] = Field(default_factory=dict)

    @property
    def format(self) -> NamespaceFormat:
        return namespace_format(self.namespace)

    @property
    def filename(self) -> str:
        return canonical_filename(self.namespace)

    def __str__(self) -> str:
        return f"NamespaceContent({self.app_id}/{self.namespace}@{self.release_key})"


class NotificationState(BaseModel):
    notification_id: int
    release_key: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.now)
