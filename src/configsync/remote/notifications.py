import json
from typing import Dict, Optional, Union

import requests
from structlog.typing import FilteringBoundLogger

from configsync.configuration import AppSpec, EngineConfig
from configsync.exceptions import FetchError, ServiceConnectionError
from configsync.logging.named import logger_for
from configsync.namespaces import wire_name
from configsync.remote import ConfigServiceClient
from configsync.types import (
    INITIAL_NOTIFICATION_ID,
    ChangeSet,
    HostEndpoint,
    NoChange,
    Notification,
)

PollResult = Union[ChangeSet, NoChange]


class LongPollClient:
    """
    Waits for the config service to report namespaces whose notification id
    moved past the ones we know. The service holds the request open until
    something changes or its own hold time (60s for Apollo) runs out, so the
    read timeout has to be longer than that.
    """

    path = "/notifications/v2"

    def __init__(
        self,
        client: ConfigServiceClient,
        config: EngineConfig,
        logger: Optional[FilteringBoundLogger] = None,
    ) -> None:
        self.client = client
        self.config = config
        self.logger = logger or logger_for(self)

    def poll(
        self,
        endpoint: HostEndpoint,
        app: AppSpec,
        known_ids: Dict[str, Optional[int]],
        timeout: Optional[float] = None,
    ) -> PollResult:
        if known_ids and all(nid is None for nid in known_ids.values()):
            # Nothing has been fetched yet, no need to ask
            return ChangeSet(
                app_id=app.app_id,
                notifications=[
                    Notification(namespace=ns, notification_id=INITIAL_NOTIFICATION_ID)
                    for ns in known_ids
                ],
            )

        if timeout is None:
            timeout = self.config.sync.long_poll_timeout

        by_wire_name = {wire_name(ns): ns for ns in known_ids}
        notifications = [
            {
                "namespaceName": wire_name(ns),
                "notificationId": INITIAL_NOTIFICATION_ID if nid is None else nid,
            }
            for ns, nid in known_ids.items()
        ]
        params = {
            "appId": app.app_id,
            "cluster": self.config.cluster_for(app),
            "notifications": json.dumps(notifications, separators=(",", ":")),
        }
        try:
            response = self.client.get(
                endpoint,
                app,
                self.path,
                params,
                timeout=(self.config.sync.connect_timeout, timeout),
            )
        except requests.ReadTimeout:
            self.logger.debug(
                "Long poll read timed out", app_id=app.app_id, endpoint=endpoint.url
            )
            return NoChange.TIMEOUT
        except requests.RequestException as e:
            raise ServiceConnectionError(
                f"Long poll to {endpoint} failed", endpoint=endpoint.url, detail=str(e)
            ) from e

        if response.status_code == 304:
            return NoChange.TIMEOUT
        self.client.raise_for_status(response, f"notifications for {app.app_id}")

        body = self.client.json_body(response)
        if not isinstance(body, list):
            raise FetchError(
                f"Expected a list of notifications for {app.app_id}",
                status_code=response.status_code,
                detail=str(body)[:512],
            )

        ret = ChangeSet(app_id=app.app_id)
        for item in body:
            try:
                name = item["namespaceName"]
                notification_id = int(item["notificationId"])
            except (KeyError, TypeError, ValueError) as e:
                raise FetchError(
                    f"Malformed notification for {app.app_id}: {item!r}",
                    status_code=response.status_code,
                ) from e
            namespace = by_wire_name.get(name) or by_wire_name.get(wire_name(name))
            if namespace is None:
                self.logger.debug(
                    "Ignoring notification for unrequested namespace",
                    app_id=app.app_id,
                    namespace=name,
                )
                continue
            ret.notifications.append(
                Notification(namespace=namespace, notification_id=notification_id)
            )

        if not ret.notifications:
            return NoChange.TIMEOUT
        return ret
