import json
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

import requests
import yaml
from structlog.typing import FilteringBoundLogger

from configsync.configuration import AppSpec, EngineConfig
from configsync.exceptions import FetchError
from configsync.logging.named import logger_for
from configsync.namespaces import (
    CONTENT_KEY,
    NamespaceFormat,
    namespace_format,
    wire_name,
)
from configsync.remote import ConfigServiceClient
from configsync.types import HostEndpoint, NamespaceContent, NoChange

FetchResult = Union[NamespaceContent, NoChange]


def validate_content(namespace: str, configurations: Dict[str, str]) -> None:
    """
    Non properties namespaces carry the whole document under ``content``.
    Structured ones must parse, so that consumers never see a broken file.
    """
    fmt = namespace_format(namespace)
    if fmt.is_properties:
        return
    content = configurations.get(CONTENT_KEY)
    if content is None:
        raise FetchError(f"Namespace {namespace} has no {CONTENT_KEY!r} value")
    try:
        match fmt:
            case NamespaceFormat.YAML | NamespaceFormat.YML:
                yaml.safe_load(content)
            case NamespaceFormat.JSON:
                json.loads(content)
    except (yaml.YAMLError, ValueError) as e:
        raise FetchError(
            f"Namespace {namespace} is not valid {fmt.value}", detail=str(e)
        ) from e


class NamespaceFetcher:
    def __init__(
        self,
        client: ConfigServiceClient,
        config: EngineConfig,
        logger: Optional[FilteringBoundLogger] = None,
    ) -> None:
        self.client = client
        self.config = config
        self.logger = logger or logger_for(self)

    def path(self, app: AppSpec, namespace: str) -> str:
        parts = [app.app_id, self.config.cluster_for(app), wire_name(namespace)]
        return "/configs/" + "/".join(quote(p, safe="") for p in parts)

    def fetch(
        self,
        endpoint: HostEndpoint,
        app: AppSpec,
        namespace: str,
        known_release_key: Optional[str] = None,
    ) -> FetchResult:
        params: Dict[str, Any] = {}
        if known_release_key:
            params["releaseKey"] = known_release_key
        try:
            response = self.client.get(
                endpoint,
                app,
                self.path(app, namespace),
                params,
                timeout=(self.config.sync.connect_timeout, self.config.sync.fetch_timeout),
            )
        except requests.RequestException as e:
            # connection failures were already turned into ServiceConnectionError
            raise FetchError(
                f"Fetching {app.app_id}/{namespace} from {endpoint} failed", detail=str(e)
            ) from e

        if response.status_code == 304:
            return NoChange.NOT_MODIFIED
        self.client.raise_for_status(response, f"config {app.app_id}/{namespace}")

        body = self.client.json_body(response)
        if not isinstance(body, dict):
            raise FetchError(
                f"Expected an object for {app.app_id}/{namespace}",
                status_code=response.status_code,
            )
        configurations = body.get("configurations")
        if not isinstance(configurations, dict):
            raise FetchError(
                f"Response for {app.app_id}/{namespace} has no configurations",
                status_code=response.status_code,
            )
        release_key = body.get("releaseKey")
        if release_key is not None and not isinstance(release_key, str):
            raise FetchError(
                f"Response for {app.app_id}/{namespace} has an invalid release key",
                status_code=response.status_code,
            )

        if known_release_key and release_key == known_release_key:
            return NoChange.NOT_MODIFIED

        configurations = {
            str(k): "" if v is None else str(v) for k, v in configurations.items()
        }
        validate_content(namespace, configurations)
        return NamespaceContent(
            app_id=app.app_id,
            namespace=namespace,
            release_key=release_key,
            configurations=configurations,
        )
