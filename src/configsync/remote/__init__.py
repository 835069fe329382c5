"""
Clients for the config service HTTP API.

Connection level failures become ServiceConnectionError so that callers
fail over to the next endpoint. Anything the service actually answered is
terminal for that attempt.
"""
import base64
import hashlib
import hmac
import time
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from configsync.configuration import AppSpec, EngineConfig
from configsync.exceptions import FetchError, ServiceConnectionError
from configsync.types import HostEndpoint

Timeout = Tuple[float, float]


def sign(
    app_id: str, secret: str, path_with_query: str, timestamp: Optional[int] = None
) -> Dict[str, str]:
    """
    Access key signature headers for one request
    """
    if timestamp is None:
        timestamp = int(round(time.time() * 1000))
    string_to_sign = f"{timestamp}\n{path_with_query}"
    digest = hmac.new(
        secret.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha1
    ).digest()
    signature = base64.b64encode(digest).decode("utf-8")
    return {
        "Authorization": f"Apollo {app_id}:{signature}",
        "Timestamp": str(timestamp),
    }


class ConfigServiceClient:
    def __init__(
        self,
        config: EngineConfig,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()
        self.clock = clock

    def get(
        self,
        endpoint: HostEndpoint,
        app: AppSpec,
        path: str,
        params: Dict[str, Any],
        timeout: Timeout,
    ) -> requests.Response:
        if self.config.client_ip:
            params["ip"] = self.config.client_ip
        request = requests.Request("GET", f"{endpoint.url}{path}", params=params)
        prepared = self.session.prepare_request(request)
        if app.secret is not None:
            prepared.headers.update(
                sign(
                    app.app_id,
                    app.secret.get_secret_value(),
                    prepared.path_url,
                    timestamp=int(round(self.clock() * 1000)),
                )
            )
        try:
            return self.session.send(prepared, timeout=timeout)
        except requests.ConnectionError as e:
            raise ServiceConnectionError(
                f"Could not reach config service at {endpoint}",
                endpoint=endpoint.url,
                detail=str(e),
            ) from e

    @staticmethod
    def json_body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(
                f"Config service returned a malformed body for {response.url}",
                status_code=response.status_code,
                detail=str(e),
            ) from e

    @staticmethod
    def raise_for_status(response: requests.Response, what: str) -> None:
        code = response.status_code
        if 200 <= code < 300:
            return
        match code:
            case 401 | 403:
                reason = "not authorized"
            case 404:
                reason = "not found"
            case _:
                reason = f"unexpected status {code}"
        raise FetchError(
            f"Config service refused {what}: {reason}",
            status_code=code,
            detail=response.text[:512],
        )
