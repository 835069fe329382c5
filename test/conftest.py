import json
from typing import Any, Optional

import pytest
import requests


def make_response(
    status_code: int = 200, body: Any = None, text: Optional[str] = None
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.url = "http://apollo.test"
    if text is not None:
        response._content = text.encode("utf-8")
    elif body is not None:
        response._content = json.dumps(body).encode("utf-8")
    else:
        response._content = b""
    return response


@pytest.fixture
def response_factory():
    """Builds real ``requests.Response`` objects as returned by the config service"""
    return make_response
