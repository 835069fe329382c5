import json
from unittest.mock import MagicMock

import pytest
import requests

from configsync.configuration import AppSpec
from configsync.exceptions import FetchError, ServiceConnectionError
from configsync.remote import ConfigServiceClient
from configsync.remote.notifications import LongPollClient
from configsync.types import ChangeSet, HostEndpoint, NoChange, Notification

ENDPOINT = HostEndpoint(url="http://apollo.test:8080")
APP = AppSpec(app_id="A1", namespaces=["app.properties", "db.yaml"])


@pytest.fixture
def client():
    return MagicMock(spec=ConfigServiceClient)


@pytest.fixture
def poller(client, engine_config, mock_logger):
    return LongPollClient(client, engine_config, logger=mock_logger)


def test_first_cycle_is_reported_without_asking(poller, client):
    result = poller.poll(ENDPOINT, APP, {"app.properties": None, "db.yaml": None})

    assert result == ChangeSet(
        app_id="A1",
        notifications=[
            Notification(namespace="app.properties", notification_id=-1),
            Notification(namespace="db.yaml", notification_id=-1),
        ],
    )
    client.get.assert_not_called()


def test_unknown_namespaces_do_not_hold_back_the_others(poller, client, response_factory):
    client.get.return_value = response_factory(
        200, [{"namespaceName": "app", "notificationId": 42}]
    )
    client.raise_for_status = ConfigServiceClient.raise_for_status
    client.json_body = ConfigServiceClient.json_body

    result = poller.poll(ENDPOINT, APP, {"app.properties": 4, "db.yaml": None})

    assert result == ChangeSet(
        app_id="A1",
        notifications=[Notification(namespace="app.properties", notification_id=42)],
    )
    _, _, _, params = client.get.call_args.args
    assert json.loads(params["notifications"]) == [
        {"namespaceName": "app", "notificationId": 4},
        {"namespaceName": "db.yaml", "notificationId": -1},
    ]


def test_known_ids_are_sent_with_wire_names(poller, client, engine_config, response_factory):
    client.get.return_value = response_factory(304)

    result = poller.poll(ENDPOINT, APP, {"app.properties": 4, "db.yaml": 9}, timeout=70)

    assert result is NoChange.TIMEOUT
    endpoint, app, path, params = client.get.call_args.args
    assert path == "/notifications/v2"
    assert params["appId"] == "A1"
    assert params["cluster"] == "default"
    assert json.loads(params["notifications"]) == [
        {"namespaceName": "app", "notificationId": 4},
        {"namespaceName": "db.yaml", "notificationId": 9},
    ]
    assert client.get.call_args.kwargs["timeout"] == (
        engine_config.sync.connect_timeout,
        70,
    )


def test_changes_are_mapped_back_to_configured_names(poller, client, response_factory):
    client.get.return_value = response_factory(
        200,
        [
            {"namespaceName": "app", "notificationId": 11},
            {"namespaceName": "someone-else", "notificationId": 3},
        ],
    )
    client.raise_for_status = ConfigServiceClient.raise_for_status
    client.json_body = ConfigServiceClient.json_body

    result = poller.poll(ENDPOINT, APP, {"app.properties": 4, "db.yaml": 9})

    assert result == ChangeSet(
        app_id="A1",
        notifications=[Notification(namespace="app.properties", notification_id=11)],
    )


def test_read_timeout_is_a_timeout(poller, client):
    client.get.side_effect = requests.ReadTimeout()
    assert poller.poll(ENDPOINT, APP, {"app.properties": 4, "db.yaml": 9}) is NoChange.TIMEOUT


def test_connection_errors_propagate(poller, client):
    client.get.side_effect = ServiceConnectionError("down", endpoint=ENDPOINT.url)
    with pytest.raises(ServiceConnectionError):
        poller.poll(ENDPOINT, APP, {"app.properties": 4, "db.yaml": 9})


def test_other_transport_errors_are_connection_errors(poller, client):
    client.get.side_effect = requests.exceptions.ChunkedEncodingError("reset")
    with pytest.raises(ServiceConnectionError):
        poller.poll(ENDPOINT, APP, {"app.properties": 4, "db.yaml": 9})


@pytest.mark.parametrize(
    "body",
    [
        {"namespaceName": "app"},
        [{"namespaceName": "app"}],
        [{"namespaceName": "app", "notificationId": "eleven"}],
    ],
)
def test_malformed_notifications_are_fetch_errors(poller, client, response_factory, body):
    client.get.return_value = response_factory(200, body)
    client.raise_for_status = ConfigServiceClient.raise_for_status
    client.json_body = ConfigServiceClient.json_body

    with pytest.raises(FetchError):
        poller.poll(ENDPOINT, APP, {"app.properties": 4, "db.yaml": 9})


def test_error_statuses_are_fetch_errors(poller, client, response_factory):
    client.get.return_value = response_factory(500, text="boom")
    client.raise_for_status = ConfigServiceClient.raise_for_status

    with pytest.raises(FetchError):
        poller.poll(ENDPOINT, APP, {"app.properties": 4, "db.yaml": 9})
