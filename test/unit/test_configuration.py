import pytest
from pydantic import ValidationError

from configsync.configuration import (
    AppSpec,
    Custom,
    EngineConfig,
    HostCidr,
    HostName,
    StorageConfiguration,
    SyncConfiguration,
    load_config,
)
from configsync.dynamic_config import Loadable


def test_app_defaults_to_the_application_namespace():
    app = AppSpec(app_id="A1")
    assert app.namespaces == ["application"]


def test_app_namespaces_are_an_ordered_set():
    app = AppSpec(app_id="A1", namespaces=["b", "a", "b", "c"])
    assert app.namespaces == ["b", "a", "c"]


@pytest.mark.parametrize("namespace", ["", "..", "a/b", "a\\b"])
def test_namespaces_must_be_usable_as_file_names(namespace):
    with pytest.raises(ValidationError):
        AppSpec(app_id="A1", namespaces=[namespace])


def test_app_spec_is_immutable():
    app = AppSpec(app_id="A1")
    with pytest.raises(ValidationError):
        app.app_id = "A2"


def test_host_strategy_is_picked_by_type(tmp_path):
    config = EngineConfig(
        dir=tmp_path,
        host={"type": "HostCidr", "cidr": "10.0.0.0/30", "port": 8080},
        apps=[{"app_id": "A1"}],
    )
    assert isinstance(config.host, HostCidr)
    assert config.host.cidr.num_addresses == 4

    config = EngineConfig(
        dir=tmp_path,
        host={"type": "Custom", "custom": "python://socket:gethostname"},
        apps=[{"app_id": "A1"}],
    )
    assert isinstance(config.host, Custom)
    assert config.host.loadable == Loadable(
        loader="python", deserialize_with="passthrough", target="socket:gethostname"
    )


def test_host_name_needs_somewhere_to_connect_to(tmp_path):
    with pytest.raises(ValidationError):
        EngineConfig(dir=tmp_path, apps=[{"app_id": "A1"}])
    config = EngineConfig(
        dir=tmp_path, host=HostName(name="apollo:8080"), apps=[{"app_id": "A1"}]
    )
    assert config.host.name == "apollo:8080"


def test_service_url_must_be_http(tmp_path):
    with pytest.raises(ValidationError):
        EngineConfig(
            dir=tmp_path, config_service_url="ftp://apollo", apps=[{"app_id": "A1"}]
        )
    config = EngineConfig(
        dir=tmp_path, config_service_url="http://apollo/", apps=[{"app_id": "A1"}]
    )
    assert config.config_service_url == "http://apollo"


def test_app_ids_are_unique(tmp_path):
    with pytest.raises(ValidationError):
        EngineConfig(
            dir=tmp_path,
            config_service_url="http://apollo",
            apps=[{"app_id": "A1"}, {"app_id": "A1"}],
        )


def test_app_cluster_overrides_the_default(engine_config):
    assert engine_config.cluster_for(AppSpec(app_id="A1")) == "default"
    assert engine_config.cluster_for(AppSpec(app_id="A1", cluster="gray")) == "gray"


def test_backoff_range_is_validated():
    with pytest.raises(ValidationError):
        SyncConfiguration(backoff_min=10, backoff_max=5)


def test_file_mode_accepts_octal_strings():
    assert StorageConfiguration(file_mode="0600").file_mode == 0o600
    assert StorageConfiguration(file_mode=0o640).file_mode == 0o640


def test_load_config_from_environment(monkeypatch, tmp_path):
    path = tmp_path / "configsync.yaml"
    path.write_text(
        "dir: /tmp/configsync\n"
        "config_service_url: http://apollo:8080\n"
        "workers: 3\n"
        "apps:\n"
        "  - app_id: billing\n"
        "    namespaces: [application, datasource.yaml]\n"
    )
    monkeypatch.setenv("CONFIGSYNC_CONFIG", f"file://{path}")
    config = load_config()
    assert config.workers == 3
    assert config.apps[0].namespaces == ["application", "datasource.yaml"]
    assert config.sync.long_poll_timeout == 90


def test_load_config_rejects_non_mappings(tmp_path):
    path = tmp_path / "configsync.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config(f"file://{path}")


def test_secrets_are_not_shown(tmp_path):
    config = EngineConfig(
        dir=tmp_path,
        config_service_url="http://apollo",
        apps=[{"app_id": "A1", "secret": "hunter2"}],
    )
    assert "hunter2" not in repr(config)
    assert config.apps[0].secret.get_secret_value() == "hunter2"
