import os
from ipaddress import IPv4Network, IPv6Network
from pathlib import Path
from typing import Annotated, Any, Callable, Dict, Literal, Mapping, Optional, Self, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from configsync.dynamic_config import Loadable


def _check_path_component(kind: str, value: str) -> str:
    value = value.strip()
    if value in ("", ".", "..") or "/" in value or "\\" in value or "\x00" in value:
        raise ValueError(f"{kind} {value!r} cannot be used as a file name")
    return value


class AppSpec(BaseModel):
    app_id: str
    namespaces: list[str] = Field(default_factory=lambda: ["application"])
    cluster: Optional[str] = None
    secret: Optional[SecretStr] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("app_id")
    @classmethod
    def validate_app_id(cls, v: str) -> str:
        return _check_path_component("App id", v)

    @field_validator("namespaces")
    @classmethod
    def validate_namespaces(cls, v: list[str]) -> list[str]:
        # ordered set: first occurrence wins
        ret: Dict[str, None] = dict()
        for namespace in v:
            ret[_check_path_component("Namespace", namespace)] = None
        if not ret:
            raise ValueError("An app needs at least one namespace")
        return list(ret.keys())


class HostName(BaseModel):
    type: Literal["HostName"] = "HostName"
    name: Optional[str] = None


class HostCidr(BaseModel):
    type: Literal["HostCidr"] = "HostCidr"
    cidr: Union[IPv4Network, IPv6Network]
    port: int = 8080
    scheme: Literal["http", "https"] = "http"
    probe: bool = True
    probe_timeout: float = 0.5
    max_candidates: int = Field(256, gt=0)


class Custom(BaseModel):
    """
    ``custom`` is a loadable producing the config service urls. A plain list
    of http(s) urls is taken as the endpoints themselves, endpoints served
    from a url need an explicit deserializer, eg. ``https+json://...``.
    """

    type: Literal["Custom"] = "Custom"
    custom: Optional[Union[Loadable, str]] = None

    @property
    def loadable(self) -> Optional[Loadable]:
        if isinstance(self.custom, str):
            if is_url_list(self.custom):
                return Loadable(
                    loader="inline", deserialize_with="string", target=self.custom
                )
            return Loadable.from_legacy_fmt(self.custom)
        return self.custom


def is_url_list(value: str) -> bool:
    urls = [url.strip() for url in value.split(",")]
    return all(url.startswith(("http://", "https://")) for url in urls)


HostStrategy = Annotated[
    Union[HostName, HostCidr, Custom], Field(discriminator="type")
]

CustomResolver = Callable[["EngineConfig"], Any]


class SyncConfiguration(BaseSettings):
    long_poll_timeout: float = Field(90.0, alias="CONFIGSYNC_LONG_POLL_TIMEOUT")
    connect_timeout: float = Field(5.0, alias="CONFIGSYNC_CONNECT_TIMEOUT")
    fetch_timeout: float = Field(10.0, alias="CONFIGSYNC_FETCH_TIMEOUT")
    backoff_min: float = Field(1.0, alias="CONFIGSYNC_BACKOFF_MIN", gt=0)
    backoff_max: float = Field(30.0, alias="CONFIGSYNC_BACKOFF_MAX", gt=0)
    backoff_multiplier: float = Field(2.0, alias="CONFIGSYNC_BACKOFF_MULTIPLIER", ge=1)
    backoff_jitter: float = Field(0.0, alias="CONFIGSYNC_BACKOFF_JITTER", ge=0, lt=1)
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def validate_backoff_range(self) -> Self:
        if self.backoff_min > self.backoff_max:
            raise ValueError(
                f"backoff_min ({self.backoff_min}) cannot exceed backoff_max ({self.backoff_max})"
            )
        return self


class StorageConfiguration(BaseSettings):
    file_mode: int = Field(0o644, alias="CONFIGSYNC_FILE_MODE")
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    @field_validator("file_mode", mode="before")
    @classmethod
    def parse_octal(cls, v: Union[int, str]) -> int:
        if isinstance(v, str):
            return int(v, 8)
        return v


class StatsdConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8125
    tags: Dict[str, str] = dict()
    namespace: str = "configsync"
    enabled: bool = False
    use_ms: bool = True


class ApplicationLogConfiguration(BaseSettings):
    enabled: bool = Field(True, alias="CONFIGSYNC_ENABLE_APPLICATION_LOGS")
    log_fmt: Optional[str] = Field(None, alias="CONFIGSYNC_APPLICATION_LOG_FORMAT")
    # currently only support /dev/stdout as JSON
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )


class LoggingConfiguration(BaseSettings):
    application_logs: ApplicationLogConfiguration = ApplicationLogConfiguration()


class StatusConfiguration(BaseSettings):
    enabled: bool = Field(False, alias="CONFIGSYNC_STATUS_ENABLED")
    host: str = Field("127.0.0.1", alias="CONFIGSYNC_STATUS_HOST")
    port: int = Field(9090, alias="CONFIGSYNC_STATUS_PORT")
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )


class EngineConfig(BaseSettings):
    # Where files are written
    dir: Path = Field(alias="CONFIGSYNC_DIR")
    storage: StorageConfiguration = StorageConfiguration()

    # Config service
    config_service_url: Optional[str] = Field(None, alias="CONFIGSYNC_SERVICE_URL")
    cluster: str = Field("default", alias="CONFIGSYNC_CLUSTER")
    client_ip: Optional[str] = Field(None, alias="CONFIGSYNC_CLIENT_IP")
    host: HostStrategy = Field(default_factory=HostName)

    # Sync
    workers: int = Field(default_factory=os.cpu_count, alias="CONFIGSYNC_WORKERS", gt=0)
    sync: SyncConfiguration = SyncConfiguration()
    apps: list[AppSpec]

    # Misc
    debug: bool = Field(False, alias="CONFIGSYNC_DEBUG")
    logging: LoggingConfiguration = LoggingConfiguration()
    statsd: StatsdConfig = StatsdConfig()
    status: StatusConfiguration = StatusConfiguration()
    sentry_dsn: SecretStr = Field(SecretStr(""), alias="CONFIGSYNC_SENTRY_DSN")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    @field_validator("config_service_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Config service url must be http(s), got {v}")
        return v.rstrip("/")

    @field_validator("apps")
    @classmethod
    def unique_app_ids(cls, v: list[AppSpec]) -> list[AppSpec]:
        seen: set[str] = set()
        for app in v:
            if app.app_id in seen:
                raise ValueError(f"App {app.app_id} is configured more than once")
            seen.add(app.app_id)
        return v

    @model_validator(mode="after")
    def host_name_needs_url(self) -> Self:
        if isinstance(self.host, HostName):
            if self.host.name is None and self.config_service_url is None:
                raise ValueError(
                    "HostName requires either host.name or config_service_url"
                )
        return self

    def cluster_for(self, app: AppSpec) -> str:
        return app.cluster or self.cluster

    def __str__(self) -> str:
        return self.__repr__()

    def __repr__(self) -> str:
        return f"EngineConfig({self.model_dump()})"

    def show(self) -> Dict[str, Any]:
        return self.model_dump()


DEFAULT_CONFIG_PATH = "file:///etc/configsync.yaml"


def parse_raw_configuration(path: str) -> Mapping[Any, Any]:
    spec = Loadable.from_legacy_fmt(path)
    ret = spec.load()
    if not isinstance(ret, Mapping):
        raise ValueError(f"Configuration at {path} is not a mapping")
    return ret


def load_config(path: Optional[str] = None) -> EngineConfig:
    if path is None:
        path = os.getenv("CONFIGSYNC_CONFIG", DEFAULT_CONFIG_PATH)
    return EngineConfig(**parse_raw_configuration(path))
