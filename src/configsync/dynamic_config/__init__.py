import inspect
from importlib.metadata import EntryPoints, entry_points
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from configsync.dynamic_config import deser, loaders
from configsync.dynamic_config.deser import ConfigDeserializer
from configsync.dynamic_config.loaders import CustomLoader

LOADERS: dict[str, CustomLoader] = {}
DESERIALIZERS: dict[str, ConfigDeserializer] = {}

BUILTIN_LOADERS: dict[str, type] = {
    "file": loaders.File,
    "http": loaders.Web,
    "https": loaders.Web,
    "env": loaders.EnvironmentVariable,
    "python": loaders.PythonModule,
    "module": loaders.PythonModule,
    "inline": loaders.Inline,
}

BUILTIN_DESERIALIZERS: dict[str, type] = {
    "yaml": deser.YamlDeserializer,
    "json": deser.JsonDeserializer,
    "string": deser.StringDeserializer,
    "passthrough": deser.PassthroughDeserializer,
}


class Loadable(BaseModel):
    path: str = Field(alias="target")
    protocol: str = Field(alias="loader")
    serialization: str | None = Field(None, alias="deserialize_with")

    model_config = ConfigDict(populate_by_name=True)

    def load(self, default: Any = None) -> Any:
        if not LOADERS:
            init_loaders()
        if not DESERIALIZERS:
            init_deserializers()

        if self.protocol not in LOADERS:
            raise KeyError(
                f"Could not find CustomLoader {self.protocol}. Available: {sorted(LOADERS)}"
            )
        loader = LOADERS[self.protocol]

        ser = self.serialization
        if ser is None:
            ser = loader.default_deser
        if ser not in DESERIALIZERS:
            raise KeyError(
                f"Could not find Deserializer {ser}. Available: {sorted(DESERIALIZERS)}"
            )
        deserializer = DESERIALIZERS[ser]

        try:
            data = loader.load(self.path)
            return deserializer.deserialize(data)
        except Exception as original_error:
            if default is not None:
                return default
            raise ValueError(
                f"Could not load value. {self.__str__()}, {original_error=}"
            ) from original_error

    @staticmethod
    def from_legacy_fmt(fmt_string: str) -> "Loadable":
        """
        Parses ``<loader>[+<deserializer>]://<target>``, eg.
        ``file:///etc/configsync.yaml`` or ``python://pkg.module:function``.
        Strings without a scheme are inline strings.
        """
        if "://" not in fmt_string:
            return Loadable(
                loader="inline",
                deserialize_with="string",
                target=fmt_string,
            )
        scheme, path = fmt_string.split("://", maxsplit=1)
        try:
            proto, ser = scheme.split("+")
        except ValueError:
            proto, ser = scheme, None

        if proto in ("python", "module"):
            ser = "passthrough"
        if proto in ("http", "https"):
            path = "://".join([proto, path])

        return Loadable(
            loader=proto,
            deserialize_with=ser,
            target=path,
        )

    def __str__(self) -> str:
        return f"Loadable({self.protocol}+{self.serialization}://{self.path})"


def plugins(group: str) -> EntryPoints:
    """Third-party loaders and deserializers, registered under configsync.<group>"""
    return entry_points().select(group=f"configsync.{group}")


def init_loaders() -> None:
    for name, cls in BUILTIN_LOADERS.items():
        LOADERS[name] = cls()
    for entry_point in plugins("loaders"):
        custom_loader = entry_point.load()
        func = custom_loader()
        method = getattr(func, "load", None)
        if not inspect.ismethod(method):
            raise AttributeError(
                f"CustomLoader {entry_point.name} does not implement .load()"
            )
        LOADERS[entry_point.name] = func


def init_deserializers() -> None:
    for name, cls in BUILTIN_DESERIALIZERS.items():
        DESERIALIZERS[name] = cls()
    for entry_point in plugins("deserializers"):
        deserializer = entry_point.load()
        func = deserializer()
        method = getattr(func, "deserialize", None)
        if not inspect.ismethod(method):
            raise AttributeError(
                f"Deserializer {entry_point.name} does not implement .deserialize()"
            )
        DESERIALIZERS[entry_point.name] = func
