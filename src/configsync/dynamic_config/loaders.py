import importlib
import os
from typing import Any, Protocol

import requests


class CustomLoader(Protocol):
    """
    Custom loaders can be added to configsync by creating a subclass,
    installing it under the ``configsync.loaders`` entry point group
    and then referring to it in config:

    host:
      type: Custom
      custom:
        loader: <loader name>
        deserialize_with: ...
        target: <path argument>
    """

    default_deser: str = "yaml"

    def load(self, path: str) -> Any: ...


class File(CustomLoader):
    default_deser = "yaml"

    def load(self, path: str) -> Any:
        try:
            with open(path) as f:
                return f.read()
        except FileNotFoundError:
            raise FileNotFoundError(f"Unable to load {path}")


class Web(CustomLoader):
    default_deser = "json"

    def load(self, path: str) -> Any:
        response = requests.get(path, timeout=10)
        response.raise_for_status()
        return response.text


class EnvironmentVariable(CustomLoader):
    default_deser = "string"

    def load(self, path: str) -> Any:
        data = os.getenv(path)
        if data is None:
            raise AttributeError(f"Unable to read environment variable {path}")
        return data


class PythonModule(CustomLoader):
    default_deser = "passthrough"

    def load(self, path: str) -> Any:
        if ":" in path:
            mod, fn = path.rsplit(":", maxsplit=1)
        else:
            mod, fn = path, ""
        imported = importlib.import_module(mod)
        if fn != "":
            return getattr(imported, fn)
        return imported


class Inline(CustomLoader):
    default_deser = "string"

    def load(self, path: str) -> Any:
        return path
