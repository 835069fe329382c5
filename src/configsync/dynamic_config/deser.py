import json
from typing import Any, Protocol

import yaml


class ConfigDeserializer(Protocol):
    """
    Deserializers can be added to configsync by creating a subclass,
    installing it under the ``configsync.deserializers`` entry point group
    and then specifying it as ``deserialize_with`` of a loadable.
    """

    def deserialize(self, input: Any) -> Any: ...


class YamlDeserializer(ConfigDeserializer):
    def deserialize(self, input: Any) -> Any:
        return yaml.safe_load(input)


class JsonDeserializer(ConfigDeserializer):
    def deserialize(self, input: Any) -> Any:
        return json.loads(input)


class StringDeserializer(ConfigDeserializer):
    def deserialize(self, input: Any) -> Any:
        return str(input)


class PassthroughDeserializer(ConfigDeserializer):
    def deserialize(self, input: Any) -> Any:
        return input
