"""
Namespace naming
----------------
A namespace name may carry a file type suffix (``config.yaml``). Names
without a known suffix are properties namespaces; the config service knows
those without the ``.properties`` suffix while on disk they always have it.
"""
from enum import StrEnum

PROPERTIES_SUFFIX = ".properties"

# non properties namespaces hold the whole document under this key
CONTENT_KEY = "content"


class NamespaceFormat(StrEnum):
    PROPERTIES = "properties"
    YAML = "yaml"
    YML = "yml"
    JSON = "json"
    XML = "xml"
    TXT = "txt"

    @property
    def is_properties(self) -> bool:
        return self is NamespaceFormat.PROPERTIES


def namespace_format(namespace: str) -> NamespaceFormat:
    _, dot, suffix = namespace.rpartition(".")
    if dot:
        try:
            return NamespaceFormat(suffix.lower())
        except ValueError:
            pass
    return NamespaceFormat.PROPERTIES


def canonical_filename(namespace: str) -> str:
    """
    Name of the file a namespace is persisted to
    """
    if namespace.lower().endswith(PROPERTIES_SUFFIX):
        return namespace
    if namespace_format(namespace).is_properties:
        return namespace + PROPERTIES_SUFFIX
    return namespace


def wire_name(namespace: str) -> str:
    """
    Name the config service knows the namespace by
    """
    if namespace.lower().endswith(PROPERTIES_SUFFIX):
        return namespace[: -len(PROPERTIES_SUFFIX)]
    return namespace
