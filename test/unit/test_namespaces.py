import pytest

from configsync.namespaces import (
    NamespaceFormat,
    canonical_filename,
    namespace_format,
    wire_name,
)


@pytest.mark.parametrize(
    "namespace,expected",
    [
        ("application", NamespaceFormat.PROPERTIES),
        ("app.properties", NamespaceFormat.PROPERTIES),
        ("datasource.yaml", NamespaceFormat.YAML),
        ("datasource.YML", NamespaceFormat.YML),
        ("flags.json", NamespaceFormat.JSON),
        ("TEST1.shared", NamespaceFormat.PROPERTIES),
    ],
)
def test_format_is_taken_from_the_suffix(namespace, expected):
    assert namespace_format(namespace) == expected


def test_properties_namespaces_always_get_the_suffix_on_disk():
    assert canonical_filename("application") == "application.properties"
    assert canonical_filename("app.properties") == "app.properties"
    assert canonical_filename("TEST1.shared") == "TEST1.shared.properties"
    assert canonical_filename("datasource.yaml") == "datasource.yaml"


def test_properties_suffix_is_not_sent_to_the_service():
    assert wire_name("app.properties") == "app"
    assert wire_name("application") == "application"
    assert wire_name("datasource.yaml") == "datasource.yaml"
