"""Parsing of ``major.minor.build`` version strings."""

from __future__ import annotations

import pytest

from DataflowShell.errors import ConfigurationError
from DataflowShell.version import PluginVersion, parse_plugin_version


def test_parse_plugin_version():
    parsed = parse_plugin_version("5.4.3")

    assert parsed == PluginVersion(major=5, minor=4, build=3)
    assert str(parsed) == "5.4.3"


@pytest.mark.parametrize(
    "value,expected_message",
    [
        ("2.0", 'pluginVersion "2.0" has invalid format. Expected 3 dot-separated integer components.'),
        ("1.2.3.4", 'pluginVersion "1.2.3.4" has invalid format. Expected 3 dot-separated integer components.'),
        ("1.x.3", 'pluginVersion "1.x.3" has invalid format. Expected integer components.'),
        ("0.0.0+unknown", 'pluginVersion "0.0.0+unknown" has invalid format. Expected integer components.'),
    ],
)
def test_parse_plugin_version_rejects_malformed(value, expected_message):
    with pytest.raises(ConfigurationError) as excinfo:
        parse_plugin_version(value)

    assert str(excinfo.value) == expected_message
