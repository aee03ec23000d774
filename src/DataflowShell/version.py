"""Parse the ``major.minor.build`` version stamped into release builds."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigurationError

__all__ = ["PluginVersion", "parse_plugin_version"]


@dataclass(slots=True, frozen=True)
class PluginVersion:
    major: int
    minor: int
    build: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.build}"


def parse_plugin_version(plugin_version: str) -> PluginVersion:
    """Split ``plugin_version`` into three integer components.

    Examples:
        >>> parse_plugin_version("5.4.3")
        PluginVersion(major=5, minor=4, build=3)
    """

    components = plugin_version.split(".")
    if len(components) != 3:
        raise ConfigurationError(
            f'pluginVersion "{plugin_version}" has invalid format. '
            "Expected 3 dot-separated integer components."
        )
    try:
        major, minor, build = (int(component) for component in components)
    except ValueError as exc:
        raise ConfigurationError(
            f'pluginVersion "{plugin_version}" has invalid format. Expected integer components.'
        ) from exc
    return PluginVersion(major=major, minor=minor, build=build)
