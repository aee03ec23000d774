"""DataflowShell - launch Spring Cloud Data Flow and Skipper shells for cf service instances."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("dataflow-shell")
except PackageNotFoundError:
    # Package is not installed, so version is not available
    __version__ = "0.0.0+unknown"
