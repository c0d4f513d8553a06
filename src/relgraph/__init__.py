"""relgraph - Cascade persistence and hydration of nested relational record graphs."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("relgraph")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
