"""Field detection and classification toolkit for live web pages."""

from importlib import metadata

try:
    __version__ = metadata.version("formfill")
except metadata.PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = ["__version__"]
