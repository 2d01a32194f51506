"""clawdtm: skills directory mirror with community reviews and a bot agent API."""

from importlib import metadata

try:
    __version__ = metadata.version("clawdtm")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
