"""Code shared by the Juno host and UI processes."""

from juno_common.version import __version__

__all__ = ["__version__"]
