"""ErrExplain - structured, explainable diagnoses for programming errors."""

from errexplain._version import __version__

__all__ = ["__version__"]
