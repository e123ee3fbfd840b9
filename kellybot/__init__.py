"""kellybot: quarter-Kelly stake sizing and bet tracking for a chat bot."""

__version__ = "0.1.0"
__author__ = "kellybot Team"

__all__ = ["__version__", "__author__"]
