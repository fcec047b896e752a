"""Version information for the page loader."""

__version__ = "0.1.0"
