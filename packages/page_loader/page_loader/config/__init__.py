"""Configuration package for the page loader."""

from .config import LoaderConfig, get_config, reload_config

__all__ = ["LoaderConfig", "get_config", "reload_config"]
