"""Configuration for template-kit runs."""

from .config import Config, get_config, load_config, reload_config

__all__ = ["Config", "get_config", "load_config", "reload_config"]
