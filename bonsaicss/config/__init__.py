"""Configuration module."""

from bonsaicss.config.settings import Settings
from bonsaicss.config.loader import BonsaiConfigError, load_config, merge_config_with_args

__all__ = ["Settings", "BonsaiConfigError", "load_config", "merge_config_with_args"]
