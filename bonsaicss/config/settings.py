"""Settings and configuration for BonsaiCSS."""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from bonsaicss.core.types import BonsaiOptions

_settings_logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Safely parse an integer from an environment variable.

    Args:
        env_var: Name of the environment variable.
        default: Default value as a string.

    Returns:
        Parsed integer value, or default if parsing fails.
    """
    value = os.getenv(env_var, default)
    try:
        return int(value)
    except ValueError:
        _settings_logger.warning("Invalid value '%s' for %s, using default %s", value, env_var, default)
        return int(default)


def _parse_csv(env_var: str) -> List[str]:
    """Parse a comma-separated environment variable.

    Example: BONSAI_CONTENT="src/**/*.html,src/**/*.tsx"

    Returns:
        Trimmed, non-empty items. Empty list if the variable is unset or blank.
    """
    raw = os.getenv(env_var, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_flag(env_var: str, default: str = "false") -> bool:
    return os.getenv(env_var, default).lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Configuration settings read from the environment."""

    # Project
    cwd: str = field(default_factory=lambda: os.getenv("BONSAI_CWD", "."))
    content: List[str] = field(default_factory=lambda: _parse_csv("BONSAI_CONTENT"))
    css: List[str] = field(default_factory=lambda: _parse_csv("BONSAI_CSS"))

    # Pruning
    safelist: List[str] = field(default_factory=lambda: _parse_csv("BONSAI_SAFELIST"))
    safelist_patterns: List[str] = field(default_factory=lambda: _parse_csv("BONSAI_SAFELIST_PATTERNS"))
    keep_dynamic_patterns: bool = field(default_factory=lambda: _env_flag("BONSAI_KEEP_DYNAMIC_PATTERNS"))
    minify: bool = field(default_factory=lambda: _env_flag("BONSAI_MINIFY"))

    # Scan cache
    cache_dir: str = field(default_factory=lambda: os.getenv("BONSAI_CACHE_DIR", ".cache/bonsaicss"))
    persist_cache: bool = field(default_factory=lambda: _env_flag("BONSAI_PERSIST_CACHE"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("BONSAI_LOG_LEVEL", "WARNING"))

    # HTTP service
    server_host: str = field(default_factory=lambda: os.getenv("BONSAI_SERVER_HOST", "127.0.0.1"))
    server_port: int = field(default_factory=lambda: _safe_int("BONSAI_SERVER_PORT", "8100"))

    @property
    def effective_cache_dir(self) -> Optional[str]:
        """Cache directory when persistence is enabled, otherwise None."""
        return self.cache_dir if self.persist_cache and self.cache_dir else None

    def to_options(self) -> BonsaiOptions:
        """Build engine options from these settings."""
        return BonsaiOptions(
            content=list(self.content),
            css=list(self.css),
            cwd=os.path.abspath(self.cwd),
            safelist=list(self.safelist),
            safelist_patterns=list(self.safelist_patterns),
            keep_dynamic_patterns=self.keep_dynamic_patterns,
            minify=self.minify,
            cache_dir=self.effective_cache_dir,
        )
