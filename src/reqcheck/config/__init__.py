"""Layered runtime configuration for reqcheck."""

from reqcheck.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    env_name_for,
    load_config,
)
from reqcheck.config.schema import (
    ConfigValidationError,
    ConfigValidationIssue,
    ReqcheckConfig,
    assert_valid_config,
    default_config,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ReqcheckConfig",
    "assert_valid_config",
    "default_config",
    "env_name_for",
    "load_config",
]
