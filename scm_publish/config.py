"""Configuration management for scm-publish.

Values are looked up through a fallback chain: environment variable, then
the host build's options object (see `initialize`), then an optional INI
file named by SCM_PUBLISH_CONFIG, then the built-in default.
"""

from __future__ import annotations

import configparser
import logging
import os
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_SECTION = "scm_publish"

DISABLE_ENV = "SCM_PUBLISH_DISABLE"
NO_PROMPT_ENV = "SCM_PUBLISH_NO_PROMPT"
USERNAME_ENV = "SCM_PUBLISH_USERNAME"
PASSWORD_ENV = "SCM_PUBLISH_PASSWORD"

# Module-level config cache
_config: Optional[Dict[str, Any]] = None
_options: Optional[Any] = None  # Host build options object


def initialize(options: Any) -> None:
    """Initialize config module with the host build's options object.

    Attributes named ``scm_publish_<key>`` on the object are consulted
    after environment variables.

    Args:
        options: Parsed options object from the host build step
    """
    global _options
    _options = options
    logger.debug("Config module initialized with host options object")


def _parse_config_file(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Parse the [scm_publish] section of an INI config file.

    Args:
        config_file: Path to config file. If None, nothing is read.

    Returns:
        Dict of raw string values, empty when the file or section is missing
    """
    if not config_file:
        return {}

    parser = configparser.ConfigParser(interpolation=None)
    try:
        read = parser.read(config_file)
    except configparser.Error as exc:
        logger.warning("Failed to parse config file %s: %s", config_file, exc)
        return {}

    if not read:
        logger.warning("Config file %s not found, using defaults", config_file)
        return {}
    if not parser.has_section(CONFIG_SECTION):
        logger.debug("No [%s] section in %s", CONFIG_SECTION, config_file)
        return {}
    return dict(parser.items(CONFIG_SECTION))


def _get_config() -> Dict[str, Any]:
    """Get parsed config dict, initializing if needed.

    Returns:
        Config dict with [scm_publish] section values.
    """
    global _config
    if _config is None:
        config_file = os.environ.get("SCM_PUBLISH_CONFIG")
        _config = _parse_config_file(config_file)
    return _config


def _get_config_value(
    key: str,
    default: Any,
    env_var: Optional[str] = None,
    converter: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """Get config value with fallback chain: env var, options, config file, default.

    Args:
        key: Config key name (in [scm_publish] section)
        default: Default value if not found
        env_var: Optional environment variable name (e.g., SCM_PUBLISH_KEY)
        converter: Optional function to convert string value (e.g., int, bool)

    Returns:
        Config value (converted if converter provided)
    """
    # Check environment variable first (highest priority)
    if env_var:
        env_value = os.environ.get(env_var)
        if env_value is not None:
            if converter:
                try:
                    return converter(env_value)
                except (ValueError, TypeError):
                    logger.warning(
                        "Invalid value for %s: %s, using default", env_var, env_value
                    )
                    return default
            return env_value

    # Check options object (if initialized by the host build)
    if _options is not None:
        option_key = f"scm_publish_{key}"
        value = getattr(_options, option_key, None)
        if value is not None:
            if converter and isinstance(value, str):
                try:
                    return converter(value)
                except (ValueError, TypeError):
                    logger.warning("Invalid value for %s: %s, using default", key, value)
                    return default
            return value

    # Check config file
    config = _get_config()
    value = config.get(key)
    if value is not None:
        if converter:
            try:
                return converter(value)
            except (ValueError, TypeError):
                logger.warning(
                    "Invalid value for config key %s: %s, using default", key, value
                )
                return default
        return value

    return default


def _parse_bool(value: Any) -> bool:
    """Parse boolean value from config (string or bool).

    Accepts: True, "true", "True", "1", "yes", "on" -> True
             anything else -> False
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_timeout(value: Any) -> int:
    """Parse a timeout in whole seconds; negative values are invalid."""
    seconds = int(value)
    if seconds < 0:
        raise ValueError(f"negative timeout: {seconds}")
    return seconds


def scm_publish_disabled() -> bool:
    """Skip the whole publish step when set."""
    return _get_config_value(
        "disable",
        False,
        env_var=DISABLE_ENV,
        converter=_parse_bool,
    )


def scm_publish_no_prompt() -> bool:
    """Never prompt on the console for missing credentials."""
    return _get_config_value(
        "no_prompt",
        False,
        env_var=NO_PROMPT_ENV,
        converter=_parse_bool,
    )


def scm_publish_username() -> Optional[str]:
    """Process-level username override (highest priority)."""
    return _get_config_value("username", None, env_var=USERNAME_ENV)


def scm_publish_password() -> Optional[str]:
    """Process-level password override (highest priority)."""
    return _get_config_value("password", None, env_var=PASSWORD_ENV)


def scm_publish_prompt_timeout() -> int:
    """Seconds to wait for a console credential prompt (default: 120)."""
    return _get_config_value(
        "prompt_timeout",
        120,
        env_var="SCM_PUBLISH_PROMPT_TIMEOUT",
        converter=_parse_timeout,
    )


def scm_publish_readme_content() -> str:
    """Content of the readme marker written into a fresh working folder."""
    return _get_config_value(
        "readme_content",
        "This repository is used for publishing content programmatically",
        env_var="SCM_PUBLISH_README_CONTENT",
    )


def scm_publish_commit_message() -> str:
    """Commit message used when the request does not carry one."""
    return _get_config_value(
        "commit_message",
        "[SCMPublish Plugin]",
        env_var="SCM_PUBLISH_COMMIT_MESSAGE",
    )


def scm_publish_git_branch() -> str:
    """Branch used when the remote has no HEAD to follow (default: main)."""
    return _get_config_value(
        "git_branch",
        "main",
        env_var="SCM_PUBLISH_GIT_BRANCH",
    )


def scm_publish_log_file() -> Optional[str]:
    """Optional file that receives raw git/svn command output."""
    return _get_config_value("log_file", None, env_var="SCM_PUBLISH_LOG_FILE")


def reset_config() -> None:
    """Reset config cache (useful for testing)."""
    global _config, _options
    _config = None
    _options = None
