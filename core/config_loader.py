"""
Core Module - Configuration Loader.

============================================================
RESPONSIBILITY
============================================================
Loads the dashboard configuration file.

- Resolves the file path (argument, environment, default)
- Renders <file>.template with environment variables
- Merges the file over built-in defaults
- Warns about deprecated options

A missing or unreadable file never stops the host. The
defaults are returned and the error is logged.

============================================================
TEMPLATES
============================================================
If config/config.yaml.template exists, $VAR and ${VAR} are
substituted from the process environment and from
config/config.env (dotenv format), the previous config.yaml
is backed up, and the rendered text becomes config.yaml.

============================================================
"""

import copy
import logging
import os
import shutil
import time
from pathlib import Path
from string import Template
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import yaml
from dotenv import dotenv_values

from .constants import DEFAULT_CONFIG_PATH, DEPRECATED_OPTIONS


logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "address": "localhost",
    "port": 8080,
    "base_path": "/",
    "ip_whitelist": ["127.0.0.1", "::ffff:127.0.0.1", "::1"],
    "log_level": "INFO",
    "modules": [],
}

_LEVEL_ALIASES = {
    "LOG": "INFO",
    "WARN": "WARNING",
}


# ============================================================
# PATH RESOLUTION
# ============================================================

def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Resolve the configuration file path."""
    if path:
        return Path(path).resolve()
    env_path = os.getenv("MIRROR_CONFIG_FILE")
    if env_path:
        return Path(env_path).resolve()
    return Path(DEFAULT_CONFIG_PATH).resolve()


# ============================================================
# TEMPLATE RENDERING
# ============================================================

def render_template(
    config_path: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Render <config_path>.template into config_path.

    Args:
        config_path: Target configuration file
        environ: Environment to substitute from (default: os.environ)

    Returns:
        True if a template was rendered
    """
    template_path = config_path.with_name(f"{config_path.name}.template")
    if not template_path.exists():
        logger.debug("Config template file does not exist, no substitution")
        return False

    if config_path.exists():
        backup = config_path.with_name(f"{config_path.name}_{int(time.time() * 1000)}")
        try:
            shutil.copyfile(config_path, backup)
        except OSError as e:
            logger.warning(f"Could not copy {config_path}: {e}")

    values: Dict[str, str] = {}
    env_file = config_path.with_suffix(".env")
    if env_file.exists():
        values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    values.update(environ if environ is not None else os.environ)

    try:
        text = template_path.read_text(encoding="utf-8")
        config_path.write_text(Template(text).safe_substitute(values), encoding="utf-8")
    except OSError as e:
        logger.error(f"Could not substitute variables: {e}")
        return False

    logger.info(f"Rendered {template_path.name} -> {config_path.name}")
    return True


# ============================================================
# LOADING
# ============================================================

def check_deprecated_options(user_config: Mapping[str, Any]) -> List[str]:
    """Log a warning for deprecated options and return their names."""
    used = [option for option in DEPRECATED_OPTIONS if option in user_config]
    if used:
        logger.warning(
            f"Your config is using deprecated options: {', '.join(used)}. "
            f"They are ignored."
        )
    return used


def load_configuration(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """
    Load the configuration merged over DEFAULTS.

    Args:
        path: Configuration file (default: MIRROR_CONFIG_FILE or config/config.yaml)
        environ: Environment for template substitution and overrides

    Returns:
        Configuration dictionary
    """
    env = environ if environ is not None else os.environ
    config_path = resolve_config_path(path)
    config = copy.deepcopy(DEFAULTS)

    logger.info(f"Loading config from {config_path}")
    render_template(config_path, env)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
        if not isinstance(user_config, dict):
            raise ValueError("config root must be a mapping")
        check_deprecated_options(user_config)
        config.update(user_config)
    except FileNotFoundError:
        logger.error("Could not find config file. Starting with default configuration.")
    except (yaml.YAMLError, ValueError) as e:
        logger.error(f"Could not validate config file. Starting with default configuration: {e}")
    except OSError as e:
        logger.error(f"Could not load config file. Starting with default configuration: {e}")

    port = env.get("MIRROR_PORT")
    if port:
        try:
            config["port"] = int(port)
        except ValueError:
            logger.warning(f"Ignoring invalid MIRROR_PORT: {port!r}")

    return config


# ============================================================
# LOG LEVEL
# ============================================================

def resolve_log_level(value: Union[str, Iterable[str], None], default: str = "INFO") -> str:
    """
    Map a configured log level to a logging level name.

    Accepts a single name or a list of enabled levels, in which
    case the lowest listed level wins.
    """
    if not value:
        return default

    names = [value] if isinstance(value, str) else list(value)
    levels = []
    for name in names:
        upper = _LEVEL_ALIASES.get(str(name).upper(), str(name).upper())
        numeric = logging.getLevelName(upper)
        if isinstance(numeric, int):
            levels.append(numeric)

    if not levels:
        return default
    return logging.getLevelName(min(levels))


__all__ = [
    "DEFAULTS",
    "resolve_config_path",
    "render_template",
    "check_deprecated_options",
    "load_configuration",
    "resolve_log_level",
]
