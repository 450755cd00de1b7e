"""Configuration loading for the PC controller."""

import logging
import os
from typing import Any, Dict, Optional

import yaml

from constants import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_EXAMPLE_FILE,
    DEFAULT_CONFIG_FILE,
    DEFAULT_STORE_BACKEND,
)
from errors import InvalidEndpoint
from models import ControlEndpoint, EndpointSummary
from validation import validate_url

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("file", "mqtt")


def config_path(path: Optional[str] = None) -> str:
    """Resolve the config file path: explicit argument, env var, then default."""
    return path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_FILE


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load and validate configuration file."""
    path = config_path(path)
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"Configuration file '{path}' not found. "
            f"Please copy '{DEFAULT_CONFIG_EXAMPLE_FILE}' to '{path}' "
            f"and update with your settings."
        )

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in '{path}': {e}")

    if not config:
        raise ValueError(f"'{path}' is empty")
    if not isinstance(config, dict):
        raise ValueError(f"'{path}' must contain a mapping")

    store_config = config.get('store') or {}
    if not isinstance(store_config, dict):
        raise ValueError("'store' section must be a mapping")
    config['store'] = store_config
    backend = store_config.setdefault('backend', DEFAULT_STORE_BACKEND)
    if backend not in STORE_BACKENDS:
        raise ValueError(f"Unknown 'store.backend' '{backend}', expected one of {STORE_BACKENDS}")
    if backend == "mqtt" and 'host' not in store_config:
        raise ValueError("Missing 'store.host' in configuration")

    endpoint_config = config.get('endpoint') or {}
    if not isinstance(endpoint_config, dict):
        raise ValueError("'endpoint' section must be a mapping")
    base_url = _clean(endpoint_config.get('base_url'))
    if base_url and not validate_url(base_url):
        # Not fatal: HTTP paths stay disabled until the URL is fixed.
        logger.warning(f"Configured base URL '{base_url}' is invalid: {InvalidEndpoint.message}")

    return config


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def endpoint_summary(endpoint_config: Dict[str, Any]) -> Optional[EndpointSummary]:
    """Summarize the configured base URL for the display surface."""
    base_url = _clean(endpoint_config.get('base_url'))
    if base_url is None:
        return None
    return EndpointSummary(base_url=base_url, is_valid=validate_url(base_url))


def build_endpoint(endpoint_config: Dict[str, Any]) -> ControlEndpoint:
    """
    Build a ControlEndpoint from the raw 'endpoint' section.

    Raises InvalidEndpoint if a base URL is present but fails validation.
    A missing base URL yields an endpoint usable for wake only.
    """
    return ControlEndpoint(
        base_url=_clean(endpoint_config.get('base_url')),
        physical_address=_clean(endpoint_config.get('mac_address')) or "",
        last_known_ip=_clean(endpoint_config.get('ip_address')) or "",
        auth_token=_clean(endpoint_config.get('api_key')),
    )


class EndpointSource:
    """
    Re-reads the 'endpoint' section on every access.

    The settings surface may rewrite the file at any time; a missing or
    unreadable file reads as "nothing configured".
    """

    def __init__(self, path: Optional[str] = None):
        self.path = config_path(path)

    def _section(self) -> Dict[str, Any]:
        try:
            with open(self.path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            return {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read endpoint settings from '{self.path}': {e}")
            return {}
        section = config.get('endpoint') if isinstance(config, dict) else None
        return section if isinstance(section, dict) else {}

    def summary(self) -> Optional[EndpointSummary]:
        return endpoint_summary(self._section())

    def endpoint(self) -> ControlEndpoint:
        return build_endpoint(self._section())


class StaticEndpointSource:
    """Endpoint settings held in memory."""

    def __init__(self, endpoint_config: Optional[Dict[str, Any]] = None):
        self.endpoint_config = dict(endpoint_config or {})

    def summary(self) -> Optional[EndpointSummary]:
        return endpoint_summary(self.endpoint_config)

    def endpoint(self) -> ControlEndpoint:
        return build_endpoint(self.endpoint_config)
