"""Client configuration loading with precedence resolution.

A :class:`~vrest.models.ClientConfig` is resolved from, highest first:

1. explicit overrides passed to :func:`resolve_client_config`;
2. environment variables (``VREST_BASE_URL``, ``VREST_CONTENT_TYPE``,
   ``VREST_TIMEOUT``, ``VREST_RESPONSE_BODY_LIMIT``);
3. a JSON config file (``VREST_CONFIG`` or the *config_path* argument);
4. model defaults.

Secrets in the file may be given as credential sources and are resolved by
:func:`resolve_credential`.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from vrest.exceptions import ConfigError
from vrest.models import ClientConfig

_ENV_CONFIG = "VREST_CONFIG"
_ENV_FIELDS = {
    "VREST_BASE_URL": "base_url",
    "VREST_CONTENT_TYPE": "content_type",
    "VREST_TIMEOUT": "timeout",
    "VREST_RESPONSE_BODY_LIMIT": "response_body_limit",
}


def load_config_file(path: str | Path) -> ClientConfig:
    """Load and validate a JSON client config file.

    Credential sources in ``oauth.client_secret`` are resolved.

    Raises:
        ConfigError: If the file is missing, is not valid JSON, fails
            validation, or references an unresolvable credential.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        config = ClientConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc

    if config.oauth is not None and config.oauth.client_secret:
        config.oauth.client_secret = resolve_credential(config.oauth.client_secret)
    return config


def resolve_client_config(
    config_path: Optional[str | Path] = None,
    **overrides: Any,
) -> ClientConfig:
    """Resolve the effective client configuration.

    Args:
        config_path: JSON config file; falls back to ``$VREST_CONFIG``.
        **overrides: Field values that win over everything else. ``None``
            values are ignored so CLI options can be passed through as-is.

    Raises:
        ConfigError: If the config file or an environment value is invalid.
    """
    config_path = config_path or os.environ.get(_ENV_CONFIG)
    base = load_config_file(config_path) if config_path else ClientConfig()

    data = base.model_dump()
    for var, field in _ENV_FIELDS.items():
        value = os.environ.get(var)
        if value:
            data[field] = value
    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        config = ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid client configuration: {exc}") from exc
    return config


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads the file, stripped of whitespace
        - anything else -- used literally

    Raises:
        ConfigError: If the variable is unset or the file is unreadable.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    return source
