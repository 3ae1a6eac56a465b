"""Gateway configuration: a YAML file, ``.env`` placeholders and env overrides.

Placeholders of the form ``${VAR}`` or ``$VAR`` are filled from a ``.env``
file next to the config (read with python-dotenv, leaving ``os.environ``
untouched) and then from the process environment. ``GatewaySettings`` turns
the parsed mapping into typed settings, with environment overrides on top.
"""

from __future__ import annotations

import logging
import os
import re
from collections import ChainMap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .admission.policy import DEFAULT_DEV_KEY
from .core.exceptions import ConfigurationError

logger = logging.getLogger("anthrorouter")

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_CONFIG_PATH = "configs/config_default.yaml"

# Environment variable to override the config path
CONFIG_PATH = os.getenv("ANTHROUTER_CONFIG", DEFAULT_CONFIG_PATH)

DEFAULT_UPSTREAM_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_SITE_URL = "http://localhost:3000"
DEFAULT_APP_TITLE = "Anthropic Proxy"
DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def resolve_config_path(path: str) -> Path:
    """Resolve a relative config path against the project root."""
    candidate = Path(path)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def load_config(
    path: str | None = None,
    env_path: str | None = None,
    substitute_env: bool = True,
) -> dict:
    """Read the YAML config at ``path`` (default ``ANTHROUTER_CONFIG``).

    Raises:
        RuntimeError: If the file does not exist.
    """
    config_path = resolve_config_path(path or CONFIG_PATH)
    if not config_path.exists():
        raise RuntimeError(f"Config file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not substitute_env:
        return data

    env_file = resolve_config_path(env_path) if env_path else config_path.with_name(".env")
    dotenv: dict[str, str] = {}
    if env_file.exists():
        dotenv = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
    return expand_env_vars(data, ChainMap(dotenv, os.environ))


def expand_env_vars(value: Any, env: Mapping[str, str]) -> Any:
    """Fill ``${VAR}``/``$VAR`` placeholders inside nested dicts, lists and strings.

    Unknown variables are left as written and reported with a warning.
    """
    if isinstance(value, dict):
        return {key: expand_env_vars(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item, env) for item in value]
    if not isinstance(value, str):
        return value

    def fill(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        if name in env:
            return env[name]
        logger.warning(f"Environment variable '{name}' is not set; keeping the placeholder")
        return match.group(0)

    return _PLACEHOLDER.sub(fill, value)


def is_unresolved_placeholder(value: Any) -> bool:
    """True when ``value`` is nothing but a placeholder that was never filled."""
    return isinstance(value, str) and _PLACEHOLDER.fullmatch(value.strip()) is not None


# =============================================================================
# Typed settings
# =============================================================================


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name)
    return value if isinstance(value, Mapping) else {}


def _to_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _to_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


def _text(env_value: Optional[str], file_value: Any, default: str) -> str:
    """Pick env over file over default, skipping blanks and unfilled placeholders."""
    for candidate in (env_value, file_value):
        if candidate is None or is_unresolved_placeholder(candidate):
            continue
        text = str(candidate).strip()
        if text:
            return text
    return default


def _split_values(value: Any, name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ConfigurationError(f"{name} must be a list or string, got {value!r}")
    return tuple(
        item.strip() for item in items
        if item and item.strip() and not is_unresolved_placeholder(item)
    )


@dataclass(frozen=True)
class UpstreamSettings:
    base_url: str = DEFAULT_UPSTREAM_BASE_URL
    api_key: str = ""
    site_url: str = DEFAULT_SITE_URL
    title: str = DEFAULT_APP_TITLE
    timeout: float = 60.0

    @property
    def chat_completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


@dataclass(frozen=True)
class AdmissionSettings:
    valid_api_keys: tuple[str, ...] = ()
    dev_key: Optional[str] = DEFAULT_DEV_KEY
    key_ttl_seconds: int = 300
    rate_limit: int = 100
    rate_window_seconds: int = 60
    sweep_interval_seconds: float = 60.0


@dataclass(frozen=True)
class GatewaySettings:
    """Typed view over the YAML config plus environment overrides."""

    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("*",)
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    upstream: UpstreamSettings = field(default_factory=UpstreamSettings)
    admission: AdmissionSettings = field(default_factory=AdmissionSettings)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "GatewaySettings":
        """Build settings; environment variables take priority over the file."""
        env = os.environ if environ is None else environ

        server_cfg = _section(config, "server")
        upstream_cfg = _section(config, "upstream")
        admission_cfg = _section(config, "admission")
        logging_cfg = _section(config, "logging")

        host = _text(env.get("ANTHROUTER_HOST"), server_cfg.get("host"), "127.0.0.1")
        port = _to_int(env.get("PORT") or server_cfg.get("port", 3000), "server.port")
        cors_origins = _split_values(server_cfg.get("cors_origins", ["*"]), "server.cors_origins")
        max_body_bytes = _to_int(
            server_cfg.get("max_body_bytes", DEFAULT_MAX_BODY_BYTES), "server.max_body_bytes"
        )

        upstream = UpstreamSettings(
            base_url=_text(None, upstream_cfg.get("base_url"), DEFAULT_UPSTREAM_BASE_URL),
            api_key=_text(env.get("OPENROUTER_API_KEY"), upstream_cfg.get("api_key"), ""),
            site_url=_text(env.get("SITE_URL"), upstream_cfg.get("site_url"), DEFAULT_SITE_URL),
            title=_text(None, upstream_cfg.get("title"), DEFAULT_APP_TITLE),
            timeout=_to_float(upstream_cfg.get("timeout", 60), "upstream.timeout"),
        )

        env_keys = env.get("VALID_API_KEYS")
        raw_keys = env_keys if env_keys is not None else admission_cfg.get("valid_api_keys")
        dev_key = admission_cfg.get("dev_key", DEFAULT_DEV_KEY)

        admission = AdmissionSettings(
            valid_api_keys=_split_values(raw_keys, "admission.valid_api_keys"),
            dev_key=_text(None, dev_key, "") or None,
            key_ttl_seconds=_to_int(
                admission_cfg.get("key_ttl_seconds", 300), "admission.key_ttl_seconds"
            ),
            rate_limit=_to_int(admission_cfg.get("rate_limit", 100), "admission.rate_limit"),
            rate_window_seconds=_to_int(
                admission_cfg.get("rate_window_seconds", 60), "admission.rate_window_seconds"
            ),
            sweep_interval_seconds=_to_float(
                admission_cfg.get("sweep_interval_seconds", 60), "admission.sweep_interval_seconds"
            ),
        )

        return cls(
            host=host,
            port=port,
            log_level=_text(None, logging_cfg.get("level"), "INFO"),
            cors_origins=cors_origins,
            max_body_bytes=max_body_bytes,
            upstream=upstream,
            admission=admission,
        )
