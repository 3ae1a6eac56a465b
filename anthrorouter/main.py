"""Main entry point for the AnthroRouter gateway.

Run with either:
    anthrorouter --config configs/config_default.yaml
    uvicorn anthrorouter.main:get_app --factory

Configuration is read when the server starts, never at import time.
"""

import argparse
import logging
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI

from . import config_loader
from .app import create_app
from .config_loader import GatewaySettings, load_config
from .logging import setup_logging

logger = logging.getLogger("anthrorouter")


def load_settings(config_path: Optional[str] = None) -> GatewaySettings:
    """Build settings from ``config_path``, or from ``ANTHROUTER_CONFIG``.

    An explicit path must exist. When none is given and the default file is
    not installed alongside the package, built-in defaults plus environment
    overrides are used instead.

    Raises:
        RuntimeError: If an explicitly requested config file does not exist.
    """
    if config_path:
        return GatewaySettings.from_config(load_config(config_path))

    default_path = config_loader.resolve_config_path(config_loader.CONFIG_PATH)
    if not default_path.exists():
        logger.warning(
            f"Config file {default_path} not found; using built-in defaults "
            "and environment overrides"
        )
        return GatewaySettings.from_config({})
    return GatewaySettings.from_config(load_config(str(default_path)))


def get_app() -> FastAPI:
    """Application factory for ``uvicorn --factory``."""
    settings = load_settings()
    setup_logging(settings.log_level)
    app = create_app(settings)
    logger.info("FastAPI application created")
    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="anthrorouter",
        description="Serve Anthropic Messages API clients from an OpenAI-compatible upstream.",
    )
    parser.add_argument("--config", help="Path to the YAML config file")
    parser.add_argument("--host", help="Bind address (overrides config)")
    parser.add_argument("--port", type=int, help="Bind port (overrides config)")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG or INFO")
    return parser


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Console script entry point."""
    args = build_parser().parse_args(argv)

    settings = load_settings(args.config)
    log_level = args.log_level or settings.log_level
    setup_logging(log_level)

    application = create_app(settings)
    logger.info("FastAPI application created")

    uvicorn.run(
        application,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=log_level.lower(),
    )


__all__ = ["build_parser", "get_app", "load_settings", "run"]


if __name__ == "__main__":
    run()
