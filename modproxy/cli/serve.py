"""CLI commands to run the proxy and inspect its configuration"""

import sys
from pathlib import Path
from typing import Optional

import click

from modproxy.cli.debug import debug_option
from modproxy.cli.utils.logging import logger
from modproxy.config import ProxyConfig, load_config
from modproxy.exceptions import ConfigError
from modproxy.server import create_app


_CONFIG_OPTIONS = [
    click.option(
        "--config",
        "config_path",
        type=click.Path(dir_okay=False),
        default=None,
        help="INI file with a [proxy] section (default: XDG config location).",
    ),
    click.option("--host", default=None, help="Interface to listen on."),
    click.option("--port", type=int, default=None, help="Port to listen on."),
    click.option(
        "--cache-dir",
        type=click.Path(file_okay=False),
        default=None,
        help="Module cache directory.",
    ),
    click.option(
        "--source",
        "source_namespace",
        default=None,
        help="Module path prefix served by this proxy, e.g. example.com/org.",
    ),
    click.option(
        "--destination",
        "destination_root",
        default=None,
        help="Git host root the modules live under, e.g. github.com/org.",
    ),
    click.option("--user", default=None, help="User name sent with the token."),
    click.option("--list-timeout", type=float, default=None, help="Seconds allowed for a tag listing."),
    click.option("--fetch-timeout", type=float, default=None, help="Seconds a request waits for a fetch."),
    click.option("--max-fetches", type=int, default=None, help="Fetches allowed to run at once."),
    click.option(
        "--mutable-ttl",
        type=float,
        default=None,
        help="Seconds before a branch-backed entry is fetched again (negative: never).",
    ),
    click.option("--clone-depth", type=int, default=None, help="History depth fetched (0: full)."),
]


def config_options(fn):
    """Attach the configuration options shared by all commands."""
    for option in reversed(_CONFIG_OPTIONS):
        fn = option(fn)
    return fn


def resolve_config(config_path: Optional[str], overrides: dict) -> ProxyConfig:
    """Load the configuration, exiting with status 1 if it is incomplete."""
    try:
        return load_config(
            Path(config_path) if config_path else None, overrides=overrides
        )
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


@click.command("serve")
@debug_option
@config_options
def serve(config_path, **overrides):
    """Serve the module proxy protocol.

    The destination token is read from GITHUB_TOKEN or the config file,
    never from the command line.

    Example:

      GITHUB_TOKEN=... modproxy serve --source example.com/org --destination github.com/org
    """
    cfg = resolve_config(config_path, overrides)

    try:
        cfg.cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create cache directory {cfg.cache_dir}: {e}")
        sys.exit(1)

    logger.info(f"Proxy module cache directory: {cfg.cache_dir}")
    logger.info(f"Mapping modules from {cfg.source_namespace} to {cfg.destination_root}")
    logger.info(f"Starting server on {cfg.host}:{cfg.port}")

    app = create_app(cfg)
    app.run(host=cfg.host, port=cfg.port, threaded=True)


@click.command("config")
@debug_option
@config_options
def config(config_path, **overrides):
    """Print the resolved configuration (token masked)."""
    cfg = resolve_config(config_path, overrides)
    for key, value in cfg.masked().items():
        click.echo(f"{key} = {value}")
