"""Command line entry point.

Usage:
    homers --config homers.toml          # serve /metrics
    homers --config homers.toml -vv      # with debug logging
    homers --config homers.toml --check  # validate and list instances
"""

import logging
import sys

import click
import uvicorn

from homers import __version__
from homers.adapters.frameworks.asgi import create_asgi_app
from homers.adapters.logging import configure_logging
from homers.core.aggregator import Aggregator
from homers.core.config import load_config, resolve_descriptors
from homers.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _log_level(verbose: int, quiet: bool) -> int:
    if quiet:
        return logging.WARNING
    if verbose >= 1:
        return logging.DEBUG
    return logging.INFO


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    envvar="HOMERS_CONFIG",
    default="homers.toml",
    show_default=True,
    help="Path to the TOML configuration file",
)
@click.option("--verbose", "-v", count=True, help="Increase log verbosity")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
@click.option("--check", is_flag=True, help="Validate the configuration and exit")
@click.version_option(version=__version__, prog_name="homers")
def main(config_path: str, verbose: int, quiet: bool, check: bool) -> None:
    """Serve Prometheus metrics aggregated from home media services."""
    configure_logging(_log_level(verbose, quiet))
    try:
        config = load_config(config_path)
        descriptors = resolve_descriptors(config)
    except ConfigurationError as exc:
        click.secho(f"Configuration error: {exc}", fg="red", err=True)
        sys.exit(1)

    if check:
        for descriptor in descriptors:
            click.echo(f"{descriptor.identity}\t{descriptor.address}")
        return

    aggregator = Aggregator(descriptors, request_timeout=config.http.deadline)
    app = create_asgi_app(aggregator, deadline=config.http.deadline)
    logger.info(
        "Serving %d instance(s) on http://%s:%d/metrics",
        len(descriptors),
        config.http.address,
        config.http.port,
    )
    uvicorn.run(
        app,
        host=config.http.address,
        port=config.http.port,
        log_config=None,
        lifespan="on",
    )


if __name__ == "__main__":
    main()
