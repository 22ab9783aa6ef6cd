"""
ethfaucet/cli.py

Command-line entry point.

Run with: ethfaucet serve
      or: python -m ethfaucet serve
"""

import json
import logging
import sys

import click
import trio

from .api import FaucetAPI
from .config import FaucetConfig
from .faucet import Faucet
from .metrics import FaucetMetrics

logger = logging.getLogger("ethfaucet.cli")

LOG_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def load_config(host=None, port=None, log_level=None) -> FaucetConfig:
    """Environment config with command-line overrides applied."""
    config = FaucetConfig.from_env()
    if host:
        config.host = host
    if port:
        config.port = port
    if log_level:
        config.log_level = log_level.upper()
    return config


@click.group()
def main():
    """Testnet ETH faucet."""


@main.command()
@click.option('--host', default=None, help='Address to bind (default: FAUCET_HOST or 127.0.0.1)')
@click.option('--port', type=int, default=None, help='Port to listen on (default: FAUCET_PORT or 3000)')
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    default=None,
    help='Logging level (default: FAUCET_LOG_LEVEL or INFO)',
)
def serve(host, port, log_level):
    """Run the faucet HTTP API."""
    config = load_config(host, port, log_level)
    configure_logging(config.log_level)

    for problem in config.validate():
        logger.warning(f"Configuration: {problem}")

    metrics = FaucetMetrics()
    faucet = Faucet.from_config(config, metrics=metrics)
    api = FaucetAPI(faucet, config, metrics=metrics)

    if faucet.address:
        logger.info(f"Faucet wallet: {faucet.address}")
    logger.info(f"RPC endpoints: {len(config.rpc_endpoints)} configured")

    try:
        trio.run(api.start)
    except KeyboardInterrupt:
        logger.info("Faucet stopped")
    except Exception as e:
        logger.error(f"Faucet error: {type(e).__name__}: {e}")
        sys.exit(1)


@main.command()
@click.option('--log-level', default='WARNING', help='Logging level')
def check(log_level):
    """Probe the RPC endpoints and report the faucet wallet balance."""
    config = load_config(log_level=log_level)
    configure_logging(config.log_level)

    problems = config.validate()
    for problem in problems:
        click.echo(f"config: {problem}", err=True)
    if not config.rpc_endpoints:
        sys.exit(2)

    faucet = Faucet.from_config(config)
    try:
        info = trio.run(faucet.status)
    except Exception as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(info, indent=2))


if __name__ == "__main__":
    main()
