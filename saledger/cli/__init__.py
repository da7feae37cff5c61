"""
saledger/cli/__init__.py

saledger CLI: root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    saledger = "saledger.cli:cli"

Adding a new command:
    1. Create saledger/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

from typing import Optional

import click
import yaml

from saledger.cli.records import append_command, export_command, show_command
from saledger.cli.verify import verify_command
from saledger.config import LedgerConfig
from saledger.core.exceptions import SALedgerError
from saledger.logging_cfg import setup_logging


@click.group()
@click.version_option(package_name="saledger")
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML configuration file. SALEDGER_* environment variables override it.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (default from config, else INFO).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]) -> None:
    """
    saledger: SA lifecycle witness ledger.

    \b
    Commands:
      verify    Validate a block journal (hashes, links, proof-of-work).
      append    Witness one SA lifecycle event.
      show      Print the block with a given witness hash.
      export    Dump the chain and its validation result as JSON.

    \b
    Quick start:
      saledger append chain.jsonl --destination 10.0.0.1 --spi 256 \\
          --protocol ESP --algorithm aes-gcm --key s3cret --lifetime 3600
      saledger verify chain.jsonl
      saledger verify chain.jsonl --quiet && echo "clean"
    """
    try:
        config = LedgerConfig.load(config_path)
    except (SALedgerError, yaml.YAMLError) as e:
        raise click.UsageError(str(e))
    setup_logging(log_level or config.log_level)
    ctx.obj = config


cli.add_command(verify_command)
cli.add_command(append_command)
cli.add_command(show_command)
cli.add_command(export_command)
