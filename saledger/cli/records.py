"""
saledger/cli/records.py

saledger append / show / export

    saledger append <journal> --destination ... --spi ... --key ...   Witness one event
    saledger show   <journal> <hash>                                  Print one block
    saledger export <journal> [--output PATH]                         Dump chain as JSON

append and export open the journal through Ledger.open(), so a broken
chain is refused (exit 2) before anything is written.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from saledger.cli.verify import emit_error, resolve_journal
from saledger.core.block import is_hash_hex
from saledger.core.exceptions import SALedgerError
from saledger.core.models import LifecycleAction, Protocol, SAEvent, SAStatus
from saledger.ledger.ledger import Ledger
from saledger.ledger.outbox import Outbox, WitnessService


def _open_ledger(ctx: click.Context, journal: Optional[str]) -> Ledger:
    path = resolve_journal(ctx, journal)
    try:
        return Ledger.open(path, **ctx.obj.ledger_kwargs())
    except SALedgerError as e:
        emit_error(str(e))
        sys.exit(2)


# ── append ────────────────────────────────────────────────────────────────────

@click.command(name="append")
@click.argument("journal", type=click.Path(), required=False)
@click.option("--destination", required=True, help="SA destination address.")
@click.option("--spi", type=click.IntRange(min=0), required=True, help="Security Parameter Index.")
@click.option(
    "--protocol",
    type=click.Choice([Protocol.ESP, Protocol.AH]),
    required=True,
)
@click.option("--algorithm", required=True, help="Encryption/authentication algorithm.")
@click.option("--key", "secret_key", default=None, help="Raw secret key (hashed, never stored).")
@click.option("--key-hash", default=None, help="SHA-256 hex of the secret key.")
@click.option("--lifetime", type=click.IntRange(min=1), required=True, help="Lifetime in seconds.")
@click.option(
    "--status",
    type=click.Choice([SAStatus.ACTIVE, SAStatus.EXPIRED, SAStatus.PENDING, SAStatus.DELETED]),
    default=SAStatus.ACTIVE,
    show_default=True,
)
@click.option(
    "--action",
    type=click.Choice([
        LifecycleAction.CREATE,
        LifecycleAction.UPDATE,
        LifecycleAction.DELETE,
        LifecycleAction.STATUS_CHANGE,
    ]),
    default=LifecycleAction.CREATE,
    show_default=True,
)
@click.pass_context
def append_command(
    ctx:         click.Context,
    journal:     Optional[str],
    destination: str,
    spi:         int,
    protocol:    str,
    algorithm:   str,
    secret_key:  Optional[str],
    key_hash:    Optional[str],
    lifetime:    int,
    status:      str,
    action:      str,
) -> None:
    """Witness one SA lifecycle event and print its witness hash."""
    ledger = _open_ledger(ctx, journal)

    try:
        event = SAEvent.create(
            destination_address= destination,
            spi=                 spi,
            protocol=            protocol,
            algorithm=           algorithm,
            lifetime=            lifetime,
            status=              status,
            secret_key=          secret_key,
            key_hash=            key_hash,
        )
        outbox  = Outbox(ctx.obj.outbox) if ctx.obj.outbox else None
        service = WitnessService(ledger, outbox)
        service.reconcile()
        entry = service.witness(action, event)
    except SALedgerError as e:
        emit_error(str(e))
        sys.exit(2)

    click.echo(entry.witness_hash)


# ── show ──────────────────────────────────────────────────────────────────────

@click.command(name="show")
@click.argument("journal", type=click.Path())
@click.argument("block_hash")
@click.pass_context
def show_command(ctx: click.Context, journal: str, block_hash: str) -> None:
    """Print the block whose hash is BLOCK_HASH (exit 1 if absent)."""
    if not is_hash_hex(block_hash):
        emit_error(f"not a 64-char lowercase hex hash: {block_hash}")
        sys.exit(2)

    block = _open_ledger(ctx, journal).get_by_hash(block_hash)
    if block is None:
        click.echo(f"not found: {block_hash}", err=True)
        sys.exit(1)
    click.echo(json.dumps(block.to_dict(), indent=2))


# ── export ────────────────────────────────────────────────────────────────────

@click.command(name="export")
@click.argument("journal", type=click.Path(), required=False)
@click.option(
    "--output", "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write to this file instead of stdout.",
)
@click.pass_context
def export_command(ctx: click.Context, journal: Optional[str], output_path: Optional[str]) -> None:
    """Export the chain with its validation result for audit."""
    ledger = _open_ledger(ctx, journal)
    report = ledger.validate_report()

    document = json.dumps({
        "stats":      ledger.get_stats(),
        "validation": report.to_dict(),
        "blocks":     [b.to_dict() for b in ledger.snapshot()],
    }, indent=2)

    if output_path:
        Path(output_path).write_text(document + "\n", encoding="utf-8")
        click.echo(f"exported {len(ledger)} blocks to {output_path}", err=True)
    else:
        click.echo(document)
