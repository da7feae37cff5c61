"""
saledger/cli/verify.py

saledger verify: Block Journal Verification
============================================

Usage:
    saledger verify <journal>                     Human output (default)
    saledger verify <journal> --format json       Machine-readable JSON
    saledger verify <journal> --format compact    One-line pipeline output
    saledger verify <journal> --difficulty 3      Override configured difficulty
    saledger verify <journal> --quiet             Exit code only

Exit codes:
    0  Chain fully valid
    1  Chain has a violation
    2  Error  (file missing, malformed journal)
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from saledger.core.exceptions import LedgerError
from saledger.ledger.journal import BlockJournal
from saledger.ledger.ledger import ValidationReport, validate_blocks


# ── ANSI color ────────────────────────────────────────────────────────────────

class _Color:
    """
    Minimal ANSI color wrapper.
    Auto-disables when not a TTY or --no-color is passed.
    """
    _on: bool = True

    @classmethod
    def configure(cls, enabled: bool) -> None:
        cls._on = enabled and sys.stdout.isatty()

    @classmethod
    def green(cls, s: str) -> str:
        return f"\033[32m{s}\033[0m" if cls._on else s

    @classmethod
    def red(cls, s: str) -> str:
        return f"\033[31m{s}\033[0m" if cls._on else s

    @classmethod
    def bold(cls, s: str) -> str:
        return f"\033[1m{s}\033[0m" if cls._on else s

    @classmethod
    def dim(cls, s: str) -> str:
        return f"\033[2m{s}\033[0m" if cls._on else s


def _row(label: str, value: str) -> str:
    return f"  {_Color.dim(f'{label:<12}')}  {value}"


def emit_error(message: str, fmt: str = "human", quiet: bool = False) -> None:
    """Report an error in the requested format (stderr for humans)."""
    if quiet:
        return
    if fmt == "json":
        click.echo(json.dumps({"status": "error", "error": message}, indent=2))
    else:
        click.echo(f"error: {message}", err=True)


def resolve_journal(ctx: click.Context, journal: Optional[str]) -> Path:
    """JOURNAL argument, else the configured journal, else exit 2."""
    path = journal or (ctx.obj.journal if ctx.obj is not None else None)
    if not path:
        emit_error("no journal given and none configured")
        sys.exit(2)
    return Path(path)


# ── CLI command ───────────────────────────────────────────────────────────────

@click.command(name="verify")
@click.argument("journal", type=click.Path(), required=False)
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json", "compact"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--difficulty",
    type=click.IntRange(min=0),
    default=None,
    help="Required leading zeros (default from config).",
)
@click.option("--quiet", is_flag=True, default=False, help="Exit code only.")
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
@click.pass_context
def verify_command(
    ctx:        click.Context,
    journal:    Optional[str],
    fmt:        str,
    difficulty: Optional[int],
    quiet:      bool,
    no_color:   bool,
) -> None:
    """
    Verify a block journal: hashes, links, proof-of-work.

    JOURNAL is the path to a .jsonl block journal.
    """
    _Color.configure(not no_color)
    path = resolve_journal(ctx, journal)

    if not path.exists():
        emit_error(f"Journal not found: {path}", fmt, quiet)
        sys.exit(2)

    if difficulty is None:
        difficulty = ctx.obj.difficulty if ctx.obj is not None else 2

    try:
        blocks = BlockJournal(path).load()
    except LedgerError as e:
        emit_error(str(e), fmt, quiet)
        sys.exit(2)

    report = validate_blocks(blocks, difficulty)
    tip    = blocks[-1].hash if blocks else None

    if quiet:
        sys.exit(0 if report.valid else 1)

    if fmt == "json":
        click.echo(json.dumps({
            "status":     "valid" if report.valid else "invalid",
            "journal":    str(path),
            "difficulty": difficulty,
            "blocks":     len(blocks),
            "tip_hash":   tip,
            **report.to_dict(),
        }, indent=2))
    elif fmt == "compact":
        state = "VALID" if report.valid else f"INVALID@{report.failed_index}"
        click.echo(f"{state} blocks={len(blocks)} difficulty={difficulty} tip={tip}")
    else:
        _output_human(path, len(blocks), difficulty, tip, report)

    sys.exit(0 if report.valid else 1)


# ── Human output ──────────────────────────────────────────────────────────────

def _output_human(
    path:       Path,
    total:      int,
    difficulty: int,
    tip:        Optional[str],
    report:     ValidationReport,
) -> None:
    bar = "═" * 60
    click.echo()
    click.echo(_Color.bold(f"  {bar}"))
    click.echo(_Color.bold("  saledger  ·  Chain Verification"))
    click.echo(_Color.bold(f"  {bar}"))
    click.echo()
    click.echo(_row("Journal", str(path)))
    click.echo(_row("Blocks", f"{total:,}"))
    click.echo(_row("Difficulty", str(difficulty)))
    click.echo(_row("Tip", tip or "-"))
    click.echo()
    if report.valid:
        click.echo(_row("Result", _Color.green("Integrity Verified")))
    else:
        click.echo(_row("Result", _Color.red("Integrity Compromised")))
        click.echo(_row("Block", str(report.failed_index)))
        click.echo(_row("Reason", report.reason or ""))
    click.echo()
