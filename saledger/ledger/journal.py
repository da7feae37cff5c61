"""
saledger/ledger/journal.py

Write-ahead block journal.

One sealed block per line, as Block.to_dict() JSON. A block is committed
only once its line has been flushed and fsync'ed; the ledger publishes the
block in memory after append() returns, never before.

The journal is trusted on load only as far as JSON parsing goes. The
ledger re-validates every block before accepting a replayed chain.
"""

import json
import logging
import os
import warnings
from pathlib import Path
from typing import List, Union

from saledger.core.block import Block
from saledger.core.exceptions import LedgerError


logger = logging.getLogger(__name__)


class BlockJournal:
    """Append-only JSONL file of sealed blocks."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.dropped_tail = False

    def exists(self) -> bool:
        return self.path.exists() and self.path.stat().st_size > 0

    def append(self, block: Block) -> None:
        """
        Append one block as a newline-terminated JSON line.
        Raises LedgerError on any I/O failure.
        The ledger MUST NOT publish the block if this raises.

        On failure the file is truncated back to its prior length, so a
        partly written or unsynced line never survives an unpublished block.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        size = self.path.stat().st_size if self.path.exists() else 0
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(block.to_dict(), ensure_ascii=False) + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            self._truncate(size)
            raise LedgerError(
                f"journal write failed: {exc}", {"path": str(self.path)}
            ) from exc

    def load(self) -> List[Block]:
        """
        Read every block in file order.

        A truncated final line (torn write) is dropped with a RuntimeWarning.
        Any other malformed line raises LedgerError.
        """
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                lines = [line.strip() for line in f]
        except OSError as exc:
            raise LedgerError(
                f"failed to read journal: {exc}", {"path": str(self.path)}
            ) from exc

        numbered = [(n, line) for n, line in enumerate(lines, 1) if line]
        blocks: List[Block] = []

        for pos, (line_num, line) in enumerate(numbered):
            try:
                blocks.append(Block.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError) as exc:
                if pos == len(numbered) - 1 and isinstance(exc, json.JSONDecodeError):
                    self.dropped_tail = True
                    warnings.warn(
                        f"BlockJournal: dropping unreadable last line {line_num} "
                        f"of {self.path}: {exc}",
                        RuntimeWarning,
                        stacklevel=2,
                    )
                    break
                raise LedgerError(
                    f"invalid journal line {line_num}: {exc}",
                    {"path": str(self.path)},
                ) from exc

        logger.debug("Loaded %d blocks from %s", len(blocks), self.path)
        return blocks

    def rewrite(self, blocks: List[Block]) -> None:
        """
        Atomically replace the journal with exactly `blocks`.
        Used after a torn tail was dropped, so later appends start clean.
        """
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                for block in blocks:
                    f.write(json.dumps(block.to_dict(), ensure_ascii=False) + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError as exc:
            if temp_path.exists():
                temp_path.unlink()
            raise LedgerError(
                f"journal rewrite failed: {exc}", {"path": str(self.path)}
            ) from exc
        self.dropped_tail = False

    def _truncate(self, size: int) -> None:
        """Roll the file back to `size` bytes after a failed append."""
        try:
            os.truncate(self.path, size)
        except OSError as exc:
            # the caller still raises; a leftover tail is dropped on next load
            logger.error(
                "Could not roll back journal %s to %d bytes: %s",
                self.path, size, exc,
            )

    def __repr__(self) -> str:
        return f"BlockJournal(path={str(self.path)!r})"
