"""
saledger/audit/auditor.py

Periodic integrity auditor.

Re-runs ledger validation on a fixed interval and keeps the last result
for status displays and health checks. Strictly read-only: it never
appends, seals, or repairs anything.

Threading model:
  - a single daemon thread runs _run_loop();
  - the loop sleeps on a threading.Event, so stop() wakes it at once;
  - start() and stop() are idempotent;
  - each loop has its own stop event, so a restart never revives a
    loop that is still finishing its last check.
"""

import logging
import threading
from typing import Any, Dict, Optional

from saledger.core.time import now_ms
from saledger.ledger.ledger import Ledger, ValidationReport


logger = logging.getLogger(__name__)

DEFAULT_AUDIT_INTERVAL = 30.0


class IntegrityAuditor:
    """Background validator for one ledger."""

    def __init__(self, ledger: Ledger, interval: float = DEFAULT_AUDIT_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")
        self._ledger   = ledger
        self._interval = float(interval)

        self._thread: Optional[threading.Thread] = None
        self._stop   = threading.Event()
        self._lock   = threading.RLock()

        self._last_result:     Optional[bool]             = None
        self._last_checked_at: Optional[int]              = None
        self._last_report:     Optional[ValidationReport] = None
        self._checks_run:      int                        = 0

    # ── Results ───────────────────────────────────────────────

    @property
    def last_result(self) -> Optional[bool]:
        """Outcome of the latest check; None before the first one."""
        with self._lock:
            return self._last_result

    @property
    def last_checked_at(self) -> Optional[int]:
        """Millisecond timestamp of the latest check."""
        with self._lock:
            return self._last_checked_at

    @property
    def last_report(self) -> Optional[ValidationReport]:
        with self._lock:
            return self._last_report

    @property
    def running(self) -> bool:
        with self._lock:
            return self._is_running()

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "last_result":     self._last_result,
                "last_checked_at": self._last_checked_at,
                "checks_run":      self._checks_run,
                "interval":        self._interval,
                "running":         self._is_running(),
            }

    # ── Checks ────────────────────────────────────────────────

    def run_once(self) -> bool:
        """Validate the ledger now and record the outcome."""
        report = self._ledger.validate_report()
        with self._lock:
            self._last_report     = report
            self._last_result     = report.valid
            self._last_checked_at = now_ms()
            self._checks_run     += 1
        if not report.valid:
            logger.warning(
                "Integrity compromised: block %s, %s",
                report.failed_index, report.reason,
            )
        else:
            logger.debug("Integrity verified: %d blocks", report.checked)
        return report.valid

    # ── Scheduling ────────────────────────────────────────────

    def start(self) -> None:
        """
        Start the periodic loop if it is not already running.
        The first check runs immediately.
        """
        with self._lock:
            if self._is_running():
                return
            # each loop owns its event, so a stopped loop is never revived
            self._stop   = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._stop,),
                name="saledger-integrity-auditor",
                daemon=True,
            )
            logger.info("IntegrityAuditor starting, interval=%.1fs", self._interval)
            self._thread.start()

    def stop(self, join: bool = True, timeout: Optional[float] = 5.0) -> None:
        """
        Signal the loop to stop.

        If join=True, wait (up to `timeout` seconds) for the thread to exit.
        A loop still finishing a check after the wait exits on its own once
        the check returns; it never schedules another one.
        """
        with self._lock:
            t = self._thread
            if t is None:
                return
            self._stop.set()
        if join:
            t.join(timeout=timeout)
        with self._lock:
            if t.is_alive():
                if join:
                    logger.warning("IntegrityAuditor check still running after stop")
                return
            if self._thread is t:
                self._thread = None
        logger.info("IntegrityAuditor stopped")

    def __enter__(self) -> "IntegrityAuditor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._stop.is_set()
        )

    def _run_loop(self, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                self.run_once()
            except Exception:
                # keep the schedule alive; the failure is in the log
                logger.exception("IntegrityAuditor check raised")
            stop.wait(timeout=self._interval)
