"""
saledger: Basic Usage Example

Demonstrates:
- Ledger construction with a write-ahead journal
- Witnessing SA lifecycle events through the outbox
- Background integrity auditing
- Tamper detection
"""

import tempfile
import time
from pathlib import Path

from saledger import IntegrityAuditor, Ledger, SAEvent, WitnessService
from saledger.logging_cfg import setup_logging


def main():
    """Basic saledger usage."""
    setup_logging("INFO")

    print("=" * 60)
    print("saledger: Basic Usage Example")
    print("=" * 60)
    print()

    journal = Path(tempfile.mkdtemp()) / "chain.jsonl"

    # 1. Open (or create) the ledger
    print("1. Opening ledger...")
    ledger  = Ledger.open(journal, difficulty=3)
    service = WitnessService(ledger)
    print(f"   journal: {journal}")
    print()

    # 2. Witness a lifecycle
    print("2. Witnessing SA lifecycle...")
    sa = SAEvent.create(
        destination_address= "203.0.113.7",
        spi=                 0x1001,
        protocol=            "ESP",
        algorithm=           "aes256-gcm",
        secret_key=          "correct horse battery staple",
        lifetime=            3600,
    )
    created = service.record_create(sa)
    print(f"   CREATE        -> {created.witness_hash}")
    changed = service.record_status_change(sa, "expired")
    print(f"   STATUS_CHANGE -> {changed.witness_hash}")
    deleted = service.record_delete(sa)
    print(f"   DELETE        -> {deleted.witness_hash}")
    print()

    # 3. Audit in the background
    print("3. Auditing...")
    with IntegrityAuditor(ledger, interval=0.2) as auditor:
        time.sleep(0.3)
        print(f"   status: {auditor.status()}")
    print()

    # 4. Tamper and re-check
    print("4. Tampering with block 1...")
    ledger._blocks[1].payload["lifetime"] = 999_999
    report = ledger.validate_report()
    print(f"   valid={report.valid} failed_index={report.failed_index} reason={report.reason}")
    print()


if __name__ == "__main__":
    main()
