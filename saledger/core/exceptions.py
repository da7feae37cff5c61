"""
saledger Exception Hierarchy

All exceptions inherit from SALedgerError for easy catching.
"""


class SALedgerError(Exception):
    """Base exception for all saledger errors"""

    retryable = False

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(SALedgerError):
    """Raised when an event payload fails schema validation"""
    pass


class IntegrityError(SALedgerError):
    """Raised when a persisted chain fails integrity verification"""
    pass


class LedgerError(SALedgerError):
    """Raised when ledger operations fail"""
    pass


class SealTimeoutError(LedgerError):
    """Raised when the nonce search exceeds its configured bound"""

    retryable = True


class OutboxError(SALedgerError):
    """Raised when outbox bookkeeping fails"""
    pass
