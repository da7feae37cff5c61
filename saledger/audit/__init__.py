"""
saledger Audit - periodic, read-only integrity checks.
"""

from saledger.audit.auditor import IntegrityAuditor

__all__ = ["IntegrityAuditor"]
