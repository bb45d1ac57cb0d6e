# src/lendgate/models/__init__.py
"""SQLAlchemy models for the Lendgate service."""

from .audit import AuditLog
from .rate_limit import RateLimitRecord
from .records import BlockchainRecord, DocumentScanResult
from .security import IpReputation, SecurityEvent, StepUpToken
from .user import UserAccount, UserRole

__all__ = [
    "AuditLog",
    "RateLimitRecord",
    "BlockchainRecord", "DocumentScanResult",
    "IpReputation", "SecurityEvent", "StepUpToken",
    "UserAccount", "UserRole",
]
