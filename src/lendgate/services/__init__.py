# src/lendgate/services/__init__.py
"""Business logic services for the Lendgate application."""

from .audit import AuditTrail
from .gate import CallerContext, GateEvent, GateOutcome, GatePolicy, RequestGate
from .geo_risk import GeoPolicy, GeoRiskScorer, RiskAssessment
from .mfa import DatabaseStepUpVerifier
from .rate_limit import RateLimiter, RateLimitPolicy
from .scanning import DocumentScanner

__all__ = [
    "AuditTrail",
    "CallerContext",
    "DatabaseStepUpVerifier",
    "DocumentScanner",
    "GateEvent",
    "GateOutcome",
    "GatePolicy",
    "GeoPolicy",
    "GeoRiskScorer",
    "RateLimitPolicy",
    "RateLimiter",
    "RequestGate",
    "RiskAssessment",
]
