"""Geo/IP security checks.

Neither route requires authentication: they are called before sign-in to
decide whether the client may see the login page at all.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Response, status

from lendgate.api.v1.dependencies import (
    AuditTrailDep,
    GeoLocatorDep,
    RequestMetaDep,
    SessionDep,
)
from lendgate.schemas.geo import EnhancedGeoResponse, GeoCheckResponse
from lendgate.services.geo_risk import (
    GeoRiskScorer,
    RiskAssessment,
    SqlReputationStore,
    enhanced_policy,
    us_only_policy,
)

router = APIRouter(tags=["geo"])


def _public(assessment: RiskAssessment) -> dict[str, Any]:
    payload = asdict(assessment)
    payload.pop("ip_address", None)
    return payload


@router.api_route(
    "/geo-security",
    methods=["GET", "POST"],
    response_model=GeoCheckResponse,
    responses={status.HTTP_403_FORBIDDEN: {"model": GeoCheckResponse}},
)
def geo_security(
    meta: RequestMetaDep,
    response: Response,
    db: SessionDep,
    locator: GeoLocatorDep,
    audit: AuditTrailDep,
) -> dict[str, Any]:
    """US-only access check; denied callers receive 403."""
    scorer = GeoRiskScorer(
        us_only_policy(),
        reputation=SqlReputationStore(db),
        locator=locator,
        events=audit,
    )
    assessment = scorer.assess(meta)
    if not assessment.allowed:
        response.status_code = status.HTTP_403_FORBIDDEN
    return _public(assessment)


@router.api_route(
    "/enhanced-geo-security",
    methods=["GET", "POST"],
    response_model=EnhancedGeoResponse,
)
def enhanced_geo_security(
    meta: RequestMetaDep,
    db: SessionDep,
    audit: AuditTrailDep,
) -> dict[str, Any]:
    """Additive risk scoring; the verdict is in the body, the status is 200."""
    policy = enhanced_policy()
    scorer = GeoRiskScorer(policy, reputation=SqlReputationStore(db), events=audit)
    assessment = scorer.assess(meta)
    return {
        **_public(assessment),
        "strict_mode": policy.strict_mode,
        "blocked_countries": sorted(policy.sanctioned_countries),
        "allowed_countries": sorted(policy.allowed_countries) if policy.strict_mode else None,
    }
