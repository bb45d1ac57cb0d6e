"""Geo-security check response schemas."""

from pydantic import BaseModel, Field


class GeoCheckResponse(BaseModel):
    """Outcome of a geo/IP risk assessment."""

    allowed: bool
    risk_score: int | None = Field(None, description="Additive risk score; absent for invalid IPs")
    risk_factors: list[str] = Field(default_factory=list)
    security_level: str
    reason: str
    country_code: str | None = None


class EnhancedGeoResponse(GeoCheckResponse):
    strict_mode: bool
    blocked_countries: list[str]
    allowed_countries: list[str] | None = Field(
        None, description="Only reported when strict mode is on"
    )
