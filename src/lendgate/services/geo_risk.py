"""Geo/IP risk scoring for incoming requests.

A single :class:`GeoRiskScorer` evaluates a request against a
:class:`GeoPolicy`. Two policies ship with the service:

``enhanced``
    Additive scoring over country, user agent and stored IP reputation,
    with the country taken from the CDN ``cf-ipcountry`` header.
``us_only``
    US-only access: any non-US or unresolvable country, Tor indicator or
    headless browser blocks outright. Private addresses bypass the check
    and the country is resolved over HTTP.
"""

from __future__ import annotations

import ipaddress
import re
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final, Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lendgate.core.secure_logger import SecureLogger
from lendgate.core.settings import settings
from lendgate.db.time import utcnow
from lendgate.models.security import IpReputation

logger = SecureLogger(__name__)

DEFAULT_CLIENT_IP: Final[str] = "127.0.0.1"
UNKNOWN_COUNTRY: Final[str] = "UNKNOWN"
LOCAL_COUNTRY: Final[str] = "LOCAL"

SANCTIONED_COUNTRIES: Final[frozenset[str]] = frozenset(
    {"KP", "IR", "CU", "SY", "RU", "BY", "VE", "MM"}
)
ALLOWED_COUNTRIES: Final[frozenset[str]] = frozenset({"US", "CA", "GB", "AU", "NZ"})

PRIVATE_NETWORKS: Final[tuple[ipaddress.IPv4Network, ...]] = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "0.0.0.0/8",
        "224.0.0.0/8",
    )
)

_IPV4_RE = re.compile(
    r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
    r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
)


def _patterns(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(source, re.IGNORECASE) for source in sources)


@dataclass(frozen=True)
class RiskWeights:
    """Score contributed by each risk factor; zero disables the factor."""

    sanctioned_country: int = 100
    country_not_allowed: int = 70
    unknown_country: int = 20
    private_ip_discount: int = 20
    vpn: int = 40
    automation: int = 50
    tor: int = 0
    suspicious_user_agent: int = 30
    blocked_ip: int = 80


@dataclass(frozen=True)
class GeoPolicy:
    """Everything that distinguishes one geo check from another."""

    name: str
    sanctioned_countries: frozenset[str] = SANCTIONED_COUNTRIES
    allowed_countries: frozenset[str] = ALLOWED_COUNTRIES
    strict_mode: bool = False
    weights: RiskWeights = field(default_factory=RiskWeights)
    vpn_patterns: tuple[re.Pattern[str], ...] = _patterns(
        r"vpn", r"proxy", r"tunnel", r"tor\s", r"anonymous", r"hide\s*my"
    )
    automation_patterns: tuple[re.Pattern[str], ...] = _patterns(
        r"headless",
        r"phantom",
        r"selenium",
        r"chromedriver",
        r"puppeteer",
        r"playwright",
        r"webdriver",
        r"bot\b",
        r"crawler",
        r"spider",
    )
    tor_headers: tuple[str, ...] = ()
    tor_patterns: tuple[re.Pattern[str], ...] = ()
    min_user_agent_length: int = 10
    block_threshold: int = 80
    event_threshold: int = 40
    reputation_allow_threshold: int = 50
    private_ip_bypass: bool = False
    geolocate: bool = False
    fail_open: bool = True
    blocked_event_type: str = "geo_access_blocked"
    high_risk_event_type: str = "high_risk_geo_access"
    granted_reason: str = "Access granted"
    denied_reason: str = "Access denied due to geographic or security restrictions"


def enhanced_policy() -> GeoPolicy:
    return GeoPolicy(
        name="enhanced",
        strict_mode=settings.geo_strict_mode,
        fail_open=settings.geo_fail_open,
    )


def us_only_policy() -> GeoPolicy:
    return GeoPolicy(
        name="us_only",
        allowed_countries=frozenset({"US"}),
        strict_mode=True,
        weights=RiskWeights(
            country_not_allowed=100,
            unknown_country=100,
            private_ip_discount=0,
            vpn=0,
            automation=100,
            tor=100,
            suspicious_user_agent=0,
            blocked_ip=0,
        ),
        vpn_patterns=(),
        automation_patterns=_patterns(r"phantom", r"headless"),
        tor_headers=("tor-exit-node", "x-tor"),
        tor_patterns=_patterns(r"tor browser"),
        event_threshold=80,
        reputation_allow_threshold=80,
        private_ip_bypass=True,
        geolocate=True,
        fail_open=settings.geo_fail_open,
        blocked_event_type="geo_restriction_blocked",
        granted_reason="Access allowed",
        denied_reason="Access restricted to US locations only",
    )


@dataclass(frozen=True)
class RequestMeta:
    """The parts of an HTTP request the scorer looks at."""

    headers: Mapping[str, str]
    peer_host: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "headers", {key.lower(): value for key, value in self.headers.items()}
        )

    @classmethod
    def from_request(cls, request: Any) -> RequestMeta:
        client = getattr(request, "client", None)
        return cls(headers=dict(request.headers), peer_host=client.host if client else None)

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")


@dataclass(frozen=True)
class RiskAssessment:
    allowed: bool
    risk_score: int | None
    risk_factors: list[str]
    security_level: str
    reason: str
    country_code: str | None = None
    ip_address: str | None = None


class GeoLookupError(Exception):
    """Raised when a geolocation provider cannot answer."""


class GeoLocator(Protocol):
    def country_for(self, ip_address: str) -> str | None:
        """Return the ISO country code for an address, or None if unknown."""
        ...


class HttpGeoLocator:
    """Resolve countries through a JSON geolocation API such as ipapi.co."""

    def __init__(
        self,
        url_template: str | None = None,
        *,
        timeout_seconds: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.url_template = url_template or settings.geo_lookup_url
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout_seconds or settings.geo_lookup_timeout_seconds)
        )

    def country_for(self, ip_address: str) -> str | None:
        try:
            response = self._client.get(self.url_template.format(ip=ip_address))
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as err:
            raise GeoLookupError(str(err)) from err
        country = payload.get("country_code") if isinstance(payload, dict) else None
        return country.upper() if isinstance(country, str) and country else None

    def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        self._client.close()


class _GeoLocatorSingleton:
    """Process-wide :class:`HttpGeoLocator`, closed at application shutdown."""

    _instance: HttpGeoLocator | None = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> HttpGeoLocator:
        with cls._lock:
            if cls._instance is None:
                cls._instance = HttpGeoLocator()
            return cls._instance

    @classmethod
    def close(cls) -> None:
        with cls._lock:
            if cls._instance is not None:
                cls._instance.close()
                cls._instance = None


def get_http_geo_locator() -> HttpGeoLocator:
    """Return the shared HTTP geolocation client."""
    return _GeoLocatorSingleton.get_instance()


def close_http_geo_locator() -> None:
    _GeoLocatorSingleton.close()


class ReputationStore(Protocol):
    def get(self, ip_address: str) -> IpReputation | None: ...

    def touch(self, record: IpReputation) -> None: ...

    def record_new(
        self,
        ip_address: str,
        *,
        is_allowed: bool,
        risk_level: str,
        country_code: str | None,
        notes: str,
    ) -> None: ...


class SqlReputationStore:
    """IP reputation kept in the ``ip_restrictions`` table."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self._clock = clock

    def get(self, ip_address: str) -> IpReputation | None:
        return self.db.execute(
            select(IpReputation).where(IpReputation.ip_address == ip_address)
        ).scalar_one_or_none()

    def touch(self, record: IpReputation) -> None:
        record.last_seen = self._clock()
        self.db.commit()

    def record_new(
        self,
        ip_address: str,
        *,
        is_allowed: bool,
        risk_level: str,
        country_code: str | None,
        notes: str,
    ) -> None:
        """Insert a first sighting, or touch the row a concurrent request wrote."""
        self.db.add(
            IpReputation(
                ip_address=ip_address,
                is_allowed=is_allowed,
                risk_level=risk_level,
                country_code=country_code,
                last_seen=self._clock(),
                notes=notes,
            )
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get(ip_address)
            if existing is None:
                raise
            self.touch(existing)


class SecurityEventSink(Protocol):
    def record_event(
        self,
        event_type: str,
        severity: str,
        *,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> Any: ...


def extract_client_ip(meta: RequestMeta) -> str:
    """Pick the client address from proxy headers, then the socket peer."""
    forwarded = meta.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip() if forwarded else ""
    for candidate in (
        first_hop,
        meta.headers.get("x-real-ip", "").strip(),
        meta.headers.get("cf-connecting-ip", "").strip(),
        (meta.peer_host or "").strip(),
    ):
        if candidate:
            return candidate
    return DEFAULT_CLIENT_IP


def is_valid_ip(ip_address: str) -> bool:
    return ip_address == "::1" or bool(_IPV4_RE.match(ip_address))


def is_private_ip(ip_address: str) -> bool:
    if ip_address == "::1":
        return True
    try:
        address = ipaddress.IPv4Address(ip_address)
    except ipaddress.AddressValueError:
        return False
    return any(address in network for network in PRIVATE_NETWORKS)


def security_level_for(score: int) -> str:
    if score >= 80:
        return "critical"
    if score >= 60:
        return "high"
    if score >= 30:
        return "medium"
    return "low"


def reputation_level_for(score: int) -> str:
    if score >= 70:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


class _Score:
    def __init__(self) -> None:
        self.total = 0
        self.factors: list[str] = []

    def add(self, factor: str, weight: int) -> None:
        if weight > 0:
            self.total += weight
            self.factors.append(factor)

    def discard(self, factor: str) -> None:
        if factor in self.factors:
            self.factors.remove(factor)


class GeoRiskScorer:
    """Score a request and decide whether it may proceed."""

    def __init__(
        self,
        policy: GeoPolicy,
        *,
        reputation: ReputationStore | None = None,
        locator: GeoLocator | None = None,
        events: SecurityEventSink | None = None,
    ) -> None:
        self.policy = policy
        self.reputation = reputation
        self.locator = locator
        self.events = events

    def assess(self, meta: RequestMeta) -> RiskAssessment:
        policy = self.policy
        client_ip = extract_client_ip(meta)
        user_agent = meta.user_agent

        if not is_valid_ip(client_ip):
            logger.warning("Invalid IP format detected", policy=policy.name)
            return RiskAssessment(
                allowed=False,
                risk_score=None,
                risk_factors=["invalid_ip_format"],
                security_level="high",
                reason="Invalid IP format detected",
                ip_address=client_ip,
            )

        private = is_private_ip(client_ip)
        if private and policy.private_ip_bypass:
            logger.info("Private address bypasses geo check", policy=policy.name)
            return RiskAssessment(
                allowed=True,
                risk_score=0,
                risk_factors=[],
                security_level="low",
                reason=policy.granted_reason,
                country_code=LOCAL_COUNTRY,
                ip_address=client_ip,
            )

        score = _Score()
        weights = policy.weights
        country = self._resolve_country(meta, client_ip, private, score)

        if country is not None and country != UNKNOWN_COUNTRY:
            if country in policy.sanctioned_countries:
                score.add("sanctioned_country", weights.sanctioned_country)
                logger.warning("Access from sanctioned country", country=country)
            elif policy.strict_mode and country not in policy.allowed_countries:
                score.add("country_not_in_allowlist", weights.country_not_allowed)
        elif country == UNKNOWN_COUNTRY:
            score.add("unknown_country", weights.unknown_country)

        if private:
            if country == UNKNOWN_COUNTRY and weights.private_ip_discount >= weights.unknown_country:
                # Private addresses never resolve to a country.
                score.discard("unknown_country")
            score.total = max(0, score.total - weights.private_ip_discount)
            country = LOCAL_COUNTRY

        if any(pattern.search(user_agent) for pattern in policy.vpn_patterns):
            score.add("vpn_proxy_indicators", weights.vpn)
        if any(pattern.search(user_agent) for pattern in policy.automation_patterns):
            score.add("automation_detected", weights.automation)
        if any(header in meta.headers for header in policy.tor_headers) or any(
            pattern.search(user_agent) for pattern in policy.tor_patterns
        ):
            score.add("tor_indicators", weights.tor)
        if len(user_agent) < policy.min_user_agent_length:
            score.add("suspicious_user_agent", weights.suspicious_user_agent)

        country = self._apply_reputation(client_ip, private, country, score)

        risk_score = score.total
        security_level = security_level_for(risk_score)
        allowed = risk_score < policy.block_threshold
        detected_country = country or UNKNOWN_COUNTRY

        if risk_score >= policy.event_threshold:
            self._record_event(
                meta,
                client_ip,
                risk_score=risk_score,
                factors=score.factors,
                country=detected_country,
                security_level=security_level,
            )

        logger.info(
            "Geo-security check complete",
            policy=policy.name,
            allowed=allowed,
            risk_score=risk_score,
            country=detected_country,
        )
        return RiskAssessment(
            allowed=allowed,
            risk_score=risk_score,
            risk_factors=score.factors,
            security_level=security_level,
            reason=policy.granted_reason if allowed else policy.denied_reason,
            country_code=detected_country,
            ip_address=client_ip,
        )

    def _resolve_country(
        self,
        meta: RequestMeta,
        client_ip: str,
        private: bool,
        score: _Score,
    ) -> str | None:
        """Return the caller's country, ``UNKNOWN`` or None when lookup failed open."""
        header_country = meta.headers.get("cf-ipcountry", "").strip().upper()
        if header_country:
            return header_country
        if not self.policy.geolocate or private or self.locator is None:
            return UNKNOWN_COUNTRY
        try:
            return self.locator.country_for(client_ip) or UNKNOWN_COUNTRY
        except GeoLookupError as err:
            logger.error("Geolocation lookup failed", err, policy=self.policy.name)
            if self.policy.fail_open:
                score.factors.append("geolocation_unavailable")
            else:
                score.add("geolocation_unavailable", self.policy.block_threshold)
            return None

    def _apply_reputation(
        self,
        client_ip: str,
        private: bool,
        country: str | None,
        score: _Score,
    ) -> str | None:
        if self.reputation is None:
            return country
        record = self.reputation.get(client_ip)
        if record is not None:
            if not record.is_allowed:
                score.add("blocked_ip", self.policy.weights.blocked_ip)
            if record.country_code and country in (None, UNKNOWN_COUNTRY):
                country = record.country_code
            self.reputation.touch(record)
        elif not private:
            self.reputation.record_new(
                client_ip,
                is_allowed=score.total < self.policy.reputation_allow_threshold,
                risk_level=reputation_level_for(score.total),
                country_code=country if country not in (None, UNKNOWN_COUNTRY) else None,
                notes=(
                    f"First seen. Risk score: {score.total}. "
                    f"Factors: {', '.join(score.factors) or 'none'}"
                ),
            )
        return country

    def _record_event(
        self,
        meta: RequestMeta,
        client_ip: str,
        *,
        risk_score: int,
        factors: list[str],
        country: str,
        security_level: str,
    ) -> None:
        if self.events is None:
            return
        blocked = risk_score >= self.policy.block_threshold
        self.events.record_event(
            self.policy.blocked_event_type if blocked else self.policy.high_risk_event_type,
            security_level,
            ip_address=client_ip,
            user_agent=meta.user_agent,
            details={
                "risk_score": risk_score,
                "risk_factors": list(factors),
                "country": country,
                "strict_mode": self.policy.strict_mode,
                "policy": self.policy.name,
            },
        )

