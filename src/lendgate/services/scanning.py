"""Malware verdicts for uploaded documents, looked up by file hash.

Verdicts come from VirusTotal when an API key is configured and from file
name and size heuristics otherwise. Each verdict is cached per hash.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Final

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from lendgate.core.secure_logger import SecureLogger
from lendgate.core.settings import settings
from lendgate.db.time import as_utc, utcnow
from lendgate.models.records import DocumentScanResult

if TYPE_CHECKING:
    from lendgate.schemas.requests import ScanRequest

logger = SecureLogger(__name__)

DANGEROUS_EXTENSIONS: Final[tuple[str, ...]] = (
    ".exe",
    ".dll",
    ".bat",
    ".cmd",
    ".ps1",
    ".vbs",
    ".js",
    ".jar",
    ".msi",
)
MAX_FILE_SIZE: Final[int] = 100 * 1024 * 1024
EXPECTED_ENGINES: Final[int] = 70
MAX_THREAT_NAMES: Final[int] = 10
UNKNOWN_CONFIDENCE: Final[int] = 30
HEURISTIC_CONFIDENCE: Final[int] = 40
NO_ENGINES_CONFIDENCE: Final[int] = 50


class ScanUnavailableError(Exception):
    """The scanning provider returned an unexpected response."""


@dataclass(frozen=True)
class ScanVerdict:
    is_safe: bool
    scan_id: str
    threats_found: list[str] = field(default_factory=list)
    scan_date: datetime = field(default_factory=utcnow)
    confidence: int = 0
    cached: bool = False

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "is_safe": self.is_safe,
            "scan_id": self.scan_id,
            "threats_found": list(self.threats_found),
            "scan_date": self.scan_date.isoformat(),
            "confidence": self.confidence,
        }
        if self.cached:
            payload["cached"] = True
        return payload


class VirusTotalClient:
    """Minimal VirusTotal v3 file-report client."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(
            base_url=base_url or settings.virustotal_base_url,
            timeout=httpx.Timeout(timeout_seconds or settings.virustotal_timeout_seconds),
        )
        self._api_key = api_key

    def file_report(self, file_hash: str) -> dict[str, Any] | None:
        """Return the report for a hash, or None if VirusTotal has never seen it."""
        try:
            response = self._client.get(f"/files/{file_hash}", headers={"x-apikey": self._api_key})
        except httpx.HTTPError as err:
            raise ScanUnavailableError(f"VirusTotal request failed: {err}") from err
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        if response.is_error:
            raise ScanUnavailableError(f"VirusTotal returned status {response.status_code}")
        payload = response.json()
        return payload if isinstance(payload, dict) else {}

    def close(self) -> None:
        self._client.close()


class _VirusTotalSingleton:
    """Process-wide :class:`VirusTotalClient`, closed at application shutdown."""

    _instance: VirusTotalClient | None = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> VirusTotalClient | None:
        if not settings.virustotal_api_key:
            return None
        with cls._lock:
            if cls._instance is None:
                cls._instance = VirusTotalClient(settings.virustotal_api_key)
            return cls._instance

    @classmethod
    def close(cls) -> None:
        with cls._lock:
            if cls._instance is not None:
                cls._instance.close()
                cls._instance = None


def get_virustotal_client() -> VirusTotalClient | None:
    """Return the shared VirusTotal client, or None when no API key is set."""
    return _VirusTotalSingleton.get_instance()


def close_virustotal_client() -> None:
    _VirusTotalSingleton.close()


def verdict_from_report(file_hash: str, report: dict[str, Any], now: datetime) -> ScanVerdict:
    attributes = (report.get("data") or {}).get("attributes") or {}
    stats = attributes.get("last_analysis_stats") or {}
    malicious = int(stats.get("malicious", 0))
    suspicious = int(stats.get("suspicious", 0))
    total = malicious + suspicious + int(stats.get("undetected", 0)) + int(stats.get("harmless", 0))
    confidence = (
        round(min(100.0, total / EXPECTED_ENGINES * 100)) if total > 0 else NO_ENGINES_CONFIDENCE
    )
    threats = [
        f"{engine}: {result.get('result') or 'Threat detected'}"
        for engine, result in (attributes.get("last_analysis_results") or {}).items()
        if isinstance(result, dict) and result.get("category") in ("malicious", "suspicious")
    ]
    return ScanVerdict(
        is_safe=malicious + suspicious == 0,
        scan_id=(report.get("data") or {}).get("id") or file_hash,
        threats_found=threats[:MAX_THREAT_NAMES],
        scan_date=now,
        confidence=confidence,
    )


def heuristic_verdict(data: ScanRequest, now: datetime) -> ScanVerdict:
    name = (data.file_name or "").lower()
    threats: list[str] = []
    if name.endswith(DANGEROUS_EXTENSIONS):
        threats.append("Potentially dangerous file extension")
    oversized = (data.file_size or 0) > MAX_FILE_SIZE
    if oversized:
        threats.append("File size exceeds 100 MB")
    return ScanVerdict(
        is_safe=not threats,
        scan_id=f"basic-{data.file_hash[:16]}",
        threats_found=threats,
        scan_date=now,
        confidence=HEURISTIC_CONFIDENCE,
    )


class DocumentScanner:
    """Produce and cache malware verdicts."""

    def __init__(
        self,
        db: Session,
        *,
        virustotal: VirusTotalClient | None = None,
        cache_hours: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.virustotal = virustotal
        self.cache_window = timedelta(
            hours=cache_hours if cache_hours is not None else settings.scan_cache_hours
        )
        self._clock = clock

    @classmethod
    def from_settings(cls, db: Session) -> DocumentScanner:
        return cls(db, virustotal=get_virustotal_client())

    def _cached(self, file_hash: str) -> DocumentScanResult | None:
        return self.db.execute(
            select(DocumentScanResult).where(DocumentScanResult.file_hash == file_hash)
        ).scalar_one_or_none()

    def scan(self, data: ScanRequest, scanned_by: str | None) -> ScanVerdict:
        now = self._clock()
        existing = self._cached(data.file_hash)
        if existing is not None:
            scanned_at = as_utc(existing.scanned_at) or now
            if scanned_at >= now - self.cache_window:
                logger.info("Using cached scan result", scan_id=existing.scan_id)
                return ScanVerdict(
                    is_safe=existing.is_safe,
                    scan_id=existing.scan_id,
                    threats_found=list(existing.threats_found or []),
                    scan_date=scanned_at,
                    confidence=existing.confidence,
                    cached=True,
                )

        verdict = self._fresh_verdict(data, now)
        self._store(existing, data, verdict, scanned_by)
        return verdict

    def _fresh_verdict(self, data: ScanRequest, now: datetime) -> ScanVerdict:
        if self.virustotal is None:
            logger.warning("VirusTotal API key not configured, using basic scan")
            return heuristic_verdict(data, now)
        report = self.virustotal.file_report(data.file_hash)
        if report is None:
            logger.info("File not found in VirusTotal database", file=data.file_hash[:16])
            return ScanVerdict(
                is_safe=True,
                scan_id=f"unknown-{data.file_hash[:16]}",
                scan_date=now,
                confidence=UNKNOWN_CONFIDENCE,
            )
        verdict = verdict_from_report(data.file_hash, report, now)
        logger.info(
            "VirusTotal scan complete",
            is_safe=verdict.is_safe,
            threat_count=len(verdict.threats_found),
        )
        return verdict

    def _store(
        self,
        existing: DocumentScanResult | None,
        data: ScanRequest,
        verdict: ScanVerdict,
        scanned_by: str | None,
    ) -> None:
        row = existing or DocumentScanResult(file_hash=data.file_hash)
        row.file_name = data.file_name[:255] if data.file_name else None
        row.file_size = data.file_size
        row.is_safe = verdict.is_safe
        row.scan_id = verdict.scan_id
        row.threats_found = list(verdict.threats_found)
        row.confidence = verdict.confidence
        row.scanned_at = verdict.scan_date
        row.scanned_by = scanned_by
        row.document_id = data.document_id
        if existing is None:
            self.db.add(row)
        self.db.commit()
