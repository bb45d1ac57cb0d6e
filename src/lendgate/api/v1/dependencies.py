"""Shared API dependencies for authentication and the request gate."""

from typing import Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from lendgate.core.errors import AuthError, ValidationError
from lendgate.core.secure_logger import SecureLogger
from lendgate.core.security import decode_access_token
from lendgate.db.session import get_db
from lendgate.models import UserAccount
from lendgate.services.audit import AuditTrail
from lendgate.services.gate import CallerContext, RequestGate
from lendgate.services.geo_risk import (
    GeoLocator,
    RequestMeta,
    extract_client_ip,
    get_http_geo_locator,
)
from lendgate.services.mfa import DatabaseStepUpVerifier, StepUpVerifier
from lendgate.services.rate_limit import RateLimiter, get_counter_store
from lendgate.services.scanning import DocumentScanner

# Missing credentials are reported through AuthError, not FastAPI's 403.
bearer_scheme = HTTPBearer(auto_error=False)

SessionDep = Annotated[Session, Depends(get_db)]
CredentialsDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


def _load_user(token: str, db: Session) -> UserAccount:
    subject = decode_access_token(token)
    user = db.get(UserAccount, subject)
    if user is None:
        raise AuthError("User not found")
    if not user.is_active:
        raise AuthError("User is deactivated")
    return user


def get_current_user(credentials: CredentialsDep, db: SessionDep) -> UserAccount:
    """Get the current authenticated user from the bearer JWT.

    Raises:
        AuthError: If the header is missing, the token is invalid, or the
            account does not exist or is inactive.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("No authorization header")
    return _load_user(credentials.credentials, db)


def get_optional_user(credentials: CredentialsDep, db: SessionDep) -> UserAccount | None:
    """Like :func:`get_current_user`, but anonymous callers get None.

    A token that is present but invalid is still rejected.
    """
    if credentials is None or not credentials.credentials:
        return None
    return _load_user(credentials.credentials, db)


CurrentUserDep = Annotated[UserAccount, Depends(get_current_user)]
OptionalUserDep = Annotated[UserAccount | None, Depends(get_optional_user)]


def get_request_meta(request: Request) -> RequestMeta:
    return RequestMeta.from_request(request)


RequestMetaDep = Annotated[RequestMeta, Depends(get_request_meta)]


def _caller(user: UserAccount | None, meta: RequestMeta) -> CallerContext:
    return CallerContext(
        user=user,
        ip_address=extract_client_ip(meta),
        user_agent=meta.user_agent or None,
    )


def get_caller(user: CurrentUserDep, meta: RequestMetaDep) -> CallerContext:
    return _caller(user, meta)


def get_optional_caller(user: OptionalUserDep, meta: RequestMetaDep) -> CallerContext:
    return _caller(user, meta)


CallerDep = Annotated[CallerContext, Depends(get_caller)]
OptionalCallerDep = Annotated[CallerContext, Depends(get_optional_caller)]


def get_rate_limiter(db: SessionDep) -> RateLimiter:
    return RateLimiter(get_counter_store(db))


def get_step_up_verifier(db: SessionDep) -> StepUpVerifier:
    return DatabaseStepUpVerifier(db)


def get_audit_trail(db: SessionDep) -> AuditTrail:
    return AuditTrail(db)


AuditTrailDep = Annotated[AuditTrail, Depends(get_audit_trail)]


def get_gate(
    db: SessionDep,
    rate_limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    verifier: Annotated[StepUpVerifier, Depends(get_step_up_verifier)],
    audit: AuditTrailDep,
) -> RequestGate:
    return RequestGate(db, rate_limiter, verifier, audit, SecureLogger("lendgate.gate"))


GateDep = Annotated[RequestGate, Depends(get_gate)]


def get_geo_locator() -> GeoLocator:
    return get_http_geo_locator()


GeoLocatorDep = Annotated[GeoLocator, Depends(get_geo_locator)]


def get_document_scanner(db: SessionDep) -> DocumentScanner:
    return DocumentScanner.from_settings(db)


DocumentScannerDep = Annotated[DocumentScanner, Depends(get_document_scanner)]


async def read_json_body(request: Request) -> dict[str, Any]:
    """Parse the request body as a JSON object.

    An empty body is treated as ``{}`` so that field validation, not
    parsing, reports what is missing.
    """
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = await request.json()
    except ValueError as err:
        raise ValidationError(["Request body must be valid JSON"]) from err
    if not isinstance(body, dict):
        raise ValidationError(["Request body must be a JSON object"])
    return body


JsonBodyDep = Annotated[dict[str, Any], Depends(read_json_body)]
