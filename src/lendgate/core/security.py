"""Token and credential primitives."""
from __future__ import annotations

import hashlib
from datetime import UTC, datetime, timedelta

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from jose import JWTError, jwt

from lendgate.core.errors import AuthError
from lendgate.core.settings import settings

_password_hasher = PasswordHasher()


def create_access_token(subject: str, extra_claims: dict[str, str] | None = None) -> str:
    """Create a JWT access token whose subject is the account id."""
    to_encode: dict[str, object] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> str:
    """Return the subject of a valid access token.

    Raises:
        AuthError: If the token is malformed, expired or has no subject.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise AuthError("Could not validate credentials") from err
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise AuthError("Token has no subject")
    return subject


def hash_key(value: str) -> str:
    """Return a SHA-256 hash of an opaque key such as a step-up token."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    """Hash an account password with Argon2id."""
    return _password_hasher.hash(password)


def verify_password(password: str, encoded: str) -> bool:
    """Check a password against a hash produced by :func:`hash_password`."""
    try:
        return _password_hasher.verify(encoded, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False
