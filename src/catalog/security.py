from __future__ import annotations

import hashlib
import logging
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from src.catalog.config import settings
from src.catalog.domain.errors import AuthenticationError, AuthorizationError
from src.catalog.domain.models.user import Identity

logger = logging.getLogger(__name__)

# Bearer tokens are optional: anonymous callers may still read the catalog.
_bearer_scheme = HTTPBearer(auto_error=False)

# Context variable storing a stable, non-raw identifier for the current caller
# (e.g., "user:<id>"). This allows downstream consumers such as the audit
# logger to associate events with a subject without exposing the raw token.
_current_subject: ContextVar[Optional[str]] = ContextVar("current_subject", default=None)


def get_current_subject() -> Optional[str]:
    """Return the current subject identifier, if any.

    This is set by :func:`get_caller` for every request.
    """

    return _current_subject.get()


class InvalidCredential(Exception):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class JwtIdentityProvider:
    """Verifies signed bearer tokens and turns their claims into an Identity."""

    def __init__(self, secret: str, *, algorithm: str = "HS256", ttl_seconds: int = 24 * 60 * 60) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(seconds=ttl_seconds)

    def issue(self, identity: Identity, *, expires_in: Optional[timedelta] = None) -> str:
        """Mint a token for ``identity``; used for seeding, local dev and tests."""

        now = datetime.now(timezone.utc)
        claims: Dict[str, Any] = {
            "sub": identity.id,
            "role": identity.role.value,
            "iat": int(now.timestamp()),
            "exp": int((now + (expires_in if expires_in is not None else self._ttl)).timestamp()),
        }
        if identity.email:
            claims["email"] = identity.email
        if identity.trust_name:
            claims["trustName"] = identity.trust_name
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Identity:
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise InvalidCredential("Token has expired") from exc
        except JWTError as exc:
            raise InvalidCredential("Invalid token") from exc

        try:
            return Identity(
                id=claims["sub"],
                role=claims.get("role"),
                email=claims.get("email"),
                trust_name=claims.get("trustName"),
            )
        except (KeyError, PydanticValidationError) as exc:
            raise InvalidCredential("Token is missing required claims") from exc


identity_provider = JwtIdentityProvider(
    settings.jwt_secret,
    algorithm=settings.jwt_algorithm,
    ttl_seconds=settings.token_ttl_seconds,
)


class AccessLevel(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


class Operation(str, Enum):
    LIST = "list"
    GET = "get"
    SEARCH = "search"
    STATS = "stats"
    FETCH_FILE = "fetch_file"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def is_mutation(self) -> bool:
        return self in {Operation.CREATE, Operation.UPDATE, Operation.DELETE}


@dataclass(frozen=True)
class Caller:
    """Per-request classification of whoever is calling the catalog."""

    access: AccessLevel
    identity: Optional[Identity] = None
    # Why a presented credential was rejected; None when none was presented
    # or it verified.
    credential_error: Optional[str] = None

    @classmethod
    def anonymous(cls, credential_error: Optional[str] = None) -> "Caller":
        return cls(access=AccessLevel.ANONYMOUS, credential_error=credential_error)

    @classmethod
    def for_identity(cls, identity: Identity) -> "Caller":
        access = AccessLevel.ADMIN if identity.is_admin else AccessLevel.AUTHENTICATED
        return cls(access=access, identity=identity)

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.id if self.identity is not None else None

    @property
    def subject(self) -> Optional[str]:
        if self.identity is None:
            return None
        return f"user:{self.identity.id}"


def classify(token: Optional[str], provider: JwtIdentityProvider = identity_provider) -> Caller:
    if not token:
        return Caller.anonymous()
    try:
        identity = provider.verify(token)
    except InvalidCredential as exc:
        return Caller.anonymous(credential_error=exc.reason)
    return Caller.for_identity(identity)


def authorize(operation: Operation, caller: Caller) -> None:
    """Single capability check consulted before every catalog operation.

    Reads are open to everyone (an invalid credential simply reads as
    anonymous). Mutations need an admin: no or bad credential is an
    authentication failure, a valid non-admin identity an authorization
    failure.
    """

    if not operation.is_mutation:
        return
    if caller.access == AccessLevel.ADMIN:
        return
    if caller.identity is None:
        raise AuthenticationError(caller.credential_error or "Authentication required")
    raise AuthorizationError()


async def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(_bearer_scheme),
) -> Caller:
    """FastAPI dependency classifying the caller from an optional bearer token."""

    token = credentials.credentials if credentials is not None else None
    caller = classify(token)
    if token and caller.credential_error:
        logger.info("Rejected bearer credential %s: %s", fingerprint(token), caller.credential_error)
    _current_subject.set(caller.subject)
    return caller


def fingerprint(token: str) -> str:
    # Non-reversible identifier for logging rejected tokens.
    return "token:" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
