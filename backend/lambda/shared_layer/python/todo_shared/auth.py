"""todo_shared.auth — Bearer credential extraction and principal resolution.

Two request shapes reach the authorizer:

    HeadersRequest      API Gateway REQUEST authorizer events carrying a
                        ``headers`` map with an ``Authorization`` header.
    LegacyTokenRequest  TOKEN-style events (and SAM local) carrying the raw
                        credential in ``authorizationToken``.

The shape is decided once by ``classify_request``; nothing downstream looks
at the raw event again.

Bearer tokens are Cognito ID tokens, validated as RS256 JWTs against the
User Pool JWKS endpoint. Signing keys are cached; verification results are
not.

Requires environment variables:
    COGNITO_USER_POOL_ID   — e.g. us-east-1_AbCdEf123
    COGNITO_CLIENT_ID      — app client id, checked as the token audience

Optional:
    ALLOW_TEST_CREDENTIALS — "true" accepts the local test credentials below
"""

from __future__ import annotations

import json
import logging
import ssl
import time
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Union

import certifi
import jwt
from jwt.algorithms import RSAAlgorithm

from todo_shared import config

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "

# Local/offline test credentials -> fixed principals.
TEST_BEARER_TOKEN = "dummy-jwt-for-local"
TEST_BEARER_PRINCIPAL = "local-user-from-dummy-jwt"
TEST_RAW_TOKEN = "allow"
TEST_RAW_PRINCIPAL = "user-allow-sam"


# ---------------------------------------------------------------------------
# Request shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeadersRequest:
    headers: Mapping[str, Any]


@dataclass(frozen=True)
class LegacyTokenRequest:
    authorization_token: Optional[str]


RequestShape = Union[HeadersRequest, LegacyTokenRequest]


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _authorization_header(headers: Mapping[str, Any]) -> Optional[str]:
    for name, value in headers.items():
        if isinstance(name, str) and name.lower() == "authorization":
            cleaned = _clean(value)
            if cleaned:
                return cleaned
    return None


def classify_request(event: Dict[str, Any]) -> RequestShape:
    """Resolve the event to one request shape.

    The headers shape wins whenever it actually carries a credential.
    """
    headers = event.get("headers")
    if isinstance(headers, Mapping) and _authorization_header(headers):
        return HeadersRequest(headers=headers)
    return LegacyTokenRequest(authorization_token=_clean(event.get("authorizationToken")))


def extract_credential(event: Dict[str, Any]) -> Optional[str]:
    """Return the raw credential from the request, or None when absent."""
    shape = classify_request(event)
    if isinstance(shape, HeadersRequest):
        return _authorization_header(shape.headers)
    return shape.authorization_token


# ---------------------------------------------------------------------------
# Principal resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerifiedClaims:
    subject: str
    claims: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VerificationFailure:
    reason: str


PrincipalResult = Union[VerifiedClaims, VerificationFailure]
TokenVerifier = Callable[[str], Dict[str, Any]]


def _test_principal(credential: str) -> Optional[str]:
    if credential == TEST_RAW_TOKEN:
        return TEST_RAW_PRINCIPAL
    if credential.lower().startswith(BEARER_PREFIX):
        if credential[len(BEARER_PREFIX):].strip() == TEST_BEARER_TOKEN:
            return TEST_BEARER_PRINCIPAL
    return None


def resolve_principal(
    credential: Optional[str],
    verifier: Optional[TokenVerifier] = None,
    allow_test_credentials: Optional[bool] = None,
) -> PrincipalResult:
    """Derive the principal id from a raw credential.

    Never raises; every failure comes back as a ``VerificationFailure``.
    """
    credential = _clean(credential)
    if not credential:
        return VerificationFailure("missing credential")

    if allow_test_credentials is None:
        allow_test_credentials = config.ALLOW_TEST_CREDENTIALS
    if allow_test_credentials:
        principal = _test_principal(credential)
        if principal:
            return VerifiedClaims(subject=principal, claims={"sub": principal, "test_credential": True})

    if not credential.lower().startswith(BEARER_PREFIX):
        return VerificationFailure("unsupported credential scheme")
    token = credential[len(BEARER_PREFIX):].strip()
    if not token:
        return VerificationFailure("empty bearer token")

    verify = verifier or _verify_token
    try:
        claims = verify(token)
    except Exception as exc:
        return VerificationFailure(str(exc) or exc.__class__.__name__)

    subject = _clean((claims or {}).get("sub"))
    if not subject:
        return VerificationFailure("token has no subject claim")
    return VerifiedClaims(subject=subject, claims=dict(claims))


# ---------------------------------------------------------------------------
# Cognito JWT verification
# ---------------------------------------------------------------------------

_jwks_cache: Dict[str, Any] = {}
_jwks_fetched_at: float = 0.0
_JWKS_TTL: float = 3600.0


def _issuer() -> str:
    region = config.COGNITO_USER_POOL_ID.split("_")[0]
    return f"https://cognito-idp.{region}.amazonaws.com/{config.COGNITO_USER_POOL_ID}"


def _get_jwks() -> Dict[str, Any]:
    """Fetch (and cache) Cognito User Pool JWKS."""
    global _jwks_cache, _jwks_fetched_at
    now = time.time()
    if _jwks_cache and (now - _jwks_fetched_at) < _JWKS_TTL:
        return _jwks_cache

    if not config.COGNITO_USER_POOL_ID:
        raise ValueError("COGNITO_USER_POOL_ID not set")

    url = f"{_issuer()}/.well-known/jwks.json"
    ctx = ssl.create_default_context(cafile=certifi.where())
    with urllib.request.urlopen(url, timeout=5, context=ctx) as resp:
        data = json.loads(resp.read())

    new_cache: Dict[str, Any] = {}
    for key_data in data.get("keys", []):
        new_cache[key_data["kid"]] = RSAAlgorithm.from_jwk(json.dumps(key_data))

    _jwks_cache = new_cache
    _jwks_fetched_at = now
    return _jwks_cache


def _verify_token(token: str) -> Dict[str, Any]:
    """Verify a Cognito JWT (RS256). Returns decoded claims dict."""
    try:
        header = jwt.get_unverified_header(token)
    except jwt.PyJWTError as exc:
        raise ValueError(f"Invalid token header: {exc}") from exc

    kid = header.get("kid")
    alg = header.get("alg", "RS256")
    if alg != "RS256":
        raise ValueError(f"Unexpected token algorithm: {alg}")

    key = _get_jwks().get(kid)
    if key is None:
        raise ValueError("Token key ID not found in JWKS")

    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=config.COGNITO_CLIENT_ID,
            issuer=_issuer(),
            options={"verify_exp": True, "require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise ValueError("Token has expired. Please sign in again.")
    except jwt.InvalidAudienceError:
        raise ValueError("Token audience mismatch.")
    except jwt.PyJWTError as exc:
        raise ValueError(f"Token validation failed: {exc}") from exc
