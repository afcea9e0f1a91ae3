"""Bearer token handling (JWT, ES256).

Tokens are issued by the platform's identity provider; this service only
verifies them and maps their claims onto a Principal.  ``mint_token`` signs
with the local key so the dev server and the test suite can act as any
user.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

from coursehub.models.principal import Principal

# Ephemeral key pair, regenerated per process.
_signing_key = ec.generate_private_key(ec.SECP256R1())
_verifying_key = _signing_key.public_key()

ALGORITHM = "ES256"
ISSUER = "coursehub"
AUDIENCE = "coursehub"
TOKEN_TTL = timedelta(minutes=15)

PLATFORM_ROLES = frozenset({"student", "instructor", "admin"})


def mint_token(*, sub: str, roles: list[str] | None = None) -> str:
    issued = datetime.now(UTC)
    claims = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": issued,
        "exp": issued + TOKEN_TTL,
        "jti": str(uuid.uuid4()),
        "roles": roles if roles is not None else ["student"],
    }
    return jwt.encode(claims, _signing_key, algorithm=ALGORITHM)


def verify_token(token: str) -> Principal:
    """Verify *token* and return the caller it identifies.

    The algorithm is pinned, so unsigned tokens are rejected; PyJWT checks
    exp, iss and aud.  Roles outside PLATFORM_ROLES are dropped.

    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError.
    """
    claims = jwt.decode(
        token,
        _verifying_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat"]},
    )
    roles = claims.get("roles", [])
    if not isinstance(roles, list):
        raise jwt.InvalidTokenError("roles claim must be a list")
    return Principal(
        user_id=str(claims["sub"]),
        roles=frozenset(r for r in roles if r in PLATFORM_ROLES),
    )
