"""FastAPI auth dependencies.

Used as Depends() in route handlers to build the token issuer/verifier
from the frozen TokenConfig, extract the bearer token, and enforce
role requirements on the validated claims.

The token layer performs no authorization itself; require_roles() is
where role claims turn into an allow/deny decision.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeep.auth.errors import InvalidToken, Misconfigured
from gatekeep.auth.jwt import TokenIssuer, TokenVerifier
from gatekeep.auth.password import PasswordHasher
from gatekeep.config import TokenConfig, settings
from gatekeep.db.engine import get_db
from gatekeep.schemas.auth import TokenClaims
from gatekeep.services.user_directory import UserDirectory


@lru_cache
def get_token_config() -> TokenConfig:
    """Signing config, snapshotted from settings on first use."""
    return settings.token_config()


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher()


def get_token_issuer(
    config: TokenConfig = Depends(get_token_config),
) -> TokenIssuer:
    return TokenIssuer(config)


def get_token_verifier(
    config: TokenConfig = Depends(get_token_config),
) -> TokenVerifier:
    return TokenVerifier(config)


def get_user_directory(
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> UserDirectory:
    return UserDirectory(db, hasher=hasher)


def _unauthorized(detail: str = "Authentication required") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_claims(
    authorization: Optional[str] = Header(None),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> TokenClaims:
    """Validate the Bearer token (required, 401 if missing or invalid)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized()

    try:
        return verifier.validate(authorization[7:])
    except InvalidToken as e:
        raise _unauthorized(str(e))
    except Misconfigured:
        raise HTTPException(status_code=500, detail="Authentication is not configured")


def require_roles(*roles: str):
    """Dependency factory: 403 unless the token carries one of ``roles``."""

    async def checker(
        claims: TokenClaims = Depends(get_current_claims),
    ) -> TokenClaims:
        if not claims.has_any_role(*roles):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return claims

    return checker
