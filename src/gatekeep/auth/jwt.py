"""JWT token creation and verification.

Tokens are stateless: validity is decided by the HS256 signature and
the embedded timestamps alone. There is no refresh token and no
revocation; the fixed lifetime is the only bound.

Claims carried by every token:
- iss, aud: configured issuer and audience
- sub: the record id (username if the record has no id)
- name, email: login name and contact address ("" if absent)
- jti: fresh UUID per token
- iat, exp: issuance instant and iat + lifetime
- roles: one entry per role label, possibly empty
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

import jwt
import structlog
from pydantic import ValidationError

from gatekeep.auth.errors import InvalidToken, Misconfigured
from gatekeep.config import TokenConfig
from gatekeep.db.models import User, utcnow
from gatekeep.schemas.auth import LoginResponse, TokenClaims

logger = structlog.get_logger()

REQUIRED_CLAIMS = ["iss", "aud", "sub", "name", "jti", "iat", "exp"]


def _require_secret(config: TokenConfig) -> str:
    if not config.secret:
        raise Misconfigured("JWT signing secret is not configured")
    return config.secret


class TokenIssuer:
    """Builds signed access tokens for authenticated users."""

    def __init__(
        self,
        config: TokenConfig,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config
        self.clock = clock

    def issue(self, user: User) -> str:
        """Create a signed access token for ``user``.

        Raises Misconfigured before any claim is built if the secret
        is empty.
        """
        secret = _require_secret(self.config)

        issued_at = self.clock()
        payload = {
            "iss": self.config.issuer,
            "aud": self.config.audience,
            "sub": str(user.id) if user.id else user.username,
            "name": user.username,
            "email": user.email or "",
            "jti": str(uuid.uuid4()),
            "iat": issued_at,
            "exp": issued_at + self.config.lifetime,
            "roles": user.role_list(),
        }
        token = jwt.encode(payload, secret, algorithm=self.config.algorithm)
        logger.info(
            "auth.token_issued",
            subject=payload["sub"],
            jti=payload["jti"],
            roles=payload["roles"],
        )
        return token

    def login_response(self, user: User, token: str) -> LoginResponse:
        """Wrap a freshly issued token into the login response envelope."""
        # Signature was produced by us a moment ago; only exp is read here
        payload = jwt.decode(token, options={"verify_signature": False})
        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        return LoginResponse(
            username=user.username,
            access_token=token,
            roles=user.roles or "",
            expires_at=expires_at,
            expires_in=int(self.config.lifetime.total_seconds()),
        )


class TokenVerifier:
    """Validates tokens and recovers their claims.

    Checks signature, issuer, audience, and iat <= now <= exp with no
    clock-skew leeway. Both ends are inclusive: a token is still valid in
    its exp second and expires only once now > exp. Every failure
    surfaces as InvalidToken; the specific cause is only logged.
    """

    def __init__(
        self,
        config: TokenConfig,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.clock = clock

    def validate(self, token: str) -> TokenClaims:
        secret = _require_secret(self.config)

        if not isinstance(token, str) or not token:
            raise self._invalid("malformed")

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.config.algorithm],
                audience=self.config.audience,
                issuer=self.config.issuer,
                leeway=0,
                # PyJWT treats exp == now as expired; the lifetime check is below
                options={"require": REQUIRED_CLAIMS, "verify_exp": False},
            )
        except jwt.ImmatureSignatureError:
            raise self._invalid("not_yet_valid")
        except jwt.InvalidSignatureError:
            raise self._invalid("bad_signature")
        except jwt.InvalidIssuerError:
            raise self._invalid("issuer_mismatch")
        except jwt.InvalidAudienceError:
            raise self._invalid("audience_mismatch")
        except jwt.MissingRequiredClaimError as e:
            raise self._invalid(f"missing_claim:{e.claim}")
        except jwt.DecodeError:
            raise self._invalid("malformed")
        except jwt.InvalidTokenError as e:
            raise self._invalid(f"invalid:{type(e).__name__}")

        exp = payload["exp"]
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise self._invalid("malformed_claims")

        now = self.clock()
        if payload["iat"] > now:
            raise self._invalid("not_yet_valid")
        if now > exp:
            raise self._invalid("expired")

        try:
            return TokenClaims(
                subject=payload["sub"],
                username=payload["name"],
                email=payload.get("email", ""),
                roles=payload.get("roles", []),
                token_id=payload["jti"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                issuer=payload["iss"],
                audience=payload["aud"],
            )
        except (ValidationError, TypeError, ValueError):
            raise self._invalid("malformed_claims")

    @staticmethod
    def _invalid(reason: str) -> InvalidToken:
        logger.info("auth.token_invalid", reason=reason)
        return InvalidToken(reason)
