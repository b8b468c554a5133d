"""Token issuance and validation tests.

Tokens are checked end to end with the real signer: claims, role
parsing, lifetime, and every rejection path.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from gatekeep.auth.errors import InvalidToken, Misconfigured
from gatekeep.auth.jwt import TokenIssuer, TokenVerifier
from gatekeep.config import TokenConfig
from gatekeep.db.models import User, utcnow


def _user(**kw) -> User:
    return User(
        id=kw.pop("id", uuid.uuid4()),
        username=kw.pop("username", "alice"),
        password_hash="$2b$04$placeholder",
        roles=kw.pop("roles", "User"),
        email=kw.pop("email", "a@x.com"),
    )


# ═══════════════════════════════════════════════════════════
# Issuance
# ═══════════════════════════════════════════════════════════


def test_issue_then_validate(issuer, verifier, token_config):
    user = _user()
    claims = verifier.validate(issuer.issue(user))

    assert claims.subject == str(user.id)
    assert claims.username == "alice"
    assert claims.email == "a@x.com"
    assert claims.roles == ["User"]
    assert claims.issuer == token_config.issuer
    assert claims.audience == token_config.audience
    assert claims.expires_at - claims.issued_at == timedelta(hours=1)


def test_token_has_three_parts(issuer):
    assert issuer.issue(_user()).count(".") == 2


def test_role_claims_split_and_trimmed(issuer, verifier):
    claims = verifier.validate(issuer.issue(_user(roles="Admin, Moderator")))
    assert claims.roles == ["Admin", "Moderator"]


def test_role_claims_drop_empty_entries(issuer, verifier):
    claims = verifier.validate(issuer.issue(_user(roles=" , Admin,, ")))
    assert claims.roles == ["Admin"]


def test_no_roles_still_valid(issuer, verifier):
    claims = verifier.validate(issuer.issue(_user(roles="")))
    assert claims.roles == []
    assert not claims.has_any_role("Admin", "User")


def test_missing_email_becomes_empty_string(issuer, verifier):
    claims = verifier.validate(issuer.issue(_user(email=None)))
    assert claims.email == ""


def test_subject_falls_back_to_username(issuer, verifier):
    claims = verifier.validate(issuer.issue(_user(id=None, username="bob")))
    assert claims.subject == "bob"


def test_token_ids_are_unique(issuer, verifier):
    user = _user()
    a = verifier.validate(issuer.issue(user))
    b = verifier.validate(issuer.issue(user))
    assert a.token_id != b.token_id


def test_issue_without_secret_is_misconfigured(token_config):
    issuer = TokenIssuer(token_config.model_copy(update={"secret": ""}))
    with pytest.raises(Misconfigured):
        issuer.issue(_user())


def test_login_response(issuer):
    user = _user(roles="Admin,Moderator")
    token = issuer.issue(user)
    resp = issuer.login_response(user, token)

    assert resp.username == "alice"
    assert resp.access_token == token
    assert resp.token_type == "bearer"
    assert resp.roles == "Admin,Moderator"
    assert resp.expires_in == 3600
    assert resp.expires_at > utcnow()


# ═══════════════════════════════════════════════════════════
# Validation failures
# ═══════════════════════════════════════════════════════════


def test_expired_token_is_invalid(token_config, verifier):
    past = TokenIssuer(token_config, clock=lambda: utcnow() - timedelta(hours=2))
    token = past.issue(_user())

    with pytest.raises(InvalidToken) as exc_info:
        verifier.validate(token)
    assert exc_info.value.reason == "expired"
    assert str(exc_info.value) == "Invalid token"


def test_expiry_boundary_is_inclusive(token_config):
    issued_at = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    exp = (issued_at + token_config.lifetime).timestamp()
    token = TokenIssuer(token_config, clock=lambda: issued_at).issue(_user())

    at_exp = TokenVerifier(token_config, clock=lambda: exp)
    assert at_exp.validate(token).expires_at.timestamp() == exp

    at_iat = TokenVerifier(token_config, clock=lambda: issued_at.timestamp())
    assert at_iat.validate(token).issued_at == issued_at

    after = TokenVerifier(token_config, clock=lambda: exp + 1)
    with pytest.raises(InvalidToken) as exc_info:
        after.validate(token)
    assert exc_info.value.reason == "expired"


def test_future_issued_at_is_invalid(token_config, verifier):
    future = TokenIssuer(token_config, clock=lambda: utcnow() + timedelta(minutes=10))
    with pytest.raises(InvalidToken) as exc_info:
        verifier.validate(future.issue(_user()))
    assert exc_info.value.reason == "not_yet_valid"


def test_wrong_secret_is_invalid(token_config, verifier):
    other = TokenIssuer(
        token_config.model_copy(update={"secret": "another-secret-0123456789abcdef0123"})
    )
    with pytest.raises(InvalidToken) as exc_info:
        verifier.validate(other.issue(_user()))
    assert exc_info.value.reason == "bad_signature"


def test_wrong_issuer_is_invalid(token_config, verifier):
    other = TokenIssuer(token_config.model_copy(update={"issuer": "someone-else"}))
    with pytest.raises(InvalidToken) as exc_info:
        verifier.validate(other.issue(_user()))
    assert exc_info.value.reason == "issuer_mismatch"


def test_wrong_audience_is_invalid(token_config, verifier):
    other = TokenIssuer(token_config.model_copy(update={"audience": "other-api"}))
    with pytest.raises(InvalidToken) as exc_info:
        verifier.validate(other.issue(_user()))
    assert exc_info.value.reason == "audience_mismatch"


def test_tampered_payload_is_invalid(issuer, verifier, token_config):
    token = issuer.issue(_user(roles="User"))
    header, _, signature = token.split(".")
    forged_payload = jwt.encode(
        {"roles": ["Admin"]}, "irrelevant-key-0123456789abcdef0123", algorithm="HS256"
    ).split(".")[1]

    with pytest.raises(InvalidToken):
        verifier.validate(f"{header}.{forged_payload}.{signature}")


def test_unsigned_token_is_invalid(verifier, token_config):
    now = utcnow()
    token = jwt.encode(
        {
            "iss": token_config.issuer,
            "aud": token_config.audience,
            "sub": "x",
            "name": "x",
            "jti": "x",
            "iat": now,
            "exp": now + timedelta(hours=1),
        },
        None,
        algorithm="none",
    )
    with pytest.raises(InvalidToken):
        verifier.validate(token)


def test_missing_claim_is_invalid(verifier, token_config):
    now = utcnow()
    token = jwt.encode(
        {
            "iss": token_config.issuer,
            "aud": token_config.audience,
            "sub": "x",
            "iat": now,
            "exp": now + timedelta(hours=1),
        },
        token_config.secret,
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken) as exc_info:
        verifier.validate(token)
    assert exc_info.value.reason.startswith("missing_claim")


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c", None])
def test_malformed_tokens_are_invalid(verifier, token):
    with pytest.raises(InvalidToken):
        verifier.validate(token)


def test_validate_without_secret_is_misconfigured(issuer, token_config):
    token = issuer.issue(_user())
    verifier = TokenVerifier(token_config.model_copy(update={"secret": ""}))
    with pytest.raises(Misconfigured):
        verifier.validate(token)


def test_token_config_is_frozen(token_config):
    with pytest.raises(Exception):
        token_config.secret = "changed"


def test_default_lifetime_is_one_hour():
    config = TokenConfig(secret="s" * 32, issuer="i", audience="a")
    assert config.lifetime == timedelta(hours=1)
