"""Auth API — registration, login, token validation, profile.

Routes:
- POST /auth/register → create a new user (201, never echoes the hash)
- POST /auth/login → username/password → access token envelope
- POST /auth/validate → check a token, return its claims
- GET /auth/profile → current user's record, Admin/Readonly/Moderator only

Core errors are translated to status codes here and nowhere else.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from gatekeep.auth.dependencies import (
    get_token_issuer,
    get_token_verifier,
    get_user_directory,
    require_roles,
)
from gatekeep.auth.errors import (
    AlreadyExists,
    AuthenticationFailed,
    InvalidToken,
    Misconfigured,
)
from gatekeep.auth.jwt import TokenIssuer, TokenVerifier
from gatekeep.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    TokenClaims,
    UserRead,
    ValidateRequest,
    ValidateResponse,
)
from gatekeep.services.user_directory import UserDirectory

router = APIRouter(prefix="/auth")

PROFILE_ROLES = ("Admin", "Readonly", "Moderator")


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(
    body: RegisterRequest,
    directory: UserDirectory = Depends(get_user_directory),
):
    """Create a new user account."""
    try:
        return await directory.register(
            username=body.username,
            password=body.password,
            roles=body.roles,
            email=str(body.email),
        )
    except AlreadyExists:
        raise HTTPException(status_code=409, detail="Username already exists")


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    directory: UserDirectory = Depends(get_user_directory),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Login with username and password → access token."""
    try:
        user = await directory.login(body.username, body.password)
    except AuthenticationFailed as e:
        raise HTTPException(status_code=401, detail=str(e))

    try:
        token = issuer.issue(user)
    except Misconfigured:
        raise HTTPException(status_code=500, detail="Authentication is not configured")

    return issuer.login_response(user, token)


# ─── Validate ────────────────────────────────────────────


@router.post("/validate", response_model=ValidateResponse)
async def validate(
    body: ValidateRequest,
    verifier: TokenVerifier = Depends(get_token_verifier),
):
    """Report whether a token is currently valid."""
    if not body.token:
        return JSONResponse(
            status_code=400,
            content={"valid": False, "message": "Token is required"},
        )

    try:
        claims = verifier.validate(body.token)
    except InvalidToken as e:
        return JSONResponse(
            status_code=401,
            content={"valid": False, "message": str(e)},
        )
    except Misconfigured:
        raise HTTPException(status_code=500, detail="Authentication is not configured")

    return ValidateResponse(valid=True, message="Token is valid", claims=claims)


# ─── Profile ────────────────────────────────────────────


@router.get("/profile", response_model=UserRead)
async def profile(
    claims: TokenClaims = Depends(require_roles(*PROFILE_ROLES)),
    directory: UserDirectory = Depends(get_user_directory),
):
    """Get the authenticated user's record."""
    user = await directory.get_by_username(claims.username)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
