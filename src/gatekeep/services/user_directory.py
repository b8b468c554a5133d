"""User directory — registration and authentication.

Service layer separates business logic from HTTP routing. API routes
call the directory, the directory calls the credential store and the
password hasher.

Registration does a lookup first, but only to fail fast: the store's
uniqueness constraint is what actually decides a race between two
registrations of the same username.
"""

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeep.auth.errors import AlreadyExists, AuthenticationFailed
from gatekeep.auth.password import PasswordHasher
from gatekeep.db.models import (
    DEFAULT_ROLES,
    USERNAME_MAX_LENGTH,
    User,
    parse_roles,
    utcnow,
)
from gatekeep.store.credentials import CredentialStore, DuplicateKey

logger = structlog.get_logger()


def normalize_roles(roles: str | list[str] | None) -> str:
    """Canonical stored form: trimmed labels joined by ','."""
    if roles is None:
        return DEFAULT_ROLES
    if isinstance(roles, str):
        return ",".join(parse_roles(roles))
    return ",".join(r.strip() for r in roles if r and r.strip())


class UserDirectory:
    """Business logic for identity records."""

    def __init__(
        self,
        db: AsyncSession,
        hasher: PasswordHasher | None = None,
        store: CredentialStore | None = None,
    ):
        self.db = db
        self.hasher = hasher or PasswordHasher()
        self.store = store or CredentialStore(db)

    # ─── Registration ───────────────────────────────────

    async def register(
        self,
        username: str,
        password: str,
        roles: str | list[str] | None = DEFAULT_ROLES,
        email: str = "",
    ) -> User:
        """Create a new record.

        Raises ValueError for an empty or over-long username, before any
        hashing, and AlreadyExists if the username is taken.
        """
        if not username or len(username) > USERNAME_MAX_LENGTH:
            raise ValueError(
                f"Username must be 1-{USERNAME_MAX_LENGTH} characters"
            )

        if await self.store.find_by_username(username) is not None:
            raise AlreadyExists(username)

        user = User(
            username=username,
            password_hash=self.hasher.hash(password),
            roles=normalize_roles(roles),
            email=email or "",
            created_at=utcnow(),
        )
        try:
            await self.store.insert(user)
        except DuplicateKey as e:
            raise AlreadyExists(username) from e

        await self.db.commit()
        logger.info(
            "auth.user_registered",
            user_id=str(user.id),
            username=username,
            roles=user.roles,
        )
        return user

    # ─── Authentication ─────────────────────────────────

    async def authenticate(self, username: str, password: str) -> User | None:
        """Return the record when the password matches, None otherwise.

        Unknown usernames and wrong passwords both return None, and both
        cost one password verification.
        """
        user = await self.store.find_by_username(username)
        if user is None:
            self.hasher.burn(password)
            logger.info("auth.login_failed", username=username)
            return None

        if not self.hasher.verify(password, user.password_hash):
            logger.info("auth.login_failed", username=username)
            return None

        # Records from before bcrypt get re-hashed on their first login
        if self.hasher.needs_upgrade(user.password_hash):
            user.password_hash = self.hasher.hash(password)
            await self.db.commit()
            logger.info("auth.password_hash_upgraded", user_id=str(user.id))

        logger.info("auth.login_succeeded", user_id=str(user.id))
        return user

    async def login(self, username: str, password: str) -> User:
        """Like authenticate(), but raises AuthenticationFailed on a miss."""
        user = await self.authenticate(username, password)
        if user is None:
            raise AuthenticationFailed()
        return user

    # ─── Lookups ────────────────────────────────────────

    async def get_by_username(self, username: str) -> User | None:
        return await self.store.find_by_username(username)

    async def get_by_id(self, user_id: uuid.UUID | str) -> User | None:
        return await self.store.find_by_id(user_id)
