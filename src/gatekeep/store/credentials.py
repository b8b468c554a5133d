"""Credential store — persistence for identity records.

Uniqueness of usernames is enforced by the database constraint, not by
checking first: a duplicate insert fails with DuplicateKey no matter
how many replicas raced to create it.
"""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from gatekeep.db.models import Base, User, new_uuid, utcnow

logger = structlog.get_logger()


class DuplicateKey(Exception):
    """Insert rejected by the username uniqueness constraint."""

    def __init__(self, username: str):
        super().__init__(f"Duplicate username: {username}")
        self.username = username


class CredentialStore:
    """Lookup and insert of User rows over an AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_username(self, username: str) -> User | None:
        result = await self.db.execute(
            select(User).where(User.username == username)
        )
        return result.scalars().first()

    async def find_by_id(self, user_id: uuid.UUID | str) -> User | None:
        if not isinstance(user_id, uuid.UUID):
            try:
                user_id = uuid.UUID(str(user_id))
            except ValueError:
                return None
        return await self.db.get(User, user_id)

    async def insert(self, user: User) -> User:
        """Insert a new record, assigning id and created_at when unset.

        The row is flushed but not committed; the caller owns the
        transaction. On a uniqueness violation the session is rolled
        back and DuplicateKey is raised.
        """
        if user.id is None:
            user.id = new_uuid()
        if user.created_at is None:
            user.created_at = utcnow()

        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            if "username" not in str(e.orig):
                raise
            logger.info("store.duplicate_username", username=user.username)
            raise DuplicateKey(user.username) from e
        return user

    @staticmethod
    async def ensure_schema(engine: AsyncEngine) -> None:
        """Create the users table and its unique constraint if missing.

        Safe to call on every startup; existing tables are left alone.
        """
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
