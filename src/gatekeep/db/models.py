"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Alembic auto-generates migrations by comparing these models to the actual DB.

Key points:
- UUID primary keys, generated client-side so the id is known before flush
- Username uniqueness lives in the database (uq_users_username), which is
  the only thing that settles concurrent registrations
- created_at is stamped once at insert and never touched again
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

USERNAME_MAX_LENGTH = 50
DEFAULT_ROLES = "User"


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class User(Base):
    """A registered identity.

    roles is a comma-delimited list of role labels ("Admin,Moderator").
    password_hash never holds a plaintext; see auth.password.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=new_uuid
    )
    username: Mapped[str] = mapped_column(
        String(USERNAME_MAX_LENGTH), nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    roles: Mapped[str] = mapped_column(
        String(255), nullable=False, default=DEFAULT_ROLES
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def role_list(self) -> list[str]:
        return parse_roles(self.roles)

    def __repr__(self) -> str:
        return f"<User {self.username} id={self.id}>"


def parse_roles(raw: str | None) -> list[str]:
    """Split a delimited role string, trimming and dropping empty entries."""
    if not raw:
        return []
    return [r.strip() for r in raw.split(",") if r.strip()]
