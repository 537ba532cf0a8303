"""
Profile model linking an identity provider account to a matrix role.
"""
from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin


class Profile(Base, TimestampMixin):
    """
    Console user.

    The primary key is the Appwrite account id, so there is exactly one
    profile per account. role_id is nullable: a user with no role is not the
    same as a user whose role denies everything.
    """
    __tablename__ = "profiles"

    # Appwrite account id
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)

    role_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("roles.id"),
        nullable=True,
        index=True
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, email={self.email!r}, role_id={self.role_id})>"
