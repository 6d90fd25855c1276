"""User and authority grant models."""

from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tablesync.models.base import Base


class User(Base):
    """A caller known to the server, identified by the token subject."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)

    grants: Mapped[list[UserGrant]] = relationship(
        back_populates="user", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def direct_authorities(self) -> set[str]:
        return {grant.authority for grant in self.grants}


class UserGrant(Base):
    """An authority (group or role name) granted directly to a user."""

    __tablename__ = "user_grants"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    authority: Mapped[str] = mapped_column(String, primary_key=True)

    user: Mapped[User] = relationship(back_populates="grants")
