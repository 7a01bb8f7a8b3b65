from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from credit_engine.models.base import EntityBase


class Profile(EntityBase):
    """Per-user row; ``id`` is the authenticated principal id."""

    __tablename__ = "profiles"

    tenant_key: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
