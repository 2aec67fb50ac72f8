"""ORM entities for the durable local store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from incubator.db.base import Base


class WorkspaceSlot(Base):
    """One named slot holding one serialized collection as a JSON array."""

    __tablename__ = "workspace_slots"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
