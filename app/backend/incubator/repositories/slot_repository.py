"""Repository helpers for the durable workspace slots."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from incubator.models.entities import WorkspaceSlot


class SlotRepository:
    """Persistence operations over the named workspace slots."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_slot(self, name: str) -> WorkspaceSlot | None:
        return self.db.scalar(select(WorkspaceSlot).where(WorkspaceSlot.name == name))

    def list_slots(self) -> list[WorkspaceSlot]:
        return self.db.scalars(select(WorkspaceSlot).order_by(WorkspaceSlot.name.asc())).all()

    def upsert_slot(self, name: str, payload: str) -> WorkspaceSlot:
        slot = self.get_slot(name)
        now = datetime.utcnow()
        if slot is None:
            slot = WorkspaceSlot(name=name, payload=payload, updated_at=now)
            self.db.add(slot)
        else:
            slot.payload = payload
            slot.updated_at = now
        self.db.flush()
        return slot
