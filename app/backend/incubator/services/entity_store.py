"""In-memory entity store with best-effort persistence to the durable slots."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from incubator.core.errors import PersistenceWarning
from incubator.core.logging import get_logger
from incubator.models.workspace import COLLECTION_TYPES, WorkspaceState
from incubator.repositories.slot_repository import SlotRepository
from incubator.services.integrity import audit_workspace

logger = get_logger(__name__)

T = TypeVar("T")

# Collection attribute -> durable slot name ("direct_expenses" -> "directExpenses").
SLOT_NAMES: dict[str, str] = {collection: to_camel(collection) for collection in COLLECTION_TYPES}

_SLOT_ADAPTERS: dict[str, TypeAdapter] = {
    collection: TypeAdapter(tuple[record_type, ...]) for collection, record_type in COLLECTION_TYPES.items()
}


@dataclass(slots=True)
class MutationResult(Generic[T]):
    value: T
    changed: tuple[str, ...] = ()
    persistence_warnings: list[PersistenceWarning] = field(default_factory=list)


def changed_collections(previous: WorkspaceState, current: WorkspaceState) -> tuple[str, ...]:
    changed: list[str] = []
    for collection in COLLECTION_TYPES:
        before = getattr(previous, collection)
        after = getattr(current, collection)
        if before is not after and before != after:
            changed.append(collection)
    return tuple(changed)


def serialize_collection(state: WorkspaceState, collection: str) -> str:
    return json.dumps([row.to_payload() for row in getattr(state, collection)])


class EntityStore:
    """Holds the current workspace snapshot and publishes whole next states.

    Readers always see a complete snapshot: a mutation builds the full next
    state from the current one and swaps it in with a single assignment.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory
        self._state = WorkspaceState()
        self._lock = threading.RLock()

    @property
    def state(self) -> WorkspaceState:
        return self._state

    # ---------- Startup ----------
    def load(self) -> WorkspaceState:
        """Read every slot from the durable store; bad or missing slots load empty."""

        if self._session_factory is None:
            return self._state

        collections: dict[str, tuple] = {}
        try:
            with self._session_factory() as db:
                rows = {slot.name: slot.payload for slot in SlotRepository(db).list_slots()}
        except SQLAlchemyError:
            logger.warning("Local store unreadable; starting with an empty workspace.", exc_info=True)
            return self._state

        for collection, slot_name in SLOT_NAMES.items():
            raw = rows.get(slot_name)
            if raw is None:
                logger.info("Slot %s not found; starting empty.", slot_name)
                collections[collection] = ()
                continue
            try:
                collections[collection] = _SLOT_ADAPTERS[collection].validate_python(json.loads(raw))
            except (json.JSONDecodeError, ValidationError, TypeError) as exc:
                logger.warning("Slot %s is corrupt (%s); starting empty.", slot_name, exc.__class__.__name__)
                collections[collection] = ()

        with self._lock:
            self._state = WorkspaceState(**collections)
        for ref in audit_workspace(self._state):
            logger.warning("Loaded workspace carries a dangling reference: %s", ref.describe())
        logger.info(
            "Workspace loaded.",
            extra={name: len(rows) for name, rows in collections.items()},
        )
        return self._state

    # ---------- Mutation ----------
    def mutate(self, compute: Callable[[WorkspaceState], tuple[WorkspaceState, T]]) -> MutationResult[T]:
        """Compute the next state from the current snapshot, publish it, then save.

        ``compute`` must not have side effects; when it raises, nothing is
        published. A failed save never rolls back the published state.
        """

        with self._lock:
            previous = self._state
            next_state, value = compute(previous)
            changed = changed_collections(previous, next_state)
            if not changed:
                return MutationResult(value=value)
            self._state = next_state
            logger.debug("Published workspace state.", extra={"changed": list(changed)})
            warnings = self._persist(next_state, changed)
        return MutationResult(value=value, changed=changed, persistence_warnings=warnings)

    def _persist(self, state: WorkspaceState, collections: tuple[str, ...]) -> list[PersistenceWarning]:
        if self._session_factory is None:
            return []

        slot_names = tuple(SLOT_NAMES[collection] for collection in collections)
        try:
            with self._session_factory() as db:
                repo = SlotRepository(db)
                for collection in collections:
                    repo.upsert_slot(SLOT_NAMES[collection], serialize_collection(state, collection))
                db.commit()
        except SQLAlchemyError as exc:
            logger.warning("Local save failed for %s.", ", ".join(slot_names), exc_info=True)
            return [PersistenceWarning(slots=slot_names, reason=exc.__class__.__name__)]
        return []
