from __future__ import annotations

import json
import logging

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from incubator.models.workspace import Member, WorkspaceState
from incubator.repositories.slot_repository import SlotRepository
from incubator.services.entity_store import SLOT_NAMES, EntityStore, changed_collections


def _replace_members(*members: Member):
    def compute(state: WorkspaceState) -> tuple[WorkspaceState, int]:
        return state.model_copy(update={"members": members}), len(members)

    return compute


def test_slot_names_are_camel_case() -> None:
    assert SLOT_NAMES == {
        "projects": "projects",
        "members": "members",
        "tasks": "tasks",
        "activities": "activities",
        "direct_expenses": "directExpenses",
        "reports": "reports",
    }


def test_mutation_is_published_and_saved(session_factory: sessionmaker[Session]) -> None:
    store = EntityStore(session_factory)
    store.load()

    result = store.mutate(_replace_members(Member(id="m1", email="a@x.com")))

    assert result.value == 1
    assert result.changed == ("members",)
    assert result.persistence_warnings == []
    reloaded = EntityStore(session_factory)
    assert reloaded.load().members == (Member(id="m1", email="a@x.com"),)

    with session_factory() as db:
        slot = SlotRepository(db).get_slot("members")
        assert slot is not None
        assert json.loads(slot.payload)[0]["id"] == "m1"
        # Untouched collections are not written.
        assert SlotRepository(db).get_slot("projects") is None


def test_unchanged_state_skips_publish(session_factory: sessionmaker[Session]) -> None:
    store = EntityStore(session_factory)
    before = store.state

    result = store.mutate(lambda state: (state, None))

    assert result.changed == ()
    assert store.state is before


def test_failed_compute_publishes_nothing(session_factory: sessionmaker[Session]) -> None:
    store = EntityStore(session_factory)
    store.mutate(_replace_members(Member(id="m1")))

    def explode(state: WorkspaceState) -> tuple[WorkspaceState, None]:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.mutate(explode)
    assert [member.id for member in store.state.members] == ["m1"]


def test_corrupt_slots_load_empty(session_factory: sessionmaker[Session], caplog: pytest.LogCaptureFixture) -> None:
    with session_factory() as db:
        repo = SlotRepository(db)
        repo.upsert_slot("projects", "{not json")
        repo.upsert_slot("tasks", json.dumps([{"title": "no ids"}]))
        repo.upsert_slot("members", json.dumps([{"id": "m1", "firstName": "Ada"}]))
        db.commit()

    with caplog.at_level(logging.WARNING, logger="incubator"):
        state = EntityStore(session_factory).load()

    assert state.projects == ()
    assert state.tasks == ()
    assert [member.display_name for member in state.members] == ["Ada"]
    assert "Slot projects is corrupt" in caplog.text
    assert "Slot tasks is corrupt" in caplog.text


def test_save_failure_keeps_in_memory_state() -> None:
    # No tables: every read and write fails.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    store = EntityStore(factory)

    assert store.load() == WorkspaceState()
    result = store.mutate(_replace_members(Member(id="m1")))

    assert [member.id for member in store.state.members] == ["m1"]
    assert len(result.persistence_warnings) == 1
    assert result.persistence_warnings[0].slots == ("members",)
    assert "Local save failed for members" in result.persistence_warnings[0].describe()
    engine.dispose()


def test_store_without_durable_backend() -> None:
    store = EntityStore()

    result = store.mutate(_replace_members(Member(id="m1")))

    assert result.persistence_warnings == []
    assert store.load().members == (Member(id="m1"),)


def test_changed_collections_compares_by_value() -> None:
    before = WorkspaceState(members=(Member(id="m1"),))
    same = before.model_copy(update={"members": (Member(id="m1"),)})
    changed = before.model_copy(update={"members": (Member(id="m2"),)})

    assert changed_collections(before, same) == ()
    assert changed_collections(before, changed) == ("members",)
