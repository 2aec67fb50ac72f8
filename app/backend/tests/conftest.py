from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from incubator.core.config import Settings, get_settings
from incubator.db.base import Base
import incubator.models.entities  # noqa: F401
from incubator.main import create_app
from incubator.models.workspace import (
    Activity,
    ActivityStatus,
    Budget,
    BudgetExpenses,
    BudgetItem,
    Collaborator,
    DirectExpense,
    Member,
    Project,
    Report,
    Task,
    WorkspaceState,
)
from incubator.services.entity_store import EntityStore
from incubator.services.workspace_service import WorkspaceService


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture()
def settings() -> Settings:
    return get_settings()


@pytest.fixture()
def store(session_factory: sessionmaker[Session]) -> EntityStore:
    store = EntityStore(session_factory)
    store.load()
    return store


@pytest.fixture()
def service(store: EntityStore, settings: Settings) -> WorkspaceService:
    return WorkspaceService(store, settings=settings)


@pytest.fixture()
def client(session_factory: sessionmaker[Session]) -> Generator[TestClient, None, None]:
    app = create_app(session_factory=session_factory)
    with TestClient(app) as test_client:
        yield test_client


def make_workspace() -> WorkspaceState:
    """Two projects; P1 carries tasks T1/T2 with time logs, an expense and a report."""

    budget = Budget(
        expenses=BudgetExpenses(
            professional_fees=(BudgetItem(id="B1", description="Artist fees", amount=1000),),
            production=(BudgetItem(id="B2", description="Set", amount=400),),
        )
    )
    return WorkspaceState(
        members=(
            Member(id="m1", first_name="Ada", last_name="Lane", email="a@x.com"),
            Member(id="m2", first_name="Bo", last_name="Ruiz", email="bo@x.com"),
        ),
        projects=(
            Project(
                id="P1",
                project_title="Harbour Lights",
                collaborator_details=(Collaborator(member_id="m1", role="Lead"), Collaborator(member_id="m2")),
                budget=budget,
            ),
            Project(id="P2", project_title="Quiet Rooms"),
        ),
        tasks=(
            Task(id="T1", project_id="P1", assigned_member_id="m1", budget_item_id="B1", hourly_rate=50),
            Task(id="T2", project_id="P1", assigned_member_id="m2"),
            Task(id="T3", project_id="P2", assigned_member_id="m1"),
        ),
        activities=(
            Activity(id="A1", task_id="T1", member_id="m1", hours=10, status=ActivityStatus.APPROVED),
            Activity(id="A2", task_id="T1", member_id="m1", hours=2),
            Activity(id="A3", task_id="T2", member_id="m2", hours=4),
            Activity(id="A4", task_id="T3", member_id="m1", hours=1),
        ),
        direct_expenses=(
            DirectExpense(id="E1", project_id="P1", budget_item_id="B2", amount=150),
            DirectExpense(id="E2", project_id="P2", amount=30),
        ),
        reports=(Report(id="R1", project_id="P1", project_results="Toured three towns."),),
    )


@pytest.fixture()
def workspace() -> WorkspaceState:
    return make_workspace()
