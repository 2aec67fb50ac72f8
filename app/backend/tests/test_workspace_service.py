from __future__ import annotations

import pytest
from sqlalchemy.orm import Session, sessionmaker

from incubator.core.config import Settings
from incubator.core.errors import IntegrityViolationError, InterchangeValidationError, RecordNotFoundError
from incubator.models.workspace import (
    Activity,
    ActivityStatus,
    Budget,
    BudgetExpenses,
    BudgetItem,
    Member,
    Project,
    Report,
    Task,
    TaskType,
    WorkspaceState,
)
from incubator.services import interchange
from incubator.services.entity_store import EntityStore
from incubator.services.import_merge import build_project_bundle
from incubator.services.workspace_service import WorkspaceService


def _seed(service: WorkspaceService, state: WorkspaceState) -> None:
    service.store.mutate(lambda _: (state, None))


def test_save_mints_ids_and_stamps_times(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)

    task = service.save_task(Task(id="", project_id="P1", title="Rig lights")).value
    activity = service.save_activity(Activity(id="", task_id=task.id, hours=2)).value

    assert task.id.startswith("task_")
    assert task.updated_at
    assert activity.id.startswith("act_")
    assert activity.created_at == activity.updated_at
    assert service.get_task(task.id).title == "Rig lights"


def test_replace_by_id_keeps_position(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)

    service.save_member(Member(id="m1", first_name="Ada", last_name="Moss", email="a@x.com"), must_exist=True)

    assert [member.id for member in service.state.members] == ["m1", "m2"]
    assert service.get_member("m1").last_name == "Moss"


def test_update_of_unknown_record(service: WorkspaceService) -> None:
    with pytest.raises(RecordNotFoundError):
        service.save_member(Member(id="m404"), must_exist=True)


def test_create_with_taken_id(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)

    with pytest.raises(IntegrityViolationError):
        service.save_member(Member(id="m1"))


def test_rejected_save_leaves_state_untouched(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)
    before = service.state

    with pytest.raises(IntegrityViolationError):
        service.save_task(Task(id="T9", project_id="P404"))

    assert service.state is before


def test_dangling_optional_reference_becomes_warning(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)

    result = service.save_task(Task(id="T9", project_id="P2", assigned_member_id="ghost", budget_item_id="B1"))

    assert result.value.assigned_member_id == ""
    assert result.value.budget_item_id == ""
    assert len(result.warnings) == 2


def test_dropping_budget_item_releases_references(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)
    project = service.get_project("P1")
    trimmed = project.model_copy(
        update={"budget": Budget(expenses=BudgetExpenses(production=(BudgetItem(id="B2", amount=400),)))}
    )

    result = service.save_project(trimmed, must_exist=True)

    assert service.get_task("T1").budget_item_id == ""
    assert any("budget_item_id='B1'" in warning for warning in result.warnings)


def test_duplicate_budget_ids_are_rejected(service: WorkspaceService) -> None:
    project = Project(
        id="P1",
        budget=Budget(expenses=BudgetExpenses(travel=(BudgetItem(id="X"),), research=(BudgetItem(id="X"),))),
    )

    with pytest.raises(IntegrityViolationError):
        service.save_project(project)
    assert service.state.projects == ()


def test_one_report_per_project(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)

    with pytest.raises(IntegrityViolationError):
        service.save_report(Report(id="", project_id="P1"))
    updated = service.save_report(Report(id="R1", project_id="P1", feedback="Great"), must_exist=True)
    assert updated.value.feedback == "Great"


def test_approve_activity_feeds_reconciliation(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)

    service.approve_activity("A2")

    assert service.reconcile_project("P1").item("B1").actual == 600
    assert service.state.activities[1].status is ActivityStatus.APPROVED


def test_delete_unknown_id_twice_is_safe(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)

    first = service.delete_task("T1")
    second = service.delete_task("T1")

    assert first.value.found is True
    assert second.value.found is False
    assert second.warnings == []


def test_import_twice_never_duplicates_members(service: WorkspaceService, settings: Settings, workspace: WorkspaceState) -> None:
    bundle = build_project_bundle(workspace, "P1")
    bundle = bundle.model_copy(update={"members": (*bundle.members[:1], Member(id="m2", email="new@x.com"))})
    envelope = interchange.project_export(bundle, settings)

    service.import_project(envelope)
    members_after_first = service.state.members
    service.import_project(envelope)

    assert len(service.state.projects) == 2
    assert service.state.members == members_after_first
    assert {member.email for member in service.state.members} == {"a@x.com", "new@x.com"}
    assert service.state.projects[0].id != service.state.projects[1].id


def test_import_with_wrong_version_changes_nothing(
    service: WorkspaceService, settings: Settings, workspace: WorkspaceState
) -> None:
    envelope = interchange.project_export(build_project_bundle(workspace, "P1"), settings)
    envelope["appVersion"] = "0.0.1"

    with pytest.raises(InterchangeValidationError):
        service.import_project(envelope)
    assert service.state == WorkspaceState()


def test_preview_does_not_mutate(service: WorkspaceService, settings: Settings, workspace: WorkspaceState) -> None:
    _seed(service, WorkspaceState(members=(Member(id="w1", email="A@x.com"),)))
    envelope = interchange.project_export(build_project_bundle(workspace, "P1"), settings)

    preview = service.preview_project_import(envelope).to_dict()

    assert [row["id"] for row in preview["matched_members"]] == ["m1"]
    assert [row["id"] for row in preview["new_members"]] == ["m2"]
    assert len(service.state.projects) == 0


def test_restore_then_export_round_trip(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)
    _, envelope = service.export_workspace()
    service.clear_workspace()
    assert service.state == WorkspaceState()

    result = service.restore_workspace(envelope)

    assert service.state == workspace
    assert result.warnings == []


def test_restore_is_persisted(
    service: WorkspaceService, workspace: WorkspaceState, session_factory: sessionmaker[Session]
) -> None:
    _seed(service, workspace)
    _, envelope = service.export_workspace()
    service.clear_workspace()
    service.restore_workspace(envelope)

    assert EntityStore(session_factory).load() == workspace


def test_time_logs_keep_member_of_deleted_member_on_later_saves(
    service: WorkspaceService, workspace: WorkspaceState
) -> None:
    _seed(service, workspace)
    service.delete_member("m1")

    result = service.approve_activity("A2")

    assert result.value.member_id == "m1"
    assert result.value.status is ActivityStatus.APPROVED
    assert result.warnings == ["activity A2: member_id='m1' is dangling (kept)."]


def test_reassigning_time_log_to_missing_member_is_blanked(
    service: WorkspaceService, workspace: WorkspaceState
) -> None:
    _seed(service, workspace)
    service.delete_member("m1")
    activity = service.state.activities[1]

    result = service.save_activity(activity.model_copy(update={"member_id": "ghost"}), must_exist=True)

    assert result.value.member_id == ""
    assert result.warnings == ["activity A2: member_id='ghost' is dangling (null_out)."]


def test_milestone_task_drops_budget_item(service: WorkspaceService, workspace: WorkspaceState) -> None:
    _seed(service, workspace)

    result = service.save_task(
        Task(id="T9", project_id="P1", task_type=TaskType.MILESTONE, budget_item_id="B1", hourly_rate=50)
    )

    assert result.value.budget_item_id == ""
    assert service.get_task("T9").budget_item_id == ""
