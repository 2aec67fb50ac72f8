from __future__ import annotations

import itertools

import pytest

from incubator.core.errors import RecordNotFoundError
from incubator.models.workspace import (
    Activity,
    Budget,
    BudgetExpenses,
    BudgetItem,
    Collaborator,
    DirectExpense,
    Member,
    Project,
    ProjectBundle,
    Task,
    WorkspaceState,
)
from incubator.services.import_merge import (
    IdTranslationTable,
    analyze_project_bundle,
    build_project_bundle,
    merge_project_bundle,
)


def _sequential_ids():
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}_new{next(counter)}"


def _bundle() -> ProjectBundle:
    return ProjectBundle(
        project=Project(
            id="P1",
            project_title="Harbour Lights",
            collaborator_details=(Collaborator(member_id="bm1", role="Lead"), Collaborator(member_id="bm2")),
            budget=Budget(expenses=BudgetExpenses(professional_fees=(BudgetItem(id="B1", amount=1000),))),
        ),
        tasks=(Task(id="T1", project_id="P1", assigned_member_id="bm1", budget_item_id="B1"),),
        activities=(Activity(id="A1", task_id="T1", member_id="bm2", hours=3),),
        direct_expenses=(DirectExpense(id="E1", project_id="P1", budget_item_id="B1", amount=20),),
        members=(
            Member(id="bm1", first_name="Ada", email="A@X.com"),
            Member(id="bm2", first_name="Cy", email="cy@x.com"),
        ),
    )


def test_matching_email_reuses_existing_member() -> None:
    workspace_members = [Member(id="m1", first_name="Ada", email="a@x.com")]

    result = merge_project_bundle(_bundle(), workspace_members, id_factory=_sequential_ids())

    assert [member.email for member in result.members] == ["cy@x.com"]
    new_member_id = result.members[0].id
    assert result.project.collaborator_details[0].member_id == "m1"
    assert result.project.collaborator_details[1].member_id == new_member_id
    assert result.tasks[0].assigned_member_id == "m1"
    assert result.activities[0].member_id == new_member_id
    assert [(match.bundle_member_id, match.workspace_member_id) for match in result.member_matches] == [("bm1", "m1")]
    assert result.warnings == []


def test_merged_references_resolve_inside_the_merge() -> None:
    result = merge_project_bundle(_bundle(), [], id_factory=_sequential_ids())

    old_ids = {"P1", "T1", "A1", "E1", "B1", "bm1", "bm2"}
    member_ids = {member.id for member in result.members}
    task_ids = {task.id for task in result.tasks}
    item_ids = result.project.budget.item_ids()

    assert result.project.id not in old_ids
    assert item_ids.isdisjoint(old_ids)
    for task in result.tasks:
        assert task.id not in old_ids
        assert task.project_id == result.project.id
        assert task.assigned_member_id in member_ids
        assert task.budget_item_id in item_ids
    for activity in result.activities:
        assert activity.task_id in task_ids
        assert activity.member_id in member_ids
    for expense in result.direct_expenses:
        assert expense.project_id == result.project.id
        assert expense.budget_item_id in item_ids
    assert {entry.member_id for entry in result.project.collaborator_details} == member_ids


def test_apply_appends_without_touching_existing_records(workspace: WorkspaceState) -> None:
    result = merge_project_bundle(_bundle(), workspace.members)

    merged = result.apply(workspace)

    assert len(merged.projects) == len(workspace.projects) + 1
    assert merged.projects[: len(workspace.projects)] == workspace.projects
    assert merged.members[: len(workspace.members)] == workspace.members
    assert merged.tasks[: len(workspace.tasks)] == workspace.tasks
    assert merged.activities[: len(workspace.activities)] == workspace.activities
    assert merged.direct_expenses[: len(workspace.direct_expenses)] == workspace.direct_expenses
    assert merged.reports == workspace.reports


def test_duplicate_emails_inside_bundle_create_one_member() -> None:
    bundle = _bundle().model_copy(
        update={
            "members": (
                Member(id="bm1", email="new@x.com"),
                Member(id="bm2", email=" NEW@x.com "),
            )
        }
    )

    result = merge_project_bundle(bundle, [], id_factory=_sequential_ids())

    assert len(result.members) == 1
    only = result.members[0].id
    assert result.tasks[0].assigned_member_id == only
    assert result.activities[0].member_id == only


def test_blank_emails_never_match() -> None:
    bundle = _bundle().model_copy(update={"members": (Member(id="bm1"), Member(id="bm2"))})

    result = merge_project_bundle(bundle, [Member(id="m9")], id_factory=_sequential_ids())

    assert len(result.members) == 2
    assert result.member_matches == []


def test_unresolvable_bundle_references_are_repaired() -> None:
    bundle = _bundle().model_copy(
        update={
            "tasks": (Task(id="T1", project_id="P-other", assigned_member_id="ghost", budget_item_id="B-gone"),),
            "activities": (Activity(id="A1", task_id="T-gone"),),
        }
    )

    result = merge_project_bundle(bundle, [], id_factory=_sequential_ids())

    task = result.tasks[0]
    assert task.project_id == result.project.id
    assert task.assigned_member_id == ""
    assert task.budget_item_id == ""
    assert result.activities == ()
    actions = sorted((ref.field, ref.action) for ref in result.warnings)
    assert actions == [
        ("assigned_member_id", "null_out"),
        ("budget_item_id", "null_out"),
        ("project_id", "reassigned"),
        ("task_id", "dropped"),
    ]


def test_translation_table_is_namespaced_by_kind() -> None:
    table = IdTranslationTable(_sequential_ids())

    table.bind("member", "x1", "m1")
    minted = table.mint("task", "x1")

    assert table.get("member", "x1") == "m1"
    assert table.get("task", "x1") == minted
    assert table.get("project", "x1") is None
    assert table.get("member", "") is None
    assert len(table) == 2


def test_analyze_bundle_splits_matched_and_new() -> None:
    analysis = analyze_project_bundle(_bundle(), [Member(id="m1", email="a@x.com")])

    payload = analysis.to_dict()
    assert [row["id"] for row in payload["matched_members"]] == ["bm1"]
    assert [row["id"] for row in payload["new_members"]] == ["bm2"]


def test_build_bundle_collects_project_closure(workspace: WorkspaceState) -> None:
    bundle = build_project_bundle(workspace, "P1")

    assert bundle.project.id == "P1"
    assert [task.id for task in bundle.tasks] == ["T1", "T2"]
    assert [activity.id for activity in bundle.activities] == ["A1", "A2", "A3"]
    assert [expense.id for expense in bundle.direct_expenses] == ["E1"]
    assert [member.id for member in bundle.members] == ["m1", "m2"]


def test_build_bundle_for_unknown_project(workspace: WorkspaceState) -> None:
    with pytest.raises(RecordNotFoundError):
        build_project_bundle(workspace, "missing")
