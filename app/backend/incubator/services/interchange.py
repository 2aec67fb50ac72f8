"""Interchange files: workspace backups and single-project exports.

Both file shapes share one envelope ``{type, appVersion, exportDate, data}``.
Reading a file checks the type and version tags for exact equality and
validates the payload before anything is handed to the store.
"""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from incubator.core.config import Settings
from incubator.core.errors import InterchangeValidationError
from incubator.core.logging import get_logger
from incubator.models.workspace import ProjectBundle, WorkspaceState

logger = get_logger(__name__)

ENVELOPE_FIELDS = ("type", "appVersion", "exportDate", "data")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_envelope(file_type: str, app_version: str, data: dict[str, Any], *, now: datetime | None = None) -> dict[str, Any]:
    return {
        "type": file_type,
        "appVersion": app_version,
        "exportDate": (now or _utcnow()).isoformat(),
        "data": data,
    }


def workspace_backup(state: WorkspaceState, settings: Settings, *, now: datetime | None = None) -> dict[str, Any]:
    return build_envelope(settings.workspace_backup_type, settings.app_version, state.to_payload(), now=now)


def project_export(bundle: ProjectBundle, settings: Settings, *, now: datetime | None = None) -> dict[str, Any]:
    return build_envelope(settings.project_export_type, settings.app_version, bundle.to_payload(), now=now)


def backup_filename(settings: Settings, *, now: datetime | None = None) -> str:
    day = (now or _utcnow()).date().isoformat()
    return f"{settings.app_export_name.lower()}-workspace-backup-{day}.json"


def project_filename(settings: Settings, project_title: str) -> str:
    safe_title = re.sub(r"[^a-z0-9]", "_", project_title, flags=re.IGNORECASE).lower()
    return f"{settings.app_export_name.lower()}-project-{safe_title}.json"


def _load(raw: str | bytes | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InterchangeValidationError("File is not valid JSON.", fields=["file"]) from exc
    if not isinstance(parsed, dict):
        raise InterchangeValidationError("File does not contain an export envelope.", fields=["file"])
    return parsed


def check_envelope(raw: str | bytes | dict[str, Any], *, expected_type: str, expected_version: str, label: str) -> dict[str, Any]:
    """Return the envelope ``data`` after exact type and version checks."""

    envelope = _load(raw)
    missing = [name for name in ENVELOPE_FIELDS if name not in envelope]
    if missing:
        raise InterchangeValidationError(f"Export envelope is missing: {', '.join(missing)}.", fields=missing)

    fields: list[str] = []
    messages: list[str] = []
    if envelope["type"] != expected_type:
        fields.append("type")
        messages.append(f"Invalid file type. This is not a valid {label} file.")
    if envelope["appVersion"] != expected_version:
        fields.append("appVersion")
        messages.append(f"Version mismatch. File version: {envelope['appVersion']}, App version: {expected_version}.")
    if fields:
        logger.warning("Rejected %s file: %s", label, " ".join(messages))
        raise InterchangeValidationError(" ".join(messages), fields=fields)

    if not isinstance(envelope["data"], dict):
        raise InterchangeValidationError("Export data must be an object.", fields=["data"])
    return envelope["data"]


def _validate(model: type[BaseModel], data: dict[str, Any], label: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = sorted({".".join(["data", *(str(part) for part in error["loc"])]) for error in exc.errors()})
        logger.warning("Rejected %s file: %d invalid field(s).", label, len(fields))
        raise InterchangeValidationError(f"The {label} file contains invalid records.", fields=fields) from exc


def read_workspace_backup(raw: str | bytes | dict[str, Any], settings: Settings) -> WorkspaceState:
    data = check_envelope(
        raw,
        expected_type=settings.workspace_backup_type,
        expected_version=settings.app_version,
        label="workspace backup",
    )
    return _validate(WorkspaceState, data, "workspace backup")


def read_project_export(raw: str | bytes | dict[str, Any], settings: Settings) -> ProjectBundle:
    data = check_envelope(
        raw,
        expected_type=settings.project_export_type,
        expected_version=settings.app_version,
        label="project export",
    )
    return _validate(ProjectBundle, data, "project export")
