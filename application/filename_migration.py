"""Rename stage-prefixed task files (``<stage>-<slug>.md``) to stable ids.

The new id is the frontmatter ``id`` when that is not itself stage-prefixed,
otherwise ``<created epoch ms>-<slug>``. Ids are unique case-insensitively
across every stage folder. Files are renamed within their folder; the
frontmatter ``id`` is rewritten and a missing ``stage``/``created`` filled in.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from application.ports import (
    FileStore,
    FileStoreError,
    ensure_directory,
    list_markdown_files,
    read_text,
    stat_or_none,
    write_text,
)
from core import epoch_to_iso
from core.frontmatter import Metadata, metadata_str, metadata_timestamp, parse_document, serialize_document
from core.stage import get_base_slug, is_stage_prefixed, normalize_stage, slugify
from infrastructure.workspace import Workspace

logger = logging.getLogger("taskdeck.migration")


@dataclass
class FilenameMigrationAction:
    stage: str
    source: Path
    target: Path
    new_id: str
    needs_content_update: bool
    next_content: str
    status: str = "planned"
    error: Optional[str] = None
    backup_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "stage": self.stage,
            "from": str(self.source),
            "to": str(self.target),
            "newId": self.new_id,
            "needsContentUpdate": self.needs_content_update,
            "status": self.status,
        }
        if self.error:
            data["error"] = self.error
        if self.backup_path:
            data["backupPath"] = str(self.backup_path)
        return data


@dataclass
class FilenameMigrationPlan:
    workspace: Workspace
    actions: List[FilenameMigrationAction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class FilenameMigrationReport:
    results: List[FilenameMigrationAction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    backup_root: Optional[Path] = None
    dry_run: bool = False

    @property
    def failed(self) -> List[FilenameMigrationAction]:
        return [action for action in self.results if action.status == "error"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dryRun": self.dry_run,
            "backupRoot": str(self.backup_root) if self.backup_root else None,
            "results": [action.to_dict() for action in self.results],
            "errors": list(self.errors),
        }


def _parse_iso_ms(value: str) -> Optional[int]:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def _timestamp_ms(metadata: Metadata, created: Optional[float], clock: Callable[[], float]) -> int:
    declared = metadata_timestamp(metadata, "created")
    if declared:
        parsed = _parse_iso_ms(declared)
        if parsed is not None:
            return parsed
    if created is not None:
        return int(created * 1000)
    return int(clock() * 1000)


def _unique(base_id: str, reserved: Set[str]) -> str:
    candidate = base_id
    counter = 1
    while candidate.lower() in reserved:
        candidate = f"{base_id}-{counter}"
        counter += 1
    return candidate


def _stage_folders(store: FileStore, workspace: Workspace) -> List[Tuple[str, str]]:
    """(folder name, canonical stage) for every recognized folder under the tasks root."""
    folders = []
    for entry in sorted(store.list_dir(workspace.tasks_root), key=lambda e: e.name):
        if not entry.is_dir:
            continue
        stage = normalize_stage(entry.name, None)
        if stage:
            folders.append((entry.name, stage))
    return folders


def plan_filename_migrations(
    store: FileStore,
    workspace: Workspace,
    clock: Callable[[], float] = time.time,
) -> FilenameMigrationPlan:
    """Work out the renames without touching any file.

    Raises :class:`FileStoreError` when the tasks root cannot be listed.
    """
    plan = FilenameMigrationPlan(workspace=workspace)
    folders = _stage_folders(store, workspace)

    reserved: Set[str] = set()
    pending = []
    for folder_name, stage in folders:
        directory = workspace.tasks_root / folder_name
        for name in list_markdown_files(store, directory):
            stem = name.removesuffix(".md")
            if is_stage_prefixed(stem):
                pending.append((stage, directory / name, stem))
            else:
                reserved.add(stem.lower())

    for stage, source, stem in pending:
        try:
            content = read_text(store, source)
        except (FileStoreError, UnicodeDecodeError) as exc:
            plan.errors.append(f"Failed to read {source}: {exc}")
            continue

        doc = parse_document(content)
        metadata = dict(doc.metadata)
        stat = stat_or_none(store, source)
        declared_id = metadata_str(metadata, "id")

        slug = slugify(get_base_slug(declared_id) if declared_id else get_base_slug(stem))
        if declared_id and not is_stage_prefixed(declared_id):
            base_id = slugify(declared_id)
        else:
            base_id = f"{_timestamp_ms(metadata, stat.created if stat else None, clock)}-{slug}"
        new_id = _unique(base_id, reserved)
        reserved.add(new_id.lower())

        needs_rewrite = declared_id != new_id or not metadata.get("stage")
        if needs_rewrite:
            metadata["id"] = new_id
            if not metadata.get("stage"):
                metadata["stage"] = stage
            if not metadata.get("created") and stat is not None:
                metadata["created"] = epoch_to_iso(stat.created)
            body = doc.body if doc.has_metadata_block else f"\n\n{content}"
            next_content = serialize_document(body, metadata)
        else:
            next_content = content

        plan.actions.append(
            FilenameMigrationAction(
                stage=stage,
                source=source,
                target=source.parent / f"{new_id}.md",
                new_id=new_id,
                needs_content_update=needs_rewrite,
                next_content=next_content,
            )
        )
    return plan


def apply_filename_migrations(
    store: FileStore,
    plan: FilenameMigrationPlan,
    *,
    dry_run: bool = False,
    backup: bool = False,
    clock: Callable[[], float] = time.time,
) -> FilenameMigrationReport:
    report = FilenameMigrationReport(errors=list(plan.errors), dry_run=dry_run)
    if backup and not dry_run:
        report.backup_root = plan.workspace.backups_dir / f"migrate-filenames-{int(clock() * 1000)}"

    base_dir = plan.workspace.base_dir
    for action in plan.actions:
        if dry_run:
            logger.info("[dry-run] %s -> %s", action.source, action.target)
            action.status = "dry-run"
            report.results.append(action)
            continue
        try:
            if report.backup_root is not None:
                backup_path = report.backup_root / action.source.relative_to(base_dir)
                ensure_directory(store, backup_path.parent)
                store.copy(action.source, backup_path, overwrite=False)
                action.backup_path = backup_path
            store.rename(action.source, action.target, overwrite=False)
            if action.needs_content_update:
                write_text(store, action.target, action.next_content)
            logger.info("Renamed %s -> %s", action.source, action.target)
            action.status = "migrated"
        except FileStoreError as exc:
            logger.error("Failed to migrate %s: %s", action.source, exc)
            action.status = "error"
            action.error = str(exc)
        report.results.append(action)
    return report


def migrate_filenames(
    store: FileStore,
    workspace: Workspace,
    *,
    dry_run: bool = False,
    backup: bool = False,
    clock: Callable[[], float] = time.time,
) -> FilenameMigrationReport:
    plan = plan_filename_migrations(store, workspace, clock)
    for error in plan.errors:
        logger.error(error)
    if not plan.actions:
        logger.info("No stage-prefixed filenames detected. Nothing to migrate.")
        return FilenameMigrationReport(errors=list(plan.errors), dry_run=dry_run)
    logger.info("Found %d stage-prefixed file(s) to migrate.", len(plan.actions))
    return apply_filename_migrations(store, plan, dry_run=dry_run, backup=backup, clock=clock)


__all__ = [
    "FilenameMigrationAction",
    "FilenameMigrationPlan",
    "FilenameMigrationReport",
    "plan_filename_migrations",
    "apply_filename_migrations",
    "migrate_filenames",
]
