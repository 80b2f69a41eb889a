"""Upgrade of legacy stage folders (e.g. ``chat``) into their canonical stage.

Runs on every listing; with no legacy folder or guidance file present it only
costs a couple of ``stat`` calls.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from application.ports import (
    FileStore,
    FileStoreError,
    ensure_directory,
    exists,
    list_markdown_files,
    read_text_if_exists,
    write_text,
)
from application.scaffolding import stage_guidance
from core.frontmatter import parse_document, serialize_document
from core.stage import LEGACY_STAGE_ALIASES
from infrastructure.workspace import Workspace

logger = logging.getLogger("taskdeck.migration")


@dataclass
class MigrationReport:
    moved: List[Dict[str, str]] = field(default_factory=list)
    rewritten: List[str] = field(default_factory=list)
    guidance: List[str] = field(default_factory=list)
    removed_folders: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.moved or self.rewritten or self.guidance or self.removed_folders)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "moved": list(self.moved),
            "rewritten": list(self.rewritten),
            "guidance": list(self.guidance),
            "removedFolders": list(self.removed_folders),
            "errors": list(self.errors),
        }


def free_target_path(store: FileStore, directory: Path, file_name: str) -> Path:
    """``directory/file_name``, or ``<base>-2.md``, ``<base>-3.md``... when taken."""
    target = directory / file_name
    base = file_name.removesuffix(".md")
    counter = 1
    while exists(store, target):
        counter += 1
        target = directory / f"{base}-{counter}.md"
    return target


def _rewrite_legacy_stage(store: FileStore, path: Path, legacy: str, canonical: str, report: MigrationReport) -> None:
    content = read_text_if_exists(store, path)
    if not content:
        return
    doc = parse_document(content)
    declared = doc.metadata.get("stage")
    if isinstance(declared, str) and declared.strip().lower() == legacy:
        metadata = dict(doc.metadata)
        metadata["stage"] = canonical
        write_text(store, path, serialize_document(doc.body, metadata))
        report.rewritten.append(str(path))


def _migrate_folder(store: FileStore, workspace: Workspace, legacy: str, canonical: str, report: MigrationReport) -> None:
    legacy_dir = workspace.stage_dir(legacy)
    if not exists(store, legacy_dir):
        return
    target_dir = workspace.stage_dir(canonical)
    ensure_directory(store, target_dir)

    for name in list_markdown_files(store, legacy_dir):
        source = legacy_dir / name
        try:
            _rewrite_legacy_stage(store, source, legacy, canonical, report)
            target = free_target_path(store, target_dir, name)
            store.rename(source, target, overwrite=False)
            report.moved.append({"from": str(source), "to": str(target)})
        except (FileStoreError, UnicodeDecodeError) as exc:
            logger.error("Failed to migrate legacy %s task %s: %s", legacy, name, exc)
            report.errors.append(f"{source}: {exc}")

    try:
        if store.list_dir(legacy_dir):
            logger.warning("Legacy folder %s still has entries; leaving it in place", legacy_dir)
            return
        store.delete(legacy_dir, recursive=False)
        report.removed_folders.append(str(legacy_dir))
    except FileStoreError as exc:
        logger.warning("Could not remove legacy folder %s: %s", legacy_dir, exc)


def _migrate_guidance(store: FileStore, workspace: Workspace, legacy: str, canonical: str, report: MigrationReport) -> None:
    legacy_file = workspace.stage_context_file(legacy)
    canonical_file = workspace.stage_context_file(canonical)
    if not exists(store, legacy_file) or exists(store, canonical_file):
        return
    content = read_text_if_exists(store, legacy_file)
    if content:
        updated = re.sub(rf"Stage:\s*{re.escape(legacy)}", f"Stage: {canonical}", content, count=1, flags=re.IGNORECASE)
    else:
        updated = stage_guidance(canonical)
    ensure_directory(store, canonical_file.parent)
    write_text(store, canonical_file, updated)
    report.guidance.append(str(canonical_file))


def migrate_legacy_stages(store: FileStore, workspace: Workspace) -> MigrationReport:
    report = MigrationReport()
    for legacy, canonical in LEGACY_STAGE_ALIASES.items():
        try:
            _migrate_folder(store, workspace, legacy, canonical, report)
            _migrate_guidance(store, workspace, legacy, canonical, report)
        except (FileStoreError, UnicodeDecodeError) as exc:
            logger.error("Legacy stage migration for %s failed: %s", legacy, exc)
            report.errors.append(f"{legacy}: {exc}")
    if report.changed:
        logger.info("Legacy stage migration: %d moved, %d rewritten", len(report.moved), len(report.rewritten))
    return report


__all__ = ["MigrationReport", "free_target_path", "migrate_legacy_stages"]
