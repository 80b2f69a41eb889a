"""Command handlers behind the ``taskdeck`` CLI."""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import config
from application.context import create_agent_file, create_context_file, create_phase_file, load_context_data
from application.filename_migration import migrate_filenames
from application.ports import FileStore, FileStoreError
from application.scaffolding import scaffold_workspace
from application.stage_transition import StageTransitionEngine
from core import ErrorKind, MetadataPatch, normalize_stage
from infrastructure.file_repository import FileTaskRepository
from infrastructure.local_file_store import LocalFileStore
from infrastructure.workspace import Workspace
from interface.cli_io import outcome_response, structured_error, structured_response

logger = logging.getLogger("taskdeck.cli")

NOT_INITIALIZED = "No .taskdeck workspace found. Run `taskdeck init` first."


@dataclass
class CliContext:
    workspace: Workspace
    store: FileStore
    repository: FileTaskRepository
    engine: StageTransitionEngine

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "CliContext":
        workspace = Workspace.discover(getattr(args, "root", None))
        store = LocalFileStore()
        repository = FileTaskRepository(workspace, store)
        return cls(workspace, store, repository, StageTransitionEngine(repository))


def _split_csv(value: Optional[str]) -> Optional[List[str]]:
    """None stays None (leave unchanged); ``""`` becomes ``[]`` (clear)."""
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).expanduser().read_text(encoding="utf-8")


def cmd_init(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    try:
        written = scaffold_workspace(ctx.store, ctx.workspace)
    except FileStoreError as exc:
        return structured_error("init", f"Failed to initialize workspace: {exc}", kind=ErrorKind.IO)
    message = "Workspace initialized" if written else "Workspace already initialized"
    return structured_response("init", message=message, payload={"workspace": str(ctx.workspace.base_dir), "created": written})


def cmd_list(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    tasks = ctx.repository.list()
    if tasks is None:
        return structured_error("list", NOT_INITIALIZED, kind=ErrorKind.NOT_FOUND)
    if getattr(args, "stage", None):
        stage = normalize_stage(args.stage, None)
        tasks = [task for task in tasks if task.stage == stage]
    payload = {"total": len(tasks), "tasks": [task.to_dict() for task in tasks]}
    return structured_response("list", message=f"{len(tasks)} task(s)", payload=payload)


def cmd_show(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    if not ctx.repository.is_initialized():
        return structured_error("show", NOT_INITIALIZED, kind=ErrorKind.NOT_FOUND)
    task = ctx.repository.find(args.task_id)
    if task is None:
        return structured_error("show", f"Task not found: {args.task_id}", kind=ErrorKind.NOT_FOUND)
    return structured_response("show", message=task.title, payload={"task": task.to_dict()})


def cmd_create(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    content = args.content
    if content == "-":
        content = sys.stdin.read()
    result = ctx.repository.create(
        args.title,
        args.stage or config.get_default_stage(),
        phase=args.phase,
        agent=args.agent,
        contexts=_split_csv(args.contexts),
        tags=_split_csv(args.tags),
        content=content,
        template_name=args.template or config.get_default_template() or None,
        apply_template=not args.no_template,
    )
    message = f"Created {result.task.id}" if result.ok else result.message
    return outcome_response("create", result.ok, message, result.kind, result.to_dict())


def cmd_duplicate(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    result = ctx.repository.duplicate(args.task_id)
    message = f"Duplicated {args.task_id} as {result.task.id}" if result.ok else result.message
    return outcome_response("duplicate", result.ok, message, result.kind, result.to_dict())


def cmd_move(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    result = ctx.engine.move(args.task_id, args.from_stage, args.to_stage, args.order)
    message = f"Moved {args.task_id} to {result.to_stage}" if result.ok else result.message
    return outcome_response("move", result.ok, message, result.kind, result.to_dict())


def cmd_reorder(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    if not ctx.repository.is_initialized():
        return structured_error("reorder", NOT_INITIALIZED, kind=ErrorKind.NOT_FOUND)
    payload = {"stage": args.stage, "order": list(args.task_ids)}
    if not ctx.engine.reorder(args.stage, args.task_ids):
        return structured_error("reorder", f"Failed to reorder tasks in {args.stage}", payload=payload, kind=ErrorKind.IO)
    return structured_response("reorder", message=f"Reordered {args.stage}", payload=payload)


def cmd_save(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    path = Path(args.path).expanduser()
    if args.stage and not normalize_stage(args.stage, None):
        return structured_error("save", f"Unknown stage: {args.stage}", kind=ErrorKind.VALIDATION)

    if args.content_file:
        try:
            content = _read_source(args.content_file)
        except (OSError, UnicodeDecodeError) as exc:
            return structured_error("save", f"Cannot read content: {exc}", kind=ErrorKind.IO)
    else:
        current = ctx.engine.read(path)
        if not current.ok:
            return structured_error("save", current.message, payload=current.to_dict(), kind=current.kind)
        content = current.content

    if args.expected_mtime is not None:
        ctx.engine.fingerprints.record(path, args.expected_mtime)

    patch = MetadataPatch.from_values(
        title=args.title,
        stage=args.stage,
        phase=args.phase,
        agent=args.agent,
        contexts=_split_csv(args.contexts),
        tags=_split_csv(args.tags),
    )
    save = ctx.engine.force_save if args.force else ctx.engine.save
    result = save(path, content, patch=None if patch.is_empty() else patch)
    if result.ok:
        message = f"Moved to {result.file_path}" if result.moved else "Saved"
    else:
        message = result.message
        logger.debug("Save states: %s", [state.value for state in result.states])
    return outcome_response("save", result.ok, message, result.kind, result.to_dict())


def cmd_delete(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    if not ctx.repository.is_initialized():
        return structured_error("delete", NOT_INITIALIZED, kind=ErrorKind.NOT_FOUND)
    if not ctx.engine.delete(args.task_id):
        return structured_error("delete", f"Task not found: {args.task_id}", kind=ErrorKind.NOT_FOUND)
    return structured_response("delete", message=f"Deleted {args.task_id}", payload={"taskId": args.task_id})


def cmd_contexts(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    creators = (
        ("phase", args.add_phase, create_phase_file),
        ("agent", args.add_agent, create_agent_file),
        ("context", args.add_context, create_context_file),
    )
    created = {}
    for kind, name, create in creators:
        if not name:
            continue
        if not ctx.repository.is_initialized():
            return structured_error("contexts", NOT_INITIALIZED, kind=ErrorKind.NOT_FOUND)
        try:
            created[kind] = create(ctx.store, ctx.workspace, name)
        except FileStoreError as exc:
            return structured_error("contexts", f"Failed to create {kind} {name!r}: {exc}", kind=ErrorKind.IO)
    payload = load_context_data(ctx.store, ctx.workspace).to_dict()
    if created:
        payload["created"] = created
    return structured_response("contexts", payload=payload)


def cmd_migrate_filenames(args: argparse.Namespace) -> int:
    ctx = CliContext.from_args(args)
    try:
        report = migrate_filenames(ctx.store, ctx.workspace, dry_run=args.dry_run, backup=args.backup)
    except FileStoreError as exc:
        return structured_error(
            "migrate-filenames",
            f"Cannot read tasks directory at {ctx.workspace.tasks_root}: {exc}",
            kind=ErrorKind.NOT_FOUND,
        )
    payload = report.to_dict()
    if report.failed:
        return structured_error("migrate-filenames", f"{len(report.failed)} file(s) failed to migrate", payload=payload)
    if not report.results:
        return structured_response("migrate-filenames", message="Nothing to migrate", payload=payload)
    label = "Would migrate" if report.dry_run else "Migrated"
    return structured_response("migrate-filenames", message=f"{label} {len(report.results)} file(s)", payload=payload)


def cmd_config(args: argparse.Namespace) -> int:
    updates = (
        (args.default_stage, config.set_default_stage),
        (args.default_template, config.set_default_template),
        (args.log_level, config.set_log_level),
    )
    try:
        for value, setter in updates:
            if value is not None:
                setter(value)
    except ValueError as exc:
        return structured_error("config", str(exc), kind=ErrorKind.VALIDATION)
    payload = {
        "default_stage": config.get_default_stage(),
        "default_template": config.get_default_template(),
        "log_level": config.get_log_level(),
        "path": str(config.USER_CONFIG_PATH),
    }
    return structured_response("config", payload=payload)


__all__ = [
    "CliContext",
    "cmd_init",
    "cmd_list",
    "cmd_show",
    "cmd_create",
    "cmd_duplicate",
    "cmd_move",
    "cmd_reorder",
    "cmd_save",
    "cmd_delete",
    "cmd_contexts",
    "cmd_migrate_filenames",
    "cmd_config",
]
