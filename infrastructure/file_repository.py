import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from application.context import build_managed_sections
from application.migration import migrate_legacy_stages
from application.ports import (
    FileStore,
    FileStoreError,
    FileStoreNotFoundError,
    ensure_directory,
    exists,
    list_markdown_files,
    read_text_if_exists,
    write_text,
)
from application.templates import find_template, load_templates, render_template, with_default_template
from core import CreateResult, ErrorKind, Task, now_iso
from core.frontmatter import USER_CONTENT_MARKER, metadata_order, parse_document, serialize_document
from core.stage import DEFAULT_STAGE, STAGES, is_known_stage_folder, normalize_stage, slugify
from infrastructure.local_file_store import LocalFileStore
from infrastructure.task_file_parser import TaskFileParser
from infrastructure.workspace import Workspace

logger = logging.getLogger("taskdeck.repository")


class FileTaskRepository:
    """Task documents stored as ``.taskdeck/tasks/<stage>/<id>.md``."""

    def __init__(
        self,
        workspace: Workspace,
        store: Optional[FileStore] = None,
        *,
        clock: Callable[[], float] = time.time,
        migrate_on_list: bool = True,
    ):
        self.workspace = workspace
        self.store: FileStore = store if store is not None else LocalFileStore()
        self.clock = clock
        self.migrate_on_list = migrate_on_list

    # ------------------------------------------------------------------ reads

    def is_initialized(self) -> bool:
        return exists(self.store, self.workspace.base_dir)

    def parse_file(self, path: Path, fallback_stage: Optional[str] = None) -> Optional[Task]:
        return TaskFileParser.parse(self.store, path, fallback_stage)

    def stage_tasks(self, stage: str, folder: Optional[Path] = None) -> List[Task]:
        """Tasks in one stage folder, unsorted."""
        directory = folder if folder is not None else self.workspace.stage_dir(stage)
        tasks: List[Task] = []
        for name in list_markdown_files(self.store, directory):
            task = self.parse_file(directory / name, stage)
            if task:
                tasks.append(task)
        return tasks

    def _warn_unknown_folders(self) -> None:
        try:
            entries = self.store.list_dir(self.workspace.tasks_root)
        except FileStoreError:
            return
        for entry in entries:
            if entry.is_dir and not is_known_stage_folder(entry.name):
                logger.warning("Skipping unknown stage folder: %s", entry.name)

    def list(self) -> Optional[List[Task]]:
        """All tasks grouped by stage in board order; None when no workspace exists."""
        if not self.is_initialized():
            return None
        if self.migrate_on_list:
            migrate_legacy_stages(self.store, self.workspace)
        self._warn_unknown_folders()

        grouped: Dict[str, List[Task]] = {stage: [] for stage in STAGES}
        for stage, folder in self.workspace.stage_sources():
            try:
                grouped[stage].extend(self.stage_tasks(stage, folder))
            except FileStoreError as exc:
                logger.warning("Skipping unreadable stage folder %s: %s", folder, exc)

        tasks: List[Task] = []
        for stage in STAGES:
            tasks.extend(sorted(grouped[stage], key=Task.sort_key))
        return tasks

    def find(self, task_id: str) -> Optional[Task]:
        for stage, folder in self.workspace.stage_sources():
            for task in self.stage_tasks(stage, folder):
                if task.id == task_id:
                    return task
        return None

    def find_in_stage(self, task_id: str, stage: str) -> Optional[Task]:
        """Task ``task_id`` inside one canonical stage folder, matched by parsed id."""
        directory = self.workspace.stage_dir(stage)
        for name in list_markdown_files(self.store, directory):
            task = self.parse_file(directory / name, stage)
            if task and task.id == task_id:
                return task
        return None

    # --------------------------------------------------------------- helpers

    def id_exists(self, candidate: str) -> bool:
        return any(exists(self.store, folder / f"{candidate}.md") for folder in self.workspace.all_stage_dirs())

    def ensure_unique_id(self, base_slug: str) -> str:
        """``<epoch ms>-<slug>``, suffixed ``-1``, ``-2``... while taken in any stage."""
        base_id = f"{int(self.clock() * 1000)}-{base_slug}"
        candidate = base_id
        counter = 1
        while self.id_exists(candidate):
            candidate = f"{base_id}-{counter}"
            counter += 1
        return candidate

    def next_order(self, stage: str) -> int:
        """Max explicit order in the stage folder + 1, or the file count when none is set."""
        directory = self.workspace.stage_dir(stage)
        names = list_markdown_files(self.store, directory)
        highest: Optional[int] = None
        for name in names:
            try:
                text = read_text_if_exists(self.store, directory / name)
            except (FileStoreError, UnicodeDecodeError) as exc:
                logger.warning("Ignoring order of unreadable task file %s: %s", directory / name, exc)
                continue
            if text is None:
                continue
            order = metadata_order(parse_document(text).metadata)
            if order is not None and (highest is None or order > highest):
                highest = order
        return highest + 1 if highest is not None else len(names)

    # ---------------------------------------------------------------- writes

    def create(
        self,
        title: str,
        stage: Optional[str] = None,
        *,
        phase: Optional[str] = None,
        agent: Optional[str] = None,
        contexts: Optional[Sequence[str]] = None,
        tags: Optional[Sequence[str]] = None,
        content: Optional[str] = None,
        template_name: Optional[str] = None,
        template_content: Optional[str] = None,
        apply_template: bool = True,
    ) -> CreateResult:
        if not self.is_initialized():
            return CreateResult.failure("No .taskdeck workspace found. Run `taskdeck init` first.", ErrorKind.NOT_FOUND)
        if not title or not title.strip():
            return CreateResult.failure("Task title is required.", ErrorKind.VALIDATION)
        target_stage = normalize_stage(stage, None) if stage else DEFAULT_STAGE
        if not target_stage:
            return CreateResult.failure(f"Unknown stage: {stage}", ErrorKind.VALIDATION)

        contexts = [c for c in (contexts or []) if c]
        tags = [t for t in (tags or []) if t]
        try:
            stage_dir = self.workspace.stage_dir(target_stage)
            ensure_directory(self.store, stage_dir)
            task_id = self.ensure_unique_id(slugify(title))
            order = self.next_order(target_stage)
            now = now_iso()

            metadata = {
                "id": task_id,
                "title": title,
                "stage": target_stage,
                "type": "task",
                "created": now,
                "updated": now,
                "order": order,
                "phase": phase or None,
                "agent": agent or None,
                "contexts": contexts or None,
                "tags": tags or None,
            }

            template_body = None
            if apply_template:
                if template_content is not None:
                    template_body = template_content
                else:
                    templates = with_default_template(load_templates(self.store, self.workspace.templates_dir))
                    matched = find_template(templates, template_name)
                    template_body = matched.content if matched else templates[0].content
            if template_body is not None:
                user_content = render_template(
                    template_body,
                    title=title,
                    stage=target_stage,
                    phase=phase,
                    agent=agent,
                    contexts=contexts,
                    tags=tags,
                    content=content or "",
                ).strip()
            else:
                user_content = (content or "").strip()

            managed = build_managed_sections(self.store, self.workspace, target_stage, phase, agent, contexts)
            body = f"\n{managed}\n{USER_CONTENT_MARKER}\n{user_content}\n"
            target = stage_dir / f"{task_id}.md"
            write_text(self.store, target, serialize_document(body, metadata))
        except (FileStoreError, UnicodeDecodeError) as exc:
            logger.warning("Failed to create task %r: %s", title, exc)
            return CreateResult.failure(f"Failed to create task: {exc}", ErrorKind.IO)

        created = self.parse_file(target, target_stage)
        if created is None:
            return CreateResult.failure(f"Task written but could not be read back: {target}", ErrorKind.IO)
        logger.info("Created task %s in %s", created.id, target_stage)
        return CreateResult(ok=True, task=created)

    def duplicate(self, task_id: str) -> CreateResult:
        if not self.is_initialized():
            return CreateResult.failure("No .taskdeck workspace found. Run `taskdeck init` first.", ErrorKind.NOT_FOUND)
        existing = self.find(task_id)
        if existing is None:
            return CreateResult.failure(f"Task not found: {task_id}", ErrorKind.NOT_FOUND)
        return self.create(
            f"{existing.title} Copy",
            existing.stage,
            phase=existing.phase,
            agent=existing.agent,
            contexts=existing.contexts,
            tags=existing.tags,
            content=existing.user_content or "",
            apply_template=False,
        )

    def delete(self, task_id: str) -> Optional[str]:
        """Remove the file backing ``task_id``; returns its path, or None when absent."""
        task = self.find(task_id)
        if task is None:
            return None
        try:
            self.store.delete(Path(task.file_path))
        except FileStoreNotFoundError:
            return None
        logger.info("Deleted task %s (%s)", task_id, task.file_path)
        return task.file_path


__all__ = ["FileTaskRepository"]
