"""Stage transitions for task documents.

Two triggers move a task between stage folders:

* an explicit :meth:`StageTransitionEngine.move` request, and
* a save whose frontmatter ``stage`` disagrees with the folder the file is in
  (:meth:`StageTransitionEngine.save`).

A save runs as an explicit state machine over :class:`core.results.SaveState`::

    VALIDATING -> CONFLICT_CHECK -> ABORTED
                                 -> PARSING -> STAGE_DECISION -> IN_PLACE_WRITE -> DONE
                                                              -> DESTINATION_WRITE -> SOURCE_DELETE -> DONE
                                                                                   -> MOVE_FAILED -> REVERT_ATTEMPT -> REVERTED
                                                                                                                    -> REVERT_FAILED

Every visited state is recorded on the returned :class:`SaveResult`. The only
automatic retry is the copy-then-delete fallback for cross-device renames.

Each engine owns a :class:`FingerprintTable` of last-seen modification times
used to detect edits made behind its back.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from application.ports import (
    CrossDeviceError,
    FileStat,
    FileStoreError,
    FileStoreExistsError,
    FileStoreNotFoundError,
    ensure_directory,
    exists,
    read_text,
    read_text_if_exists,
    stat_or_none,
    write_text,
)
from core import (
    ErrorKind,
    MoveResult,
    ReadResult,
    SaveResult,
    SaveState,
    SaveStatus,
    epoch_to_iso,
    now_iso,
)
from core.frontmatter import Metadata, metadata_list, metadata_str, parse_document, serialize_document
from core.patch import MetadataPatch
from core.results import TERMINAL_SAVE_STATES
from core.stage import humanize_slug, infer_stage_from_path, normalize_stage
from infrastructure.file_repository import FileTaskRepository

logger = logging.getLogger("taskdeck.transition")

CONFLICT_MESSAGE = "File was modified externally. Overwrite changes?"
ACCESS_DENIED_MESSAGE = "Access denied: path is outside the task workspace."
_IO_ERRORS = (FileStoreError, OSError, UnicodeDecodeError)


class FingerprintTable:
    """Last-observed modification time per task file path."""

    def __init__(self) -> None:
        self._entries: Dict[str, float] = {}

    @staticmethod
    def _key(path) -> str:
        return os.path.abspath(os.fspath(path))

    def get(self, path) -> Optional[float]:
        return self._entries.get(self._key(path))

    def record(self, path, modified: float) -> None:
        self._entries[self._key(path)] = modified

    def forget(self, path) -> None:
        self._entries.pop(self._key(path), None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, path) -> bool:
        return self._key(path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def editable_metadata(metadata: Metadata) -> Dict[str, Any]:
    """Fields an editor may change, with the legacy ``context`` key folded into ``contexts``."""
    view: Dict[str, Any] = {}
    title = metadata_str(metadata, "title")
    if title is not None:
        view["title"] = title
    stage = metadata_str(metadata, "stage")
    if stage is not None:
        normalized = normalize_stage(stage, None)
        if normalized:
            view["stage"] = normalized
    for key in ("phase", "agent"):
        value = metadata_str(metadata, key)
        if value is not None:
            view[key] = value
    contexts = metadata_list(metadata, "contexts")
    legacy_context = metadata_str(metadata, "context")
    if contexts is not None:
        view["contexts"] = contexts
    elif legacy_context and legacy_context.strip():
        view["contexts"] = [legacy_context.strip()]
    tags = metadata_list(metadata, "tags")
    if tags is not None:
        view["tags"] = tags
    return view


def _fill_defaults(
    metadata: Metadata,
    *,
    task_id: str,
    title: str,
    stage: str,
    stat: Optional[FileStat],
) -> None:
    """Set ``id/title/stage/created`` in place where the document lacks them."""
    if not metadata_str(metadata, "id"):
        metadata["id"] = task_id
    if not metadata.get("title"):
        metadata["title"] = title
    if not metadata.get("stage"):
        metadata["stage"] = stage
    if not metadata.get("created"):
        metadata["created"] = epoch_to_iso(stat.created) if stat else now_iso()


@dataclass
class _SaveRun:
    """Mutable context threaded through the save states."""

    source: Path
    content: str
    close: bool
    patch: Optional[MetadataPatch]
    states: List[SaveState] = field(default_factory=list)
    path_stage: Optional[str] = None
    target_stage: Optional[str] = None
    metadata: Metadata = field(default_factory=dict)
    body: str = ""
    source_stat: Optional[FileStat] = None
    destination: Optional[Path] = None
    renamed: bool = False
    final_path: Optional[Path] = None
    moved: bool = False
    status: SaveStatus = SaveStatus.SAVED
    message: str = ""
    kind: Optional[ErrorKind] = None
    move_error: Optional[FileStoreError] = None

    @property
    def stem(self) -> str:
        return self.source.name.removesuffix(".md")

    @property
    def fallback_id(self) -> str:
        return metadata_str(self.metadata, "id") or self.stem

    def fail(self, message: str, kind: ErrorKind) -> SaveState:
        self.status = SaveStatus.ERROR
        self.message = message
        self.kind = kind
        return SaveState.FAILED

    def result(self) -> SaveResult:
        ok = self.status is SaveStatus.SAVED
        return SaveResult(
            status=self.status,
            file_path=str(self.final_path or self.source),
            original_file_path=str(self.source),
            moved=self.moved,
            close=self.close and ok,
            message=self.message,
            kind=self.kind,
            states=list(self.states),
        )


class StageTransitionEngine:
    """Moves, reorders and saves task documents while keeping folder and frontmatter in step."""

    def __init__(self, repository: FileTaskRepository, fingerprints: Optional[FingerprintTable] = None):
        self.repository = repository
        self.store = repository.store
        self.workspace = repository.workspace
        self.fingerprints = fingerprints if fingerprints is not None else FingerprintTable()
        self._handlers: Dict[SaveState, Callable[[_SaveRun], SaveState]] = {
            SaveState.VALIDATING: self._validate,
            SaveState.CONFLICT_CHECK: self._check_conflict,
            SaveState.PARSING: self._parse,
            SaveState.STAGE_DECISION: self._decide_stage,
            SaveState.IN_PLACE_WRITE: self._write_in_place,
            SaveState.DESTINATION_WRITE: self._write_destination,
            SaveState.SOURCE_DELETE: self._delete_source,
            SaveState.MOVE_FAILED: self._move_failed,
            SaveState.REVERT_ATTEMPT: self._revert,
        }

    # ------------------------------------------------------------ fingerprints

    def _remember(self, path: Path) -> None:
        stat = stat_or_none(self.store, path)
        if stat is None:
            self.fingerprints.forget(path)
        else:
            self.fingerprints.record(path, stat.modified)

    def _refresh_if_tracked(self, path: Path) -> None:
        if path in self.fingerprints:
            self._remember(path)

    # ------------------------------------------------------------------ read

    def read(self, file_path) -> ReadResult:
        path = Path(os.path.abspath(file_path))
        if not self.workspace.contains_task_path(path):
            return ReadResult(ok=False, file_path=str(path), message=ACCESS_DENIED_MESSAGE, kind=ErrorKind.VALIDATION)
        try:
            content = read_text_if_exists(self.store, path)
        except _IO_ERRORS as exc:
            return ReadResult(ok=False, file_path=str(path), message=f"Failed to read file: {exc}", kind=ErrorKind.IO)
        if content is None:
            return ReadResult(ok=False, file_path=str(path), message="File not found", kind=ErrorKind.NOT_FOUND)

        stat = stat_or_none(self.store, path)
        if stat is not None:
            self.fingerprints.record(path, stat.modified)
        doc = parse_document(content)
        return ReadResult(
            ok=True,
            file_path=str(path),
            content=content,
            metadata=editable_metadata(doc.metadata) if doc.has_metadata_block else {},
            modified=stat.modified if stat else None,
        )

    # ------------------------------------------------------------------ move

    def _shift_siblings(self, stage: str, target_order: int) -> None:
        for task in self.repository.stage_tasks(stage):
            if task.order is None or task.order < target_order:
                continue
            path = Path(task.file_path)
            doc = parse_document(read_text(self.store, path))
            metadata = dict(doc.metadata)
            metadata["order"] = task.order + 1
            metadata["updated"] = now_iso()
            metadata["stage"] = stage
            write_text(self.store, path, serialize_document(doc.body, metadata))
            self._refresh_if_tracked(path)
            logger.debug("Shifted %s to order %s in %s", task.id, task.order + 1, stage)

    def move(self, task_id: str, from_stage: str, to_stage: str, target_order: Optional[int] = None) -> MoveResult:
        source_stage = normalize_stage(from_stage, None)
        dest_stage = normalize_stage(to_stage, None)
        if not source_stage or not dest_stage:
            unknown = to_stage if source_stage else from_stage
            return MoveResult.failure(f"Unknown stage: {unknown}", ErrorKind.VALIDATION, task_id)
        if source_stage == dest_stage:
            return MoveResult(ok=True, task_id=task_id, to_stage=dest_stage)
        if not self.repository.is_initialized():
            return MoveResult.failure("No .taskdeck workspace found.", ErrorKind.NOT_FOUND, task_id)

        try:
            task = self.repository.find_in_stage(task_id, source_stage)
            if task is None:
                return MoveResult.failure("Task file not found", ErrorKind.NOT_FOUND, task_id)

            source = Path(task.file_path)
            dest_dir = self.workspace.stage_dir(dest_stage)
            target = dest_dir / source.name
            if exists(self.store, target):
                return MoveResult.failure(
                    "A task with the same filename already exists in the destination stage.",
                    ErrorKind.COLLISION,
                    task_id,
                )
            ensure_directory(self.store, dest_dir)
            source_stat = stat_or_none(self.store, source)
            text = read_text(self.store, source)

            if target_order is not None:
                new_order = target_order
                self._shift_siblings(dest_stage, target_order)
            else:
                new_order = self.repository.next_order(dest_stage)

            doc = parse_document(text)
            metadata = dict(doc.metadata)
            if not isinstance(metadata.get("id"), str):
                metadata["id"] = task.id
            metadata["stage"] = dest_stage
            metadata["updated"] = now_iso()
            metadata["order"] = new_order
            _fill_defaults(metadata, task_id=task.id, title=task.title, stage=dest_stage, stat=source_stat)

            write_text(self.store, target, serialize_document(doc.body, metadata))
            try:
                self.store.delete(source)
            except FileStoreError:
                self.store.delete(target)
                raise
        except _IO_ERRORS as exc:
            logger.warning("Failed to move task %s from %s to %s: %s", task_id, source_stage, dest_stage, exc)
            return MoveResult.failure(f"Failed to move task: {exc}", ErrorKind.IO, task_id)

        self.fingerprints.forget(source)
        logger.info("Moved task %s from %s to %s", task_id, source_stage, dest_stage)
        return MoveResult(ok=True, task_id=task_id, to_stage=dest_stage, new_file_path=str(target))

    # --------------------------------------------------------------- reorder

    def reorder(self, stage: str, ordered_ids: Sequence[str]) -> bool:
        """Give each listed task ``order = position``; unlisted tasks keep theirs."""
        canonical = normalize_stage(stage, None)
        if not canonical:
            logger.warning("Refusing to reorder unknown stage %r", stage)
            return False
        try:
            by_id = {task.id: task for task in self.repository.stage_tasks(canonical)}
            for index, task_id in enumerate(ordered_ids):
                task = by_id.get(task_id)
                if task is None:
                    continue
                path = Path(task.file_path)
                doc = parse_document(read_text(self.store, path))
                metadata = dict(doc.metadata)
                metadata["order"] = index
                metadata["updated"] = now_iso()
                _fill_defaults(
                    metadata,
                    task_id=task.id,
                    title=task.title,
                    stage=canonical,
                    stat=stat_or_none(self.store, path),
                )
                write_text(self.store, path, serialize_document(doc.body, metadata))
                self._refresh_if_tracked(path)
        except _IO_ERRORS as exc:
            logger.error("Failed to reorder tasks in %s: %s", canonical, exc)
            return False
        return True

    # ---------------------------------------------------------------- delete

    def delete(self, task_id: str) -> bool:
        try:
            removed = self.repository.delete(task_id)
        except _IO_ERRORS as exc:
            logger.warning("Failed to delete task %s: %s", task_id, exc)
            return False
        if removed is None:
            return False
        self.fingerprints.forget(removed)
        return True

    # ------------------------------------------------------------------ save

    def save(
        self,
        file_path,
        content: str,
        close_after_save: bool = False,
        patch: Optional[MetadataPatch] = None,
    ) -> SaveResult:
        run = _SaveRun(
            source=Path(os.path.abspath(file_path)),
            content=content,
            close=close_after_save,
            patch=patch,
        )
        state = SaveState.VALIDATING
        while state not in TERMINAL_SAVE_STATES:
            run.states.append(state)
            try:
                state = self._handlers[state](run)
            except _IO_ERRORS as exc:
                logger.warning("Save of %s failed in %s: %s", run.source, state.value, exc)
                state = run.fail(str(exc) or "Failed to save file", ErrorKind.IO)
        run.states.append(state)
        return run.result()

    def force_save(
        self,
        file_path,
        content: str,
        close_after_save: bool = False,
        patch: Optional[MetadataPatch] = None,
    ) -> SaveResult:
        """Save without the conflict check: the stored fingerprint is dropped first."""
        self.fingerprints.forget(file_path)
        return self.save(file_path, content, close_after_save, patch)

    def _validate(self, run: _SaveRun) -> SaveState:
        if not self.workspace.contains_task_path(run.source):
            return run.fail(ACCESS_DENIED_MESSAGE, ErrorKind.VALIDATION)
        return SaveState.CONFLICT_CHECK

    def _check_conflict(self, run: _SaveRun) -> SaveState:
        stored = self.fingerprints.get(run.source)
        if stored is None:
            return SaveState.PARSING
        try:
            current = self.store.stat(run.source)
        except FileStoreNotFoundError:
            return SaveState.PARSING
        if current.modified != stored:
            run.status = SaveStatus.CONFLICT
            run.message = CONFLICT_MESSAGE
            run.kind = ErrorKind.CONFLICT
            return SaveState.ABORTED
        return SaveState.PARSING

    def _parse(self, run: _SaveRun) -> SaveState:
        run.path_stage = infer_stage_from_path(run.source, None)
        if not run.path_stage:
            return run.fail("Could not determine stage from file path.", ErrorKind.VALIDATION)
        doc = parse_document(run.content)
        metadata = dict(doc.metadata) if doc.has_metadata_block else {}
        if run.patch is not None:
            metadata = run.patch.apply(metadata)
        run.metadata = metadata
        run.body = doc.body
        return SaveState.STAGE_DECISION

    def _decide_stage(self, run: _SaveRun) -> SaveState:
        declared = metadata_str(run.metadata, "stage")
        run.target_stage = normalize_stage(declared, run.path_stage) if declared else run.path_stage
        run.source_stat = stat_or_none(self.store, run.source)
        if run.target_stage == run.path_stage:
            return SaveState.IN_PLACE_WRITE
        return SaveState.DESTINATION_WRITE

    def _write_in_place(self, run: _SaveRun) -> SaveState:
        metadata = dict(run.metadata)
        metadata["stage"] = run.path_stage
        metadata["updated"] = now_iso()
        _fill_defaults(
            metadata,
            task_id=run.fallback_id,
            title=humanize_slug(run.stem),
            stage=run.path_stage,
            stat=run.source_stat,
        )
        write_text(self.store, run.source, serialize_document(run.body, metadata))
        self._remember(run.source)
        run.final_path = run.source
        return SaveState.DONE

    def _write_destination(self, run: _SaveRun) -> SaveState:
        dest_dir = self.workspace.stage_dir(run.target_stage)
        ensure_directory(self.store, dest_dir)
        run.destination = dest_dir / run.source.name

        metadata = dict(run.metadata)
        metadata["id"] = run.fallback_id
        metadata["stage"] = run.target_stage
        metadata["updated"] = now_iso()
        metadata["order"] = self.repository.next_order(run.target_stage)
        _fill_defaults(
            metadata,
            task_id=run.fallback_id,
            title=humanize_slug(run.stem),
            stage=run.target_stage,
            stat=run.source_stat,
        )
        write_text(self.store, run.source, serialize_document(run.body, metadata))
        self._remember(run.source)

        try:
            self.store.rename(run.source, run.destination, overwrite=False)
            run.renamed = True
        except CrossDeviceError:
            logger.info("Cross-device rename of %s; falling back to copy and delete", run.source)
            try:
                self.store.copy(run.source, run.destination, overwrite=False)
            except FileStoreError as exc:
                run.move_error = exc
                return SaveState.MOVE_FAILED
        except FileStoreError as exc:
            run.move_error = exc
            return SaveState.MOVE_FAILED
        return SaveState.SOURCE_DELETE

    def _delete_source(self, run: _SaveRun) -> SaveState:
        if not run.renamed:
            try:
                self.store.delete(run.source)
            except FileStoreError as exc:
                try:
                    self.store.delete(run.destination)
                except FileStoreError as cleanup_exc:
                    logger.error("Could not remove copied file %s: %s", run.destination, cleanup_exc)
                run.move_error = exc
                return SaveState.MOVE_FAILED
        self.fingerprints.forget(run.source)
        self._remember(run.destination)
        run.final_path = run.destination
        run.moved = True
        logger.info("Moved %s to stage %s", run.source.name, run.target_stage)
        return SaveState.DONE

    def _move_failed(self, run: _SaveRun) -> SaveState:
        error = run.move_error
        run.status = SaveStatus.ERROR
        run.kind = ErrorKind.COLLISION if isinstance(error, FileStoreExistsError) else ErrorKind.IO
        run.message = (
            f'Failed to move file to stage "{run.target_stage}": {error}. '
            f'Stage kept as "{run.path_stage}".'
        )
        logger.warning("%s", run.message)
        return SaveState.REVERT_ATTEMPT

    def _revert(self, run: _SaveRun) -> SaveState:
        metadata = dict(run.metadata)
        metadata["stage"] = run.path_stage
        metadata["id"] = run.fallback_id
        metadata["updated"] = now_iso()
        if "order" not in run.metadata:
            metadata.pop("order", None)
        try:
            write_text(self.store, run.source, serialize_document(run.body, metadata))
        except FileStoreError as exc:
            logger.error("Failed to revert stage of %s after move failure: %s", run.source, exc)
            self.fingerprints.forget(run.source)
            return SaveState.REVERT_FAILED
        self._remember(run.source)
        run.final_path = run.source
        return SaveState.REVERTED


__all__ = ["FingerprintTable", "StageTransitionEngine", "editable_metadata", "CONFLICT_MESSAGE"]
