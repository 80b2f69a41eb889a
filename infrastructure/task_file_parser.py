import logging
from pathlib import Path
from typing import Optional

from application.ports import FileStat, FileStore, FileStoreError, read_text, stat_or_none
from core import Task, epoch_to_iso, now_iso
from core.frontmatter import (
    extract_user_content,
    metadata_list,
    metadata_order,
    metadata_str,
    metadata_timestamp,
    parse_document,
)
from core.stage import humanize_slug, infer_stage_from_path

logger = logging.getLogger("taskdeck.repository")


class TaskFileParser:
    """Turns a task document (path + text + stat) into a :class:`Task`."""

    @staticmethod
    def _fallback_timestamp(stat: Optional[FileStat], attr: str) -> str:
        if stat is None:
            return now_iso()
        return epoch_to_iso(getattr(stat, attr))

    @classmethod
    def build(
        cls,
        file_path: Path,
        text: str,
        stat: Optional[FileStat],
        fallback_stage: Optional[str] = None,
    ) -> Optional[Task]:
        stage = infer_stage_from_path(file_path, fallback_stage)
        if not stage:
            logger.warning("Unknown stage for file: %s", file_path)
            return None

        stem = Path(file_path).name.removesuffix(".md")
        doc = parse_document(text)
        meta = doc.metadata
        title = metadata_str(meta, "title")
        if title is None:
            title = humanize_slug(stem)

        task = Task(
            id=metadata_str(meta, "id") or stem,
            title=title,
            stage=stage,
            file_path=str(file_path),
            created=metadata_timestamp(meta, "created") or cls._fallback_timestamp(stat, "created"),
            updated=metadata_timestamp(meta, "updated") or cls._fallback_timestamp(stat, "modified"),
            type=metadata_str(meta, "type"),
            phase=metadata_str(meta, "phase"),
            agent=metadata_str(meta, "agent"),
            tags=metadata_list(meta, "tags"),
            order=metadata_order(meta),
            user_content=extract_user_content(doc.body),
        )
        contexts = metadata_list(meta, "contexts")
        legacy_context = metadata_str(meta, "context")
        if contexts is not None:
            task.contexts = contexts
        elif legacy_context and legacy_context.strip():
            task.contexts = [legacy_context.strip()]
        return task

    @classmethod
    def parse(cls, store: FileStore, file_path: Path, fallback_stage: Optional[str] = None) -> Optional[Task]:
        try:
            text = read_text(store, file_path)
        except (FileStoreError, UnicodeDecodeError) as exc:
            logger.warning("Unable to read task file %s: %s", file_path, exc)
            return None
        return cls.build(file_path, text, stat_or_none(store, file_path), fallback_stage)


__all__ = ["TaskFileParser"]
