from .task import Task, now_iso, epoch_to_iso
from .stage import (
    STAGES,
    LEGACY_STAGE_ALIASES,
    STAGE_LABELS,
    DEFAULT_STAGE,
    normalize_stage,
    infer_stage_from_path,
    slugify,
    get_base_slug,
    humanize_slug,
    is_stage_prefixed,
)
from .frontmatter import (
    USER_CONTENT_MARKER,
    MANAGED_MARKER,
    ParsedDocument,
    parse_document,
    serialize_document,
    extract_user_content,
)
from .patch import MetadataPatch, UNCHANGED, CLEARED
from .results import (
    ErrorKind,
    SaveStatus,
    SaveState,
    CreateResult,
    MoveResult,
    SaveResult,
    ReadResult,
)

__all__ = [
    "Task",
    "now_iso",
    "epoch_to_iso",
    # Stages
    "STAGES",
    "LEGACY_STAGE_ALIASES",
    "STAGE_LABELS",
    "DEFAULT_STAGE",
    "normalize_stage",
    "infer_stage_from_path",
    "slugify",
    "get_base_slug",
    "humanize_slug",
    "is_stage_prefixed",
    # Frontmatter
    "USER_CONTENT_MARKER",
    "MANAGED_MARKER",
    "ParsedDocument",
    "parse_document",
    "serialize_document",
    "extract_user_content",
    # Patches and results
    "MetadataPatch",
    "UNCHANGED",
    "CLEARED",
    "ErrorKind",
    "SaveStatus",
    "SaveState",
    "CreateResult",
    "MoveResult",
    "SaveResult",
    "ReadResult",
]
