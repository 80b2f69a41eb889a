import re
from pathlib import Path
from typing import Dict, Final, Optional, Tuple

STAGES: Final[Tuple[str, ...]] = ("idea", "queue", "plan", "code", "audit", "completed", "archive")

# Old folder/frontmatter names that still load; each maps to exactly one canonical stage.
LEGACY_STAGE_ALIASES: Final[Dict[str, str]] = {"chat": "idea"}

STAGE_LABELS: Final[Dict[str, str]] = {
    "idea": "Idea",
    "queue": "Queue",
    "plan": "Plan",
    "code": "Code",
    "audit": "Audit",
    "completed": "Completed",
    "archive": "Archive",
}

DEFAULT_STAGE: Final[str] = "idea"
TASKS_ROOT_MARKER: Final[str] = ".taskdeck/tasks/"
SLUG_MAX_LENGTH: Final[int] = 80
SLUG_PLACEHOLDER: Final[str] = "item"

_UNSET = object()
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_stage(value: Optional[str], fallback=_UNSET) -> Optional[str]:
    """Resolve a stage name (case-insensitive) to its canonical form.

    Canonical names win over legacy aliases. Anything unrecognized returns
    ``fallback``, which defaults to ``DEFAULT_STAGE``; pass ``None`` to detect
    "not a stage".
    """
    if fallback is _UNSET:
        fallback = DEFAULT_STAGE
    if not isinstance(value, str) or not value.strip():
        return fallback
    token = value.strip().lower()
    if token in STAGES:
        return token
    if token in LEGACY_STAGE_ALIASES:
        return LEGACY_STAGE_ALIASES[token]
    return fallback


def is_known_stage_folder(name: str) -> bool:
    return name in STAGES or name in LEGACY_STAGE_ALIASES


def stage_folder_names() -> Tuple[str, ...]:
    """Every folder name that may hold tasks: canonical first, then legacy."""
    return STAGES + tuple(LEGACY_STAGE_ALIASES)


def infer_stage_from_path(file_path, fallback: Optional[str] = None) -> Optional[str]:
    """Stage from the folder segment right after ``.taskdeck/tasks/``.

    Falls back to the parent folder name when the marker is absent, then to
    ``fallback``.
    """
    posix = Path(file_path).as_posix()
    match = re.search(re.escape(TASKS_ROOT_MARKER) + r"([^/]+)", posix)
    candidate = match.group(1) if match else Path(file_path).parent.name
    resolved = normalize_stage(candidate, None)
    if resolved:
        return resolved
    return fallback


def slugify(text: str) -> str:
    slug = _NON_ALNUM.sub("-", (text or "").strip().lower()).strip("-")
    slug = slug[:SLUG_MAX_LENGTH]
    return slug or SLUG_PLACEHOLDER


def _strip_prefix(value: str) -> Optional[str]:
    lower = value.lower()
    for name in stage_folder_names():
        prefix = f"{name}-"
        if lower.startswith(prefix):
            return value[len(prefix):]
    return None


def is_stage_prefixed(id_or_filename: str) -> bool:
    base = (id_or_filename or "").removesuffix(".md")
    return _strip_prefix(base) is not None


def get_base_slug(id_or_filename: str) -> str:
    """Drop ``.md`` and a ``<stage>-`` or ``task-`` prefix, if any."""
    base = (id_or_filename or "").removesuffix(".md")
    stripped = _strip_prefix(base)
    if stripped is not None:
        return stripped
    if base.lower().startswith("task-"):
        return base[len("task-"):]
    return base


def humanize_slug(id_or_filename: str) -> str:
    return get_base_slug(id_or_filename).replace("-", " ")


__all__ = [
    "STAGES",
    "LEGACY_STAGE_ALIASES",
    "STAGE_LABELS",
    "DEFAULT_STAGE",
    "TASKS_ROOT_MARKER",
    "normalize_stage",
    "is_known_stage_folder",
    "stage_folder_names",
    "infer_stage_from_path",
    "slugify",
    "is_stage_prefixed",
    "get_base_slug",
    "humanize_slug",
]
