"""Explicit per-field edits applied on top of a document's frontmatter.

Every field of :class:`MetadataPatch` is either ``UNCHANGED`` (leave the key
alone), ``CLEARED`` (remove the key) or a value to store. Empty strings and
empty lists passed through :meth:`MetadataPatch.from_values` become
``CLEARED`` for the optional fields.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .frontmatter import Metadata


class FieldEdit(Enum):
    UNCHANGED = "unchanged"
    CLEARED = "cleared"


UNCHANGED = FieldEdit.UNCHANGED
CLEARED = FieldEdit.CLEARED

StrEdit = Union[FieldEdit, str]
ListEdit = Union[FieldEdit, List[str]]


@dataclass(frozen=True)
class MetadataPatch:
    title: StrEdit = UNCHANGED
    stage: StrEdit = UNCHANGED
    phase: StrEdit = UNCHANGED
    agent: StrEdit = UNCHANGED
    contexts: ListEdit = UNCHANGED
    tags: ListEdit = UNCHANGED

    @classmethod
    def from_values(
        cls,
        *,
        title: Optional[str] = None,
        stage: Optional[str] = None,
        phase: Optional[str] = None,
        agent: Optional[str] = None,
        contexts: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
    ) -> "MetadataPatch":
        """Build a patch from loose inputs: None leaves a field, empty clears it."""

        def _text(value: Optional[str], clearable: bool) -> StrEdit:
            if value is None:
                return UNCHANGED
            if not value and clearable:
                return CLEARED
            return value

        def _items(value: Optional[List[str]]) -> ListEdit:
            if value is None:
                return UNCHANGED
            cleaned = [str(item).strip() for item in value if str(item).strip()]
            return cleaned if cleaned else CLEARED

        return cls(
            title=UNCHANGED if title is None else title,
            stage=_text(stage, clearable=False) if stage else UNCHANGED,
            phase=_text(phase, clearable=True),
            agent=_text(agent, clearable=True),
            contexts=_items(contexts),
            tags=_items(tags),
        )

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is UNCHANGED for f in fields(self))

    def touched(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not UNCHANGED]

    def apply(self, metadata: Metadata) -> Metadata:
        """Return a copy of ``metadata`` with this patch applied.

        Touching ``contexts`` in any way retires the legacy singular
        ``context`` key.
        """
        result: Dict[str, Any] = dict(metadata)
        for name in ("title", "stage", "phase", "agent", "tags"):
            edit = getattr(self, name)
            if edit is UNCHANGED:
                continue
            if edit is CLEARED:
                result.pop(name, None)
            else:
                result[name] = list(edit) if isinstance(edit, list) else edit
        if self.contexts is not UNCHANGED:
            result.pop("context", None)
            if self.contexts is CLEARED:
                result.pop("contexts", None)
            else:
                result["contexts"] = list(self.contexts)
        return result


__all__ = ["FieldEdit", "UNCHANGED", "CLEARED", "MetadataPatch"]
