"""Structured outcomes returned by repository and transition operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .task import Task


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    COLLISION = "collision"
    IO = "io"


class SaveStatus(str, Enum):
    SAVED = "saved"
    CONFLICT = "conflict"
    ERROR = "error"


class SaveState(str, Enum):
    VALIDATING = "validating"
    CONFLICT_CHECK = "conflict_check"
    ABORTED = "aborted"
    PARSING = "parsing"
    STAGE_DECISION = "stage_decision"
    IN_PLACE_WRITE = "in_place_write"
    DESTINATION_WRITE = "destination_write"
    SOURCE_DELETE = "source_delete"
    MOVE_FAILED = "move_failed"
    REVERT_ATTEMPT = "revert_attempt"
    REVERTED = "reverted"
    REVERT_FAILED = "revert_failed"
    FAILED = "failed"
    DONE = "done"


TERMINAL_SAVE_STATES = frozenset(
    {SaveState.DONE, SaveState.ABORTED, SaveState.REVERTED, SaveState.REVERT_FAILED, SaveState.FAILED}
)


def _kind_value(kind: Optional[ErrorKind]) -> Optional[str]:
    return kind.value if kind is not None else None


@dataclass
class CreateResult:
    ok: bool
    task: Optional[Task] = None
    message: str = ""
    kind: Optional[ErrorKind] = None

    @classmethod
    def failure(cls, message: str, kind: ErrorKind) -> "CreateResult":
        return cls(ok=False, message=message, kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "task": self.task.to_dict() if self.task else None,
            "message": self.message,
            "kind": _kind_value(self.kind),
        }


@dataclass
class MoveResult:
    ok: bool
    task_id: Optional[str] = None
    to_stage: Optional[str] = None
    new_file_path: Optional[str] = None
    message: str = ""
    kind: Optional[ErrorKind] = None

    @classmethod
    def failure(cls, message: str, kind: ErrorKind, task_id: Optional[str] = None) -> "MoveResult":
        return cls(ok=False, task_id=task_id, message=message, kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "taskId": self.task_id,
            "toStage": self.to_stage,
            "newFilePath": self.new_file_path,
            "message": self.message,
            "kind": _kind_value(self.kind),
        }


@dataclass
class SaveResult:
    status: SaveStatus
    file_path: str
    original_file_path: str
    moved: bool = False
    close: bool = False
    message: str = ""
    kind: Optional[ErrorKind] = None
    states: List[SaveState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is SaveStatus.SAVED

    @property
    def final_state(self) -> Optional[SaveState]:
        return self.states[-1] if self.states else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "filePath": self.file_path,
            "originalFilePath": self.original_file_path,
            "moved": self.moved,
            "close": self.close,
            "message": self.message,
            "kind": _kind_value(self.kind),
            "states": [state.value for state in self.states],
        }


@dataclass
class ReadResult:
    ok: bool
    file_path: str
    content: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    modified: Optional[float] = None
    message: str = ""
    kind: Optional[ErrorKind] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "filePath": self.file_path,
            "content": self.content,
            "metadata": dict(self.metadata),
            "modified": self.modified,
            "message": self.message,
            "kind": _kind_value(self.kind),
        }


__all__ = [
    "ErrorKind",
    "SaveStatus",
    "SaveState",
    "TERMINAL_SAVE_STATES",
    "CreateResult",
    "MoveResult",
    "SaveResult",
    "ReadResult",
]
