from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def now_iso() -> str:
    """UTC timestamp used for ``created``/``updated`` fields."""
    return datetime.now(timezone.utc).isoformat()


def epoch_to_iso(value: float) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


@dataclass
class Task:
    id: str
    title: str
    stage: str
    file_path: str
    created: str = ""
    updated: str = ""
    type: Optional[str] = None
    phase: Optional[str] = None
    agent: Optional[str] = None
    contexts: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    order: Optional[int] = None  # position among siblings of the same stage; None sorts last
    user_content: Optional[str] = None

    def sort_key(self):
        missing = self.order is None
        return (missing, self.order if not missing else 0, self.id)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "stage": self.stage,
            "created": self.created,
            "updated": self.updated,
            "filePath": self.file_path,
        }
        optional = {
            "type": self.type,
            "phase": self.phase,
            "agent": self.agent,
            "contexts": list(self.contexts) if self.contexts is not None else None,
            "tags": list(self.tags) if self.tags is not None else None,
            "order": self.order,
            "userContent": self.user_content,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data
