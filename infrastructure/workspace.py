import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from core.stage import LEGACY_STAGE_ALIASES, STAGES

WORKSPACE_DIRNAME = ".taskdeck"


def resolve_project_root() -> Path:
    """Resolve project root using env or git; fallback to cwd."""
    env_root = os.environ.get("TASKDECK_PROJECT_ROOT")
    if env_root:
        candidate = Path(env_root).expanduser()
        if candidate.exists():
            return candidate.resolve()

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
            check=True,
        )
        root = Path(result.stdout.strip())
        if root.exists():
            return root.resolve()
    except (OSError, subprocess.CalledProcessError):
        pass

    return Path.cwd().resolve()


@dataclass(frozen=True)
class Workspace:
    """Path layout of a ``.taskdeck`` workspace under a project root."""

    project_root: Path

    @classmethod
    def discover(cls, root: Optional[Path] = None) -> "Workspace":
        base = Path(root).expanduser().resolve() if root else resolve_project_root()
        return cls(project_root=base)

    @property
    def base_dir(self) -> Path:
        return self.project_root / WORKSPACE_DIRNAME

    @property
    def tasks_root(self) -> Path:
        return self.base_dir / "tasks"

    @property
    def context_dir(self) -> Path:
        return self.base_dir / "_context"

    @property
    def templates_dir(self) -> Path:
        return self.base_dir / "_templates"

    @property
    def backups_dir(self) -> Path:
        return self.base_dir / "backups"

    def stage_dir(self, stage: str) -> Path:
        return self.tasks_root / stage

    def stage_sources(self) -> List[Tuple[str, Path]]:
        """(canonical stage, folder) pairs: canonical folders first, then legacy ones."""
        sources = [(stage, self.stage_dir(stage)) for stage in STAGES]
        sources.extend((target, self.stage_dir(legacy)) for legacy, target in LEGACY_STAGE_ALIASES.items())
        return sources

    def all_stage_dirs(self) -> List[Path]:
        return [folder for _, folder in self.stage_sources()]

    def stage_context_file(self, stage: str) -> Path:
        return self.context_dir / "stages" / f"{stage}.md"

    def contains_task_path(self, file_path) -> bool:
        """True when ``file_path`` resolves (symlinks included) inside the tasks root."""
        try:
            root = self.tasks_root.resolve(strict=True)
        except OSError:
            return False
        target = Path(os.path.abspath(file_path)).resolve()
        return target.is_relative_to(root)


__all__ = ["WORKSPACE_DIRNAME", "Workspace", "resolve_project_root"]
