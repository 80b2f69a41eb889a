from pathlib import Path

import pytest

from application.scaffolding import scaffold_workspace
from application.stage_transition import StageTransitionEngine
from infrastructure.file_repository import FileTaskRepository
from infrastructure.local_file_store import LocalFileStore
from infrastructure.workspace import Workspace

FIXED_NOW = 1_700_000_000.0


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    ws = Workspace(project_root=tmp_path)
    scaffold_workspace(LocalFileStore(), ws)
    return ws


@pytest.fixture
def repo(workspace: Workspace) -> FileTaskRepository:
    return FileTaskRepository(workspace, LocalFileStore(), clock=lambda: FIXED_NOW)


@pytest.fixture
def engine(repo: FileTaskRepository) -> StageTransitionEngine:
    return StageTransitionEngine(repo)


def write_task(workspace: Workspace, stage: str, name: str, text: str) -> Path:
    folder = workspace.stage_dir(stage)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    path.write_text(text, encoding="utf-8")
    return path
