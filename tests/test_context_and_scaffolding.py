from pathlib import Path

from application.context import (
    build_managed_sections,
    create_agent_file,
    create_context_file,
    create_phase_file,
    load_context_data,
)
from application.scaffolding import scaffold_workspace
from core import MANAGED_MARKER, STAGES
from infrastructure.local_file_store import LocalFileStore
from infrastructure.workspace import Workspace


def test_scaffold_creates_layout(tmp_path: Path):
    ws = Workspace(project_root=tmp_path)

    written = scaffold_workspace(LocalFileStore(), ws)

    for stage in STAGES:
        assert ws.stage_dir(stage).is_dir()
        assert ws.stage_context_file(stage).read_text(encoding="utf-8").startswith(f"# Stage: {stage}")
    for name in ("phases", "agents", "custom"):
        assert (ws.context_dir / name).is_dir()
    assert (ws.context_dir / "architecture.md").exists()
    assert (ws.templates_dir / "feature.md").exists()
    assert (ws.templates_dir / "bug.md").exists()
    assert not ws.stage_dir("chat").exists()
    assert len(written) == len(STAGES) + 3


def test_scaffold_never_overwrites(workspace):
    architecture = workspace.context_dir / "architecture.md"
    architecture.write_text("custom", encoding="utf-8")

    assert scaffold_workspace(LocalFileStore(), workspace) == []
    assert architecture.read_text(encoding="utf-8") == "custom"


def test_context_data_lists_documents(workspace):
    store = LocalFileStore()
    assert create_phase_file(store, workspace, "Design Review") == "design-review"
    assert create_agent_file(store, workspace, "Code Bot") == "code-bot"
    assert create_context_file(store, workspace, "API Notes", "# Custom body\n") == "api-notes"

    data = load_context_data(store, workspace)

    assert data.phases == ["design-review"]
    assert data.agents == ["code-bot"]
    assert data.contexts == ["architecture", "api-notes"]
    assert [tpl.name for tpl in data.templates] == ["Default", "bug", "feature"]
    assert (workspace.context_dir / "custom" / "api-notes.md").read_text(encoding="utf-8") == "# Custom body\n"
    assert "# Agent: Code Bot" in (workspace.context_dir / "agents" / "code-bot.md").read_text(encoding="utf-8")


def test_context_data_without_workspace(tmp_path):
    data = load_context_data(LocalFileStore(), Workspace(project_root=tmp_path))
    assert data.phases == [] and data.contexts == []
    assert [tpl.name for tpl in data.templates] == ["Default"]


def test_managed_sections_include_referenced_documents(workspace):
    store = LocalFileStore()
    create_phase_file(store, workspace, "p1", "Phase one goals")
    create_context_file(store, workspace, "api", "API rules")

    block = build_managed_sections(store, workspace, "code", phase="p1", agent="ghost", contexts=["api", "missing"])

    assert block.startswith(MANAGED_MARKER)
    assert "## Stage: code\n# Stage: code" in block
    assert "## Phase: p1\nPhase one goals" in block
    assert "## Context: api\nAPI rules" in block
    assert "## Agent" not in block
    assert "missing" not in block
    assert "## Architecture" in block


def test_managed_sections_hint_when_guidance_missing(workspace):
    workspace.stage_context_file("audit").unlink()
    block = build_managed_sections(LocalFileStore(), workspace, "audit")
    assert "Add stage guidance in _context/stages/audit.md" in block
