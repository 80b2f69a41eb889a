"""Security tests for path traversal prevention."""

import os

import pytest

from core import ErrorKind
from infrastructure.workspace import Workspace

from conftest import write_task


class TestWorkspaceContainment:
    def test_stage_files_are_inside(self, workspace):
        assert workspace.contains_task_path(workspace.stage_dir("code") / "a.md")

    def test_rejects_dotdot(self, workspace):
        assert not workspace.contains_task_path(workspace.tasks_root / ".." / "_context" / "architecture.md")

    def test_rejects_absolute_outside(self, workspace):
        assert not workspace.contains_task_path("/etc/passwd")

    def test_rejects_before_init(self, tmp_path):
        assert not Workspace(project_root=tmp_path).contains_task_path(tmp_path / ".taskdeck" / "tasks" / "x.md")

    def test_rejects_symlinked_file(self, workspace, tmp_path):
        secret = tmp_path / "secret.md"
        secret.write_text("secret", encoding="utf-8")
        link = workspace.stage_dir("idea") / "link.md"
        try:
            os.symlink(secret, link)
        except OSError:
            pytest.skip("symlinks unavailable")
        assert not workspace.contains_task_path(link)


class TestEngineDenial:
    def test_read_outside_is_denied(self, engine, workspace):
        result = engine.read(workspace.context_dir / "architecture.md")
        assert not result.ok
        assert result.kind is ErrorKind.VALIDATION
        assert result.content is None

    def test_save_outside_leaves_file_alone(self, engine, workspace):
        target = workspace.context_dir / "architecture.md"
        before = target.read_text(encoding="utf-8")
        result = engine.save(workspace.stage_dir("idea") / ".." / ".." / "_context" / "architecture.md", "pwned")
        assert result.kind is ErrorKind.VALIDATION
        assert target.read_text(encoding="utf-8") == before


class TestIdsStayInsideStageFolders:
    def test_traversal_title_is_slugified(self, repo, workspace):
        result = repo.create("../../etc/passwd", "idea")
        assert result.ok
        assert result.task.id.endswith("-etc-passwd")
        assert os.path.dirname(result.task.file_path) == str(workspace.stage_dir("idea"))

    def test_lookup_by_traversal_id_finds_nothing(self, repo, workspace):
        write_task(workspace, "idea", "safe.md", "---\nid: safe\n---\n")
        assert repo.find("../idea/safe") is None
        assert repo.delete("../idea/safe") is None
