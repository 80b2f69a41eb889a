from pathlib import Path

from application.migration import free_target_path, migrate_legacy_stages
from core import parse_document
from infrastructure.local_file_store import LocalFileStore

from conftest import write_task


def _meta(path) -> dict:
    return parse_document(Path(path).read_text(encoding="utf-8")).metadata


def test_nothing_to_migrate_is_a_noop(workspace):
    report = migrate_legacy_stages(LocalFileStore(), workspace)
    assert not report.changed
    assert report.errors == []


def test_legacy_folder_is_folded_into_canonical_stage(workspace):
    write_task(workspace, "chat", "a.md", "---\nid: a\nstage: chat\n---\nbody a\n")
    write_task(workspace, "chat", "b.md", "---\nid: b\nstage: queue\n---\nbody b\n")

    report = migrate_legacy_stages(LocalFileStore(), workspace)

    idea = workspace.stage_dir("idea")
    assert _meta(idea / "a.md")["stage"] == "idea"
    assert _meta(idea / "b.md")["stage"] == "queue"
    assert not workspace.stage_dir("chat").exists()
    assert len(report.moved) == 2
    assert report.rewritten == [str(workspace.stage_dir("chat") / "a.md")]
    assert report.removed_folders == [str(workspace.stage_dir("chat"))]


def test_collisions_get_numeric_suffix(workspace):
    write_task(workspace, "idea", "same.md", "---\nid: existing\n---\n")
    write_task(workspace, "idea", "same-2.md", "---\nid: existing-2\n---\n")
    write_task(workspace, "chat", "same.md", "---\nid: legacy\nstage: chat\n---\n")

    migrate_legacy_stages(LocalFileStore(), workspace)

    idea = workspace.stage_dir("idea")
    assert _meta(idea / "same.md")["id"] == "existing"
    assert _meta(idea / "same-3.md")["id"] == "legacy"


def test_folder_with_leftovers_is_kept(workspace):
    write_task(workspace, "chat", "a.md", "---\nid: a\n---\n")
    (workspace.stage_dir("chat") / "notes.txt").write_text("keep", encoding="utf-8")

    report = migrate_legacy_stages(LocalFileStore(), workspace)

    assert (workspace.stage_dir("idea") / "a.md").exists()
    assert (workspace.stage_dir("chat") / "notes.txt").exists()
    assert report.removed_folders == []


def test_guidance_document_is_migrated(workspace):
    idea_file = workspace.stage_context_file("idea")
    idea_file.unlink()
    chat_file = workspace.stage_context_file("chat")
    chat_file.write_text("# Stage: chat\n\nBrainstorm freely.\n", encoding="utf-8")

    report = migrate_legacy_stages(LocalFileStore(), workspace)

    assert idea_file.read_text(encoding="utf-8") == "# Stage: idea\n\nBrainstorm freely.\n"
    assert report.guidance == [str(idea_file)]
    assert not migrate_legacy_stages(LocalFileStore(), workspace).changed


def test_existing_canonical_guidance_is_not_overwritten(workspace):
    idea_file = workspace.stage_context_file("idea")
    idea_file.write_text("mine", encoding="utf-8")
    workspace.stage_context_file("chat").write_text("# Stage: chat\n", encoding="utf-8")

    migrate_legacy_stages(LocalFileStore(), workspace)

    assert idea_file.read_text(encoding="utf-8") == "mine"


def test_listing_runs_the_migration(repo, workspace):
    write_task(workspace, "chat", "old.md", "---\nid: old\nstage: chat\n---\n")

    tasks = repo.list()

    assert [(t.id, t.stage) for t in tasks] == [("old", "idea")]
    assert tasks[0].file_path == str(workspace.stage_dir("idea") / "old.md")


def test_free_target_path(workspace):
    store = LocalFileStore()
    idea = workspace.stage_dir("idea")
    assert free_target_path(store, idea, "x.md") == idea / "x.md"
    write_task(workspace, "idea", "x.md", "")
    assert free_target_path(store, idea, "x.md") == idea / "x-2.md"
