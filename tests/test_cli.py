import json
import re
from pathlib import Path

import pytest

import config
from core import parse_document
from infrastructure.workspace import Workspace
from interface.app import main

from conftest import write_task


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "USER_CONFIG_PATH", tmp_path / "home" / ".taskdeck_config.yaml")


@pytest.fixture
def cli(tmp_path, capsys):
    def run(*argv):
        code = main(["--root", str(tmp_path), *argv])
        return code, json.loads(capsys.readouterr().out)

    return run


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_commands_require_workspace(cli):
    code, body = cli("list")
    assert code == 1
    assert body["status"] == "NOT_FOUND"
    assert "taskdeck init" in body["message"]

    code, body = cli("create", "Orphan")
    assert code == 1
    assert body["status"] == "NOT_FOUND"


def test_init_is_idempotent(cli, tmp_path):
    code, body = cli("init")
    assert code == 0
    assert body["message"] == "Workspace initialized"
    assert (tmp_path / ".taskdeck" / "tasks" / "queue").is_dir()

    _, again = cli("init")
    assert again["message"] == "Workspace already initialized"
    assert again["payload"]["created"] == []


def test_create_list_show_move_delete(cli):
    cli("init")

    code, body = cli("create", "Write docs", "--stage", "code", "--tags", "docs,cli", "--content", "Explain save")
    assert code == 0
    task = body["payload"]["task"]
    assert re.fullmatch(r"\d+-write-docs", task["id"])
    assert task["stage"] == "code"
    assert task["tags"] == ["docs", "cli"]
    assert "Explain save" in Path(task["filePath"]).read_text(encoding="utf-8")

    _, listing = cli("list", "--stage", "code")
    assert [t["id"] for t in listing["payload"]["tasks"]] == [task["id"]]

    code, moved = cli("move", task["id"], "code", "audit")
    assert code == 0
    assert moved["payload"]["toStage"] == "audit"

    _, shown = cli("show", task["id"])
    assert shown["payload"]["task"]["stage"] == "audit"

    assert cli("delete", task["id"])[0] == 0
    code, missing = cli("show", task["id"])
    assert code == 1
    assert missing["status"] == "NOT_FOUND"


def test_create_rejects_unknown_stage(cli):
    cli("init")
    code, body = cli("create", "Bad", "--stage", "someday")
    assert code == 1
    assert body["status"] == "INVALID"


def test_move_collision_status(cli, tmp_path):
    cli("init")
    _, body = cli("create", "Clash", "--stage", "idea", "--no-template")
    task_id = body["payload"]["task"]["id"]
    target = tmp_path / ".taskdeck" / "tasks" / "plan" / f"{task_id}.md"
    target.write_text("---\nid: squatter\n---\n", encoding="utf-8")

    code, moved = cli("move", task_id, "idea", "plan")

    assert code == 1
    assert moved["status"] == "COLLISION"


def test_save_moves_on_stage_change(cli):
    cli("init")
    _, body = cli("create", "Ship it", "--stage", "queue")
    path = body["payload"]["task"]["filePath"]

    code, saved = cli("save", path, "--stage", "code", "--tags", "release")

    assert code == 0
    assert saved["payload"]["moved"]
    new_path = Path(saved["payload"]["filePath"])
    assert new_path.parent.name == "code"
    assert not Path(path).exists()
    assert parse_document(new_path.read_text(encoding="utf-8")).metadata["tags"] == ["release"]


def test_save_with_stale_mtime_conflicts_until_forced(cli, tmp_path):
    cli("init")
    _, body = cli("create", "Edit me", "--no-template", "--content", "v1")
    path = body["payload"]["task"]["filePath"]
    replacement = tmp_path / "new.md"
    replacement.write_text("---\ntitle: Edit me\nstage: idea\n---\nv2\n", encoding="utf-8")

    code, conflict = cli("save", path, "-f", str(replacement), "--expected-mtime", "1.0")
    assert code == 1
    assert conflict["status"] == "CONFLICT"
    assert "modified externally" in conflict["message"]

    code, forced = cli("save", path, "-f", str(replacement), "--expected-mtime", "1.0", "--force")
    assert code == 0
    assert "v2" in Path(path).read_text(encoding="utf-8")


def test_save_outside_workspace_is_invalid(cli, tmp_path):
    cli("init")
    outside = tmp_path / "elsewhere.md"
    outside.write_text("---\ntitle: x\n---\n", encoding="utf-8")
    code, body = cli("save", str(outside))
    assert code == 1
    assert body["status"] == "INVALID"


def test_reorder_and_duplicate(cli):
    cli("init")
    first = cli("create", "One", "--stage", "plan")[1]["payload"]["task"]["id"]
    second = cli("create", "Two", "--stage", "plan")[1]["payload"]["task"]["id"]

    assert cli("reorder", "plan", second, first)[0] == 0
    _, listing = cli("list", "--stage", "plan")
    assert [t["id"] for t in listing["payload"]["tasks"]] == [second, first]

    code, dup = cli("duplicate", first)
    assert code == 0
    assert dup["payload"]["task"]["title"] == "One Copy"


def test_contexts_lists_and_creates(cli):
    cli("init")
    code, body = cli("contexts", "--add-phase", "Beta Launch", "--add-context", "API")
    assert code == 0
    payload = body["payload"]
    assert payload["created"] == {"phase": "beta-launch", "context": "api"}
    assert payload["phases"] == ["beta-launch"]
    assert payload["contexts"] == ["architecture", "api"]
    assert payload["templates"][0]["name"] == "Default"


def test_config_default_stage_feeds_create(cli):
    cli("init")
    code, body = cli("config", "--default-stage", "queue")
    assert code == 0
    assert body["payload"]["default_stage"] == "queue"

    _, created = cli("create", "Queued by default")
    assert created["payload"]["task"]["stage"] == "queue"

    code, bad = cli("config", "--log-level", "chatty")
    assert code == 1
    assert bad["status"] == "INVALID"


def test_migrate_filenames_dry_run(cli, tmp_path):
    cli("init")
    legacy = tmp_path / ".taskdeck" / "tasks" / "idea" / "idea-old-name.md"
    legacy.write_text("---\nid: idea-old-name\n---\n", encoding="utf-8")

    code, body = cli("migrate-filenames", "--dry-run")

    assert code == 0
    assert body["message"] == "Would migrate 1 file(s)"
    assert legacy.exists()


def test_migrate_filenames_without_workspace(cli):
    code, body = cli("migrate-filenames")
    assert code == 1
    assert body["status"] == "NOT_FOUND"


def test_list_folds_legacy_folder(cli, tmp_path):
    cli("init")
    write_task(Workspace(project_root=tmp_path), "chat", "old.md", "---\nid: old\nstage: chat\n---\n")

    _, listing = cli("list")

    assert [(t["id"], t["stage"]) for t in listing["payload"]["tasks"]] == [("old", "idea")]
