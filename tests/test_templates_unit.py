from application.templates import (
    DEFAULT_TASK_TEMPLATE,
    DEFAULT_TEMPLATE_NAME,
    TaskTemplate,
    find_template,
    load_templates,
    render_template,
    with_default_template,
)
from infrastructure.local_file_store import LocalFileStore


def test_render_substitutes_fields_with_empty_defaults():
    text = render_template(
        "{{ title }}|{{stage}}|{{phase}}|{{contexts}}|{{tags}}|{{unknown}}|{{content}}",
        title="T",
        stage="code",
        contexts=["a", "b"],
        tags=["x"],
    )
    assert text == "T|code||a, b|x||"


def test_default_template_is_always_first():
    templates = with_default_template([TaskTemplate("bug", "B")])
    assert [tpl.name for tpl in templates] == [DEFAULT_TEMPLATE_NAME, "bug"]
    assert templates[0].content == DEFAULT_TASK_TEMPLATE


def test_user_default_template_replaces_builtin():
    mine = TaskTemplate("default", "mine")
    assert with_default_template([mine]) == [mine]


def test_find_template_is_case_insensitive():
    templates = [TaskTemplate("Default", "d"), TaskTemplate("feature", "f")]
    assert find_template(templates, "FEATURE").content == "f"
    assert find_template(templates, None).content == "d"
    assert find_template(templates, "missing") is None
    assert find_template([], "x") is None


def test_load_templates_sorted_and_skips_empty(workspace):
    (workspace.templates_dir / "empty.md").write_text("", encoding="utf-8")
    (workspace.templates_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    names = [tpl.name for tpl in load_templates(LocalFileStore(), workspace.templates_dir)]

    assert names == ["bug", "feature"]


def test_load_templates_missing_dir(tmp_path):
    assert load_templates(LocalFileStore(), tmp_path / "nope") == []
