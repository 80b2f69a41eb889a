"""Task body templates: ``{{ placeholder }}`` substitution over task fields."""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from application.ports import FileStore, list_markdown_files, read_text_if_exists

DEFAULT_TEMPLATE_NAME = "Default"

DEFAULT_TASK_TEMPLATE = """# {{title}}

## Summary
{{content}}

## Stage
{{stage}}

## Phase
{{phase}}

## Agent
{{agent}}

## Contexts
{{contexts}}

## Tags
{{tags}}
"""

_PLACEHOLDER = re.compile(r"{{\s*(\w+)\s*}}")


@dataclass(frozen=True)
class TaskTemplate:
    name: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "content": self.content}


def render_template(
    template: str,
    *,
    title: str = "",
    stage: str = "",
    phase: Optional[str] = None,
    agent: Optional[str] = None,
    contexts: Optional[Sequence[str]] = None,
    tags: Optional[Sequence[str]] = None,
    content: Optional[str] = None,
) -> str:
    values = {
        "title": title or "",
        "stage": stage or "",
        "phase": phase or "",
        "agent": agent or "",
        "contexts": ", ".join(contexts or []),
        "tags": ", ".join(tags or []),
        "content": content or "",
    }
    return _PLACEHOLDER.sub(lambda match: values.get(match.group(1), ""), template)


def with_default_template(templates: List[TaskTemplate]) -> List[TaskTemplate]:
    names = {tpl.name.lower() for tpl in templates}
    if DEFAULT_TEMPLATE_NAME.lower() in names:
        return list(templates)
    return [TaskTemplate(DEFAULT_TEMPLATE_NAME, DEFAULT_TASK_TEMPLATE), *templates]


def load_templates(store: FileStore, templates_dir: Path) -> List[TaskTemplate]:
    templates: List[TaskTemplate] = []
    for name in list_markdown_files(store, templates_dir):
        content = read_text_if_exists(store, templates_dir / name)
        if content:
            templates.append(TaskTemplate(name.removesuffix(".md"), content))
    templates.sort(key=lambda tpl: tpl.name)
    return templates


def find_template(templates: List[TaskTemplate], name: Optional[str]) -> Optional[TaskTemplate]:
    """Case-insensitive lookup; without a name the first template wins."""
    if not templates:
        return None
    if not name:
        return templates[0]
    wanted = name.lower()
    for tpl in templates:
        if tpl.name.lower() == wanted:
            return tpl
    return None


__all__ = [
    "DEFAULT_TEMPLATE_NAME",
    "DEFAULT_TASK_TEMPLATE",
    "TaskTemplate",
    "render_template",
    "with_default_template",
    "load_templates",
    "find_template",
]
