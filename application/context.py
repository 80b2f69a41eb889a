"""Context documents (stage guidance, phases, agents, custom notes) and templates."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from application.ports import FileStore, ensure_directory, exists, list_markdown_files, read_text_if_exists, write_text
from application.templates import TaskTemplate, load_templates, with_default_template
from core import MANAGED_MARKER, now_iso, slugify
from infrastructure.workspace import Workspace


@dataclass
class ContextData:
    phases: List[str] = field(default_factory=list)
    agents: List[str] = field(default_factory=list)
    contexts: List[str] = field(default_factory=list)
    templates: List[TaskTemplate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phases": list(self.phases),
            "agents": list(self.agents),
            "contexts": list(self.contexts),
            "templates": [tpl.to_dict() for tpl in self.templates],
        }


def _names(store: FileStore, directory: Path) -> List[str]:
    return [name.removesuffix(".md") for name in list_markdown_files(store, directory)]


def load_context_data(store: FileStore, workspace: Workspace) -> ContextData:
    if not exists(store, workspace.base_dir):
        return ContextData(templates=with_default_template([]))
    return ContextData(
        phases=_names(store, workspace.context_dir / "phases"),
        agents=_names(store, workspace.context_dir / "agents"),
        contexts=["architecture", *_names(store, workspace.context_dir / "custom")],
        templates=with_default_template(load_templates(store, workspace.templates_dir)),
    )


def _write_context_document(store: FileStore, target: Path, body: str) -> None:
    ensure_directory(store, target.parent)
    write_text(store, target, body)


def create_phase_file(store: FileStore, workspace: Workspace, name: str, content: Optional[str] = None) -> str:
    slug = slugify(name)
    body = content if content and content.strip() else (
        f"# {name}\n\nDescribe the goals, scope, and constraints for this phase.\n\n_Last updated: {now_iso()}_\n"
    )
    _write_context_document(store, workspace.context_dir / "phases" / f"{slug}.md", body)
    return slug


def create_agent_file(store: FileStore, workspace: Workspace, name: str, content: Optional[str] = None) -> str:
    slug = slugify(name)
    body = content if content and content.strip() else (
        f"# Agent: {name}\n\n"
        "- Role: Describe responsibilities.\n"
        "- Voice & Style: Crisp, actionable.\n"
        "- Preferred Tools: List tools or stack.\n"
        "- Constraints: Note any boundaries.\n"
    )
    _write_context_document(store, workspace.context_dir / "agents" / f"{slug}.md", body)
    return slug


def create_context_file(store: FileStore, workspace: Workspace, name: str, content: Optional[str] = None) -> str:
    slug = slugify(name)
    body = content if content and content.strip() else (
        f"# Context: {name}\n\nAdd design notes, requirements, or specs relevant to attached tasks.\n"
    )
    _write_context_document(store, workspace.context_dir / "custom" / f"{slug}.md", body)
    return slug


def build_managed_sections(
    store: FileStore,
    workspace: Workspace,
    stage: str,
    phase: Optional[str] = None,
    agent: Optional[str] = None,
    contexts: Optional[Sequence[str]] = None,
) -> str:
    """Generated block placed above the user-content sentinel of a new task."""
    context_dir = workspace.context_dir
    stage_text = read_text_if_exists(store, workspace.stage_context_file(stage))
    sections = [
        MANAGED_MARKER,
        f"## Stage: {stage}\n{stage_text or f'Add stage guidance in _context/stages/{stage}.md'}",
    ]
    if phase:
        phase_text = read_text_if_exists(store, context_dir / "phases" / f"{phase}.md")
        if phase_text:
            sections.append(f"\n## Phase: {phase}\n{phase_text}")
    if agent:
        agent_text = read_text_if_exists(store, context_dir / "agents" / f"{agent}.md")
        if agent_text:
            sections.append(f"\n## Agent: {agent}\n{agent_text}")
    for name in contexts or []:
        text = read_text_if_exists(store, context_dir / "custom" / f"{name}.md")
        if text:
            sections.append(f"\n## Context: {name}\n{text}")
    architecture = read_text_if_exists(store, context_dir / "architecture.md")
    if architecture:
        sections.append(f"\n## Architecture\n{architecture}")
    sections.append("")
    return "\n".join(sections)


__all__ = [
    "ContextData",
    "load_context_data",
    "create_phase_file",
    "create_agent_file",
    "create_context_file",
    "build_managed_sections",
]
