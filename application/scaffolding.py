"""Workspace scaffolding: stage folders, context documents and starter templates.

Existing files are left untouched, so running it on an initialized workspace
only fills in what is missing.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from application.ports import FileStore, ensure_directory, exists, write_text
from core.stage import STAGES
from infrastructure.workspace import Workspace

FEATURE_TEMPLATE = """# Feature: {{title}}

## Goal
{{content}}

- Stage: {{stage}}
- Phase: {{phase}}
- Agent: {{agent}}
- Contexts: {{contexts}}
- Tags: {{tags}}
"""

BUG_TEMPLATE = """# Bug: {{title}}

## Expected

## Actual

## Steps
1.
2.

Context: {{contexts}}
Agent: {{agent}}
Tags: {{tags}}
"""


def stage_guidance(stage: str) -> str:
    return f"# Stage: {stage}\n\nDescribe how tasks should be executed in this stage.\n"


def _starter_files(workspace: Workspace) -> List[Tuple[Path, str]]:
    files: List[Tuple[Path, str]] = [
        (
            workspace.context_dir / "architecture.md",
            "# Architecture\n\nDescribe your project architecture here. This file is referenced by taskdeck.\n",
        ),
    ]
    files.extend((workspace.stage_context_file(stage), stage_guidance(stage)) for stage in STAGES)
    files.append((workspace.templates_dir / "feature.md", FEATURE_TEMPLATE))
    files.append((workspace.templates_dir / "bug.md", BUG_TEMPLATE))
    return files


def scaffold_workspace(store: FileStore, workspace: Workspace) -> List[str]:
    """Create the workspace layout; returns the files written."""
    directories = [workspace.stage_dir(stage) for stage in STAGES]
    directories += [workspace.context_dir / name for name in ("stages", "phases", "agents", "custom")]
    directories.append(workspace.templates_dir)
    for directory in directories:
        ensure_directory(store, directory)

    written: List[str] = []
    for path, contents in _starter_files(workspace):
        if exists(store, path):
            continue
        write_text(store, path, contents)
        written.append(str(path))
    return written


__all__ = ["FEATURE_TEMPLATE", "BUG_TEMPLATE", "stage_guidance", "scaffold_workspace"]
