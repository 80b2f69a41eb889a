"""CLI parser construction for taskdeck."""

import argparse
from typing import Any

from core.stage import STAGES, stage_folder_names


def build_parser(commands: Any) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskdeck",
        description="taskdeck: Markdown task board stored under .taskdeck/tasks/<stage>/",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--root", "-r", help="project root containing .taskdeck (default: env, git top-level, cwd)")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging on stderr")

    def add_metadata_args(sp, *, clearable: bool):
        hint = " (empty string clears)" if clearable else ""
        sp.add_argument("--phase", help=f"phase document name{hint}")
        sp.add_argument("--agent", help=f"agent document name{hint}")
        sp.add_argument("--contexts", "-c", help=f"comma-separated context names{hint}")
        sp.add_argument("--tags", "-t", help=f"comma-separated tags{hint}")
        return sp

    sub = parser.add_subparsers(dest="command", help="Commands")

    # init
    ip = sub.add_parser("init", help="Create the .taskdeck workspace layout")
    ip.set_defaults(func=commands.cmd_init)

    # list
    lp = sub.add_parser("list", help="List tasks in board order")
    lp.add_argument("--stage", choices=list(stage_folder_names()))
    lp.set_defaults(func=commands.cmd_list)

    # show
    sp = sub.add_parser("show", help="Show one task")
    sp.add_argument("task_id")
    sp.set_defaults(func=commands.cmd_show)

    # create
    cp = sub.add_parser("create", help="Create a task")
    cp.add_argument("title")
    cp.add_argument("--stage", "-s", help="target stage (default from config)")
    add_metadata_args(cp, clearable=False)
    cp.add_argument("--content", "-d", help="free text for the user section ('-' reads STDIN)")
    cp.add_argument("--template", help="template name from .taskdeck/_templates")
    cp.add_argument("--no-template", action="store_true", help="use --content verbatim")
    cp.set_defaults(func=commands.cmd_create)

    # duplicate
    dp = sub.add_parser("duplicate", help="Copy a task under a new id")
    dp.add_argument("task_id")
    dp.set_defaults(func=commands.cmd_duplicate)

    # move
    mp = sub.add_parser("move", help="Move a task to another stage")
    mp.add_argument("task_id")
    mp.add_argument("from_stage", choices=list(STAGES))
    mp.add_argument("to_stage", choices=list(STAGES))
    mp.add_argument("--order", type=int, help="insert at this position, shifting later siblings")
    mp.set_defaults(func=commands.cmd_move)

    # reorder
    rp = sub.add_parser("reorder", help="Set the order of tasks within a stage")
    rp.add_argument("stage", choices=list(STAGES))
    rp.add_argument("task_ids", nargs="+")
    rp.set_defaults(func=commands.cmd_reorder)

    # save
    svp = sub.add_parser("save", help="Save a task document; a changed stage moves the file")
    svp.add_argument("path")
    svp.add_argument("--content-file", "-f", help="new document text ('-' reads STDIN; default keeps the file's text)")
    svp.add_argument("--force", action="store_true", help="skip the external-modification check")
    svp.add_argument("--expected-mtime", type=float, help="modification time seen when the document was read")
    svp.add_argument("--title")
    svp.add_argument("--stage", help="declared stage; differs from the folder => move")
    add_metadata_args(svp, clearable=True)
    svp.set_defaults(func=commands.cmd_save)

    # delete
    delp = sub.add_parser("delete", help="Delete a task file")
    delp.add_argument("task_id")
    delp.set_defaults(func=commands.cmd_delete)

    # contexts
    ctxp = sub.add_parser("contexts", help="List phases, agents, contexts and templates")
    ctxp.add_argument("--add-phase", metavar="NAME", help="create a phase document")
    ctxp.add_argument("--add-agent", metavar="NAME", help="create an agent document")
    ctxp.add_argument("--add-context", metavar="NAME", help="create a custom context document")
    ctxp.set_defaults(func=commands.cmd_contexts)

    # migrate-filenames
    mfp = sub.add_parser("migrate-filenames", help="Rename <stage>-<slug>.md files to stable ids")
    mfp.add_argument("--dry-run", "-n", action="store_true", help="preview without changing files")
    mfp.add_argument("--backup", "-b", action="store_true", help="copy originals to .taskdeck/backups first")
    mfp.set_defaults(func=commands.cmd_migrate_filenames)

    # config
    cfp = sub.add_parser("config", help="Show or change user settings")
    cfp.add_argument("--default-stage", help="stage used by create when none is given")
    cfp.add_argument("--default-template", help="template applied when create names none")
    cfp.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    cfp.set_defaults(func=commands.cmd_config)

    return parser
