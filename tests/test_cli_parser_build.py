from interface import cli_commands
from interface.cli_parser import build_parser


def test_build_parser_has_core_commands():
    parser = build_parser(cli_commands)
    help_text = parser.format_help()
    for command in ("init", "list", "create", "move", "save", "migrate-filenames", "config"):
        assert command in help_text


def test_move_arguments():
    args = build_parser(cli_commands).parse_args(["-r", "/tmp/p", "move", "42-x", "idea", "code", "--order", "2"])
    assert args.root == "/tmp/p"
    assert (args.task_id, args.from_stage, args.to_stage, args.order) == ("42-x", "idea", "code", 2)
    assert args.func is cli_commands.cmd_move


def test_save_metadata_flags_default_to_unchanged():
    args = build_parser(cli_commands).parse_args(["save", "a.md", "--phase", ""])
    assert args.phase == ""
    assert args.agent is None and args.contexts is None and args.tags is None
    assert not args.force
