from pathlib import Path

import pytest

from scorer.main import COMMANDS, parse_args


def test_parse_import_command():
    args = parse_args(["--category", "health", "--max-id", "100", "import",
                       "--path", "export.csv", "--overwrite"])
    assert args.command == "import"
    assert args.category == "health"
    assert args.max_id == 100
    assert args.path == Path("export.csv")
    assert args.overwrite is True


def test_parse_export_command():
    args = parse_args(["export", "--language", "en"])
    assert args.language == "en"
    assert args.output is None


def test_every_subcommand_is_dispatched():
    for command in ("import", "fetch", "clean", "check", "static", "analyze", "export", "run"):
        assert parse_args([command]).command in COMMANDS


def test_command_is_required():
    with pytest.raises(SystemExit):
        parse_args([])
