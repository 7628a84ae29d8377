"""Tests for the console helpers."""
from minessh.cli import create_parser, create_terminal_writer


def test_terminal_writer_joins_split_characters(capsys):
    write = create_terminal_writer()
    data = "~ ➜ ".encode("utf-8")
    write(data[:3])
    write(data[3:])
    assert capsys.readouterr().out == "~ ➜ "


def test_parser_defaults():
    args = create_parser().parse_args(["root@example.com"])
    assert args.target == "root@example.com"
    assert args.port is None
    assert not args.no_auto_run
