"""Tests for directive extraction from model replies."""
import pytest

from minessh.llm.parsers import parse_directive, render_segments
from minessh.models import RunCommand, WriteFile


def test_run_tag():
    assert parse_directive("Let me check.\n<run>\n  df -h\n</run>") == RunCommand("df -h")


def test_empty_run_tag_means_enter():
    assert parse_directive("<run></run>") == RunCommand("")
    assert parse_directive("<run>\n \n</run>") == RunCommand("")


def test_alternate_command_syntaxes():
    assert parse_directive("@@@COMMAND@@@ uname -a @@@END@@@") == RunCommand("uname -a")
    assert parse_directive("Run this:\n```bash\nsystemctl status nginx\n```") == RunCommand("systemctl status nginx")


def test_syntax_priority_order():
    text = "```bash\nls\n```\n<run>pwd</run>"
    assert parse_directive(text) == RunCommand("pwd")


def test_write_file_extracts_path_and_body():
    text = 'Creating it.\n<write_file path="/etc/nginx/conf.d/app.conf">\nserver {\n    listen 80;\n}\n</write_file>'
    assert parse_directive(text) == WriteFile("/etc/nginx/conf.d/app.conf", "server {\n    listen 80;\n}")


def test_write_file_keeps_inner_whitespace():
    text = '<write_file path="/tmp/a">  line1\n\n\tline2  </write_file>'
    assert parse_directive(text).content == "line1\n\n\tline2"


def test_write_file_wins_over_run():
    text = '<run>cat /tmp/x</run>\n<write_file path="/tmp/x">hello</write_file>'
    assert parse_directive(text) == WriteFile("/tmp/x", "hello")


def test_only_first_run_is_used():
    assert parse_directive("<run>one</run> then <run>two</run>") == RunCommand("one")


@pytest.mark.parametrize("text", [
    "All done, nginx is running.",
    "",
    "You could run ls -la to see files.",
    "<run>ls -la",
    "```sh\nls\n```",
    '<write_file>missing path</write_file>',
    '<write_file path="">empty path</write_file>',
])
def test_no_directive(text):
    assert parse_directive(text) is None


def test_render_segments_splits_text_commands_and_files():
    text = 'First:\n<run>ls</run>\nThen <write_file path="/tmp/a">x=1</write_file>\n  '
    segments = render_segments(text)
    assert [s.kind for s in segments] == ["text", "command", "text", "file"]
    assert segments[1].content == "ls"
    assert segments[3].path == "/tmp/a"
    assert segments[3].content == "x=1"


def test_render_segments_plain_text():
    segments = render_segments("Just an answer.")
    assert len(segments) == 1
    assert segments[0].kind == "text"
