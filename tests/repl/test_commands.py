"""Tests for the command registry and the built-in commands."""

from __future__ import annotations

from io import StringIO

import pytest
from rich.console import Console

from tabby.completion import CommandSource, NamespaceContext
from tabby.exceptions import CommandError
from tabby.repl.commands import ArgKind, Command, CommandRegistry, doc_summary, locate_doc


def sample_function(x):
    """Return x doubled."""
    return x * 2


class FakeSession:
    """Minimal CommandSession backed by a plain namespace."""

    def __init__(self, completor, namespace):
        self.namespace = namespace
        self.completor = completor
        self.context = NamespaceContext(namespace)
        self.console = Console(file=StringIO(), width=100, color_system=None)
        self.exited = False

    def exit(self):
        self.exited = True

    @property
    def output(self) -> str:
        return self.console.file.getvalue()


@pytest.fixture
def session(completor, ns):
    ns["sample_function"] = sample_function
    return FakeSession(completor, ns)


def run(registry, session, line):
    parsed = registry.parse(line)
    assert parsed is not None, line
    command, arg = parsed
    command.run(session, arg)


# =============================================================================
# Registry
# =============================================================================


class TestRegistry:
    def test_is_a_command_source(self, registry):
        assert isinstance(registry, CommandSource)

    def test_names_include_aliases(self, registry):
        names = set(registry.command_names())
        assert {"help", "show_source", "show_doc", "ls", "info", "exit", "quit"} <= names

    def test_alias_lookup(self, registry):
        assert registry.get("quit") is registry.get("exit")

    def test_completes_commands(self, registry):
        assert registry.completes_commands("help")
        assert not registry.completes_commands("ls")
        assert not registry.completes_commands("nope")

    def test_register_custom_command(self):
        registry = CommandRegistry()
        registry.register(Command("hello", "Say hello", lambda s, a: None))
        assert registry.get("hello").argument is ArgKind.NONE
        assert "hello" in repr(registry)

    @pytest.mark.parametrize(
        "line, name, arg",
        [
            ("help", "help", ""),
            ("  help  ", "help", ""),
            ("help show_source", "help", "show_source"),
            ("show_source sample_function", "show_source", "sample_function"),
            ("ls", "ls", ""),
            ("quit", "exit", ""),
        ],
    )
    def test_parse_command_lines(self, registry, line, name, arg):
        command, parsed_arg = registry.parse(line)
        assert command.name == name
        assert parsed_arg == arg

    @pytest.mark.parametrize(
        "line",
        ["help(len)", "ls = 1", "ls.append(1)", "info x", "exit()", "x = 1", "ls == 2", "help + 1"],
    )
    def test_python_input_is_not_a_command(self, registry, line):
        assert registry.parse(line) is None


# =============================================================================
# Built-in commands
# =============================================================================


class TestBuiltins:
    def test_help_lists_commands(self, registry, session):
        run(registry, session, "help")
        assert "show_source" in session.output
        assert "[command]" in session.output

    def test_help_for_one_command(self, registry, session):
        run(registry, session, "help exit")
        assert "Leave the shell" in session.output
        assert "quit" in session.output

    def test_help_unknown_command(self, registry, session):
        with pytest.raises(CommandError) as exc_info:
            run(registry, session, "help nope")
        assert exc_info.value.command == "help"

    def test_show_source(self, registry, session):
        run(registry, session, "show_source sample_function")
        assert "return x * 2" in session.output

    def test_show_source_of_builtin(self, registry, session):
        with pytest.raises(CommandError, match="no source"):
            run(registry, session, "show_source len")

    def test_show_source_bad_expression(self, registry, session):
        with pytest.raises(CommandError, match="cannot evaluate") as exc_info:
            run(registry, session, "show_source undefined_name")
        assert isinstance(exc_info.value.__cause__, NameError)

    def test_show_doc_namespace_identifier(self, registry, session):
        run(registry, session, "show_doc str#upper")
        assert "str#upper" in session.output
        assert "uppercase" in session.output

    def test_show_doc_expression(self, registry, session):
        run(registry, session, "show_doc chr(num).upper")
        assert "str#upper" in session.output

    def test_show_doc_unknown(self, registry, session):
        with pytest.raises(CommandError, match="no documentation"):
            run(registry, session, "show_doc undefined_name.upper")

    def test_ls_namespace(self, registry, session):
        run(registry, session, "ls")
        assert "num" in session.output
        assert "sample_function" in session.output
        assert "__builtins__" not in session.output

    def test_ls_object(self, registry, session):
        run(registry, session, "ls num")
        assert "bit_length" in session.output
        assert "__add__" not in session.output

    def test_info(self, registry, session):
        run(registry, session, "info")
        assert "TypeCompletor" in session.output
        assert "utf-8" in session.output

    def test_exit(self, registry, session):
        run(registry, session, "exit")
        assert session.exited


def test_locate_doc():
    assert locate_doc("str#upper") is str.upper
    assert locate_doc("os.path.join") is not None
    assert locate_doc("no_such_thing#x") is None


def test_doc_summary():
    assert doc_summary(f"{__name__}.sample_function") == "Return x doubled."
    assert "uppercase" in doc_summary("str#upper")
