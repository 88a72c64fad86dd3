"""Shell commands and the registry the completion providers consult.

A command line is a registered name at the start of the input, optionally
followed by whitespace and an argument:

    help                 -- list commands
    help show_source     -- detailed help for one command
    show_source fn       -- print the source of fn
    show_doc str#upper   -- print documentation for a namespace identifier
    ls obj               -- list names in the namespace, or members of obj
    info                 -- session and completion details
    exit                 -- leave the shell

Anything that looks like Python (`help(x)`, `ls = 1`) is not a command line.
"""

from __future__ import annotations

import enum
import inspect
import pydoc
import re
import sys
import textwrap
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable, Protocol

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from tabby.completion.typerefs import type_of_value
from tabby.exceptions import CommandError
from tabby.repl.namespace import summarize

if TYPE_CHECKING:
    from tabby.completion import CompletionProvider, EvaluationContext

_COMMAND_LINE = re.compile(r"\s*([^\W\d]\w*)(?:\s+(.*?))?\s*", re.S)
_PYTHON_CONTINUATION = tuple("=([{.,:;+-*/%<>!&|^@")


class ArgKind(enum.Enum):
    """What a command's argument is, which decides how it completes."""

    NONE = "none"
    COMMAND = "command"
    EXPRESSION = "expression"


class CommandSession(Protocol):
    """What commands may touch on the running shell."""

    namespace: dict
    completor: CompletionProvider
    context: EvaluationContext
    console: Console

    def exit(self) -> None: ...


Handler = Callable[[CommandSession, str], None]


@dataclass
class Command:
    name: str
    help_text: str
    handler: Handler
    argument: ArgKind = ArgKind.NONE
    usage: str = ""
    aliases: tuple[str, ...] = field(default_factory=tuple)

    def run(self, session: CommandSession, arg: str) -> None:
        self.handler(session, arg)


class CommandRegistry:
    """Commands by name and alias."""

    def __init__(self, commands: Iterable[Command] = ()) -> None:
        self._commands: dict[str, Command] = {}
        self._aliases: dict[str, str] = {}
        for command in commands:
            self.register(command)

    def register(self, command: Command) -> None:
        self._commands[command.name] = command
        for alias in command.aliases:
            self._aliases[alias] = command.name

    def get(self, name: str) -> Command | None:
        return self._commands.get(self._aliases.get(name, name))

    def all(self) -> list[Command]:
        return [self._commands[n] for n in sorted(self._commands)]

    def command_names(self) -> list[str]:
        """All command names and aliases."""
        return list(self._commands) + list(self._aliases)

    def completes_commands(self, name: str) -> bool:
        command = self.get(name)
        return command is not None and command.argument is ArgKind.COMMAND

    def parse(self, line: str) -> tuple[Command, str] | None:
        """Split a command line into (command, argument); None for Python input."""
        m = _COMMAND_LINE.fullmatch(line)
        if m is None:
            return None
        command = self.get(m.group(1))
        if command is None:
            return None
        arg = m.group(2) or ""
        if arg.startswith(_PYTHON_CONTINUATION):
            return None
        if arg and command.argument is ArgKind.NONE:
            return None
        return command, arg

    def __repr__(self) -> str:
        return f"CommandRegistry({', '.join(sorted(self._commands))})"


def _evaluate(session: CommandSession, expr: str, command: str) -> object:
    try:
        return eval(expr, session.namespace)
    except Exception as e:
        raise CommandError(f"{command}: cannot evaluate {expr!r}: {e}", command=command, cause=e)


def _help(registry: CommandRegistry) -> Handler:
    def handler(session: CommandSession, arg: str) -> None:
        if arg:
            command = registry.get(arg)
            if command is None:
                raise CommandError(f"help: unknown command {arg!r}", command="help")
            session.console.print(escape(f"{command.name} {command.usage}".rstrip()), style="bold")
            session.console.print(f"  {escape(command.help_text)}")
            if command.aliases:
                session.console.print(f"  aliases: {', '.join(command.aliases)}")
            return
        table = Table(show_header=False, box=None, pad_edge=False)
        for command in registry.all():
            table.add_row(f"[bold]{command.name}", escape(command.usage), escape(command.help_text))
        session.console.print(table)
        session.console.print("Type 'help <command>' for details. Anything else runs as Python.")

    return handler


def _show_source(session: CommandSession, arg: str) -> None:
    if not arg:
        raise CommandError("show_source: expected an expression", command="show_source")
    obj = _evaluate(session, arg, "show_source")
    try:
        source = inspect.getsource(obj)
    except (OSError, TypeError) as e:
        raise CommandError(f"show_source: no source for {arg}: {e}", command="show_source", cause=e)
    try:
        location = f"{inspect.getsourcefile(obj)}:{inspect.getsourcelines(obj)[1]}"
    except (OSError, TypeError):
        location = "<unknown>"
    session.console.print(f"From: {escape(location)}", style="dim")
    session.console.print(Syntax(textwrap.dedent(source), "python"))


def locate_doc(name: str) -> object | None:
    """The object a namespace identifier such as "str#upper" or "os.path.join" names."""
    try:
        return pydoc.locate(name.replace("#", "."))
    except pydoc.ErrorDuringImport:
        return None


def doc_summary(name: str) -> str | None:
    """First line of the documentation for a namespace identifier."""
    obj = locate_doc(name)
    doc = inspect.getdoc(obj) if obj is not None else None
    return doc.splitlines()[0] if doc else None


def _resolve_doc_name(session: CommandSession, arg: str) -> str | None:
    if "#" in arg:
        return arg
    preposing, dot, target = arg.rpartition(".")
    return session.completor.doc_namespace(preposing + dot, target, "", session.context)


def _show_doc(session: CommandSession, arg: str) -> None:
    if not arg:
        raise CommandError("show_doc: expected a name", command="show_doc")
    name = _resolve_doc_name(session, arg)
    obj = locate_doc(name) if name else None
    if obj is None:
        raise CommandError(f"show_doc: no documentation found for {arg}", command="show_doc")
    session.console.print(escape(name), style="bold")
    doc = pydoc.render_doc(obj, title="%s", renderer=pydoc.plaintext)
    session.console.print(doc, markup=False, highlight=False)


def _ls(session: CommandSession, arg: str) -> None:
    if not arg:
        table = Table(show_header=False, box=None, pad_edge=False)
        for name, value in sorted(session.namespace.items(), key=lambda kv: str(kv[0])):
            if not isinstance(name, str) or name.startswith("_"):
                continue
            label = "class" if isinstance(value, type) else type(value).__name__
            table.add_row(escape(name), label, escape(summarize(value)))
        session.console.print(table)
        return
    ref = type_of_value(_evaluate(session, arg, "ls"))
    names = sorted(n for n in ref.member_names(session.completor.encoding) if not n.startswith("_"))
    session.console.print(escape(str(ref)), style="bold")
    listing = textwrap.fill("  ".join(dict.fromkeys(names)), width=session.console.width)
    session.console.print(listing, markup=False, highlight=False)


def _info(session: CommandSession, arg: str) -> None:
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_row("Python", sys.version.split()[0])
    table.add_row("Completion", escape(repr(session.completor)))
    table.add_row("Encoding", session.completor.encoding)
    table.add_row("Names", str(sum(1 for n in session.namespace if not str(n).startswith("_"))))
    session.console.print(table)


def _exit(session: CommandSession, arg: str) -> None:
    session.exit()


def default_registry() -> CommandRegistry:
    """Registry with the built-in commands."""
    registry = CommandRegistry()
    registry.register(Command(
        "help", "Show help for commands", _help(registry),
        argument=ArgKind.COMMAND, usage="[command]",
    ))
    registry.register(Command(
        "show_source", "Show the source code of an object", _show_source,
        argument=ArgKind.EXPRESSION, usage="<expression>",
    ))
    registry.register(Command(
        "show_doc", "Show documentation for a name or Type#member", _show_doc,
        argument=ArgKind.EXPRESSION, usage="<name>",
    ))
    registry.register(Command(
        "ls", "List namespace entries, or the members of an object", _ls,
        argument=ArgKind.EXPRESSION, usage="[expression]",
    ))
    registry.register(Command("info", "Show session and completion details", _info))
    registry.register(Command("exit", "Leave the shell", _exit, aliases=("quit",)))
    return registry
