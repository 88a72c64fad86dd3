"""TabbyShell: async Python REPL with provider-backed completion."""

from __future__ import annotations

import asyncio
import logging
import traceback

from prompt_toolkit import PromptSession
from prompt_toolkit.application import run_in_terminal
from prompt_toolkit.document import Document
from prompt_toolkit.input.ansi_escape_sequences import ANSI_SEQUENCES
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.lexers import PygmentsLexer
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.styles import Style
from pygments.lexers.python import PythonLexer
from rich.console import Console
from rich.markup import escape

from tabby.completion import NamespaceContext, build_completor
from tabby.config import TabbyConfig
from tabby.exceptions import CommandError
from tabby.repl.commands import CommandRegistry, default_registry, doc_summary
from tabby.repl.complete import ProviderCompleter, split_word_at_cursor
from tabby.repl.exec import async_exec
from tabby.repl.namespace import seed

logger = logging.getLogger(__name__)

# Kitty keyboard protocol Shift+Enter (CSI u) maps to Escape+Enter, so the
# newline binding below handles both.
ANSI_SEQUENCES["\x1b[13;2u"] = (Keys.Escape, Keys.ControlM)


def _build_key_bindings(shell: TabbyShell) -> KeyBindings:
    """Submit, newline, and doc lookup."""
    kb = KeyBindings()

    @kb.add("enter")
    def submit(event):
        event.current_buffer.validate_and_handle()

    @kb.add("escape", "enter")
    def insert_newline(event):
        event.current_buffer.insert_text("\n")

    @kb.add("escape", "d")
    def show_doc_at_cursor(event):
        document = event.current_buffer.document
        run_in_terminal(lambda: shell.print_doc_at(document))

    return kb


class TabbyShell:
    """Python REPL whose tab completion goes through a CompletionProvider."""

    def __init__(
        self,
        config: TabbyConfig | None = None,
        *,
        registry: CommandRegistry | None = None,
        console: Console | None = None,
        input=None,
        output=None,
    ) -> None:
        self.config = config or TabbyConfig()
        self.namespace: dict = seed()
        self.registry = registry or default_registry()
        self.context = NamespaceContext(self.namespace)
        self.completor = build_completor(
            self.config.completor,
            self.registry,
            encoding=self.config.encoding,
            background=self.config.preload_knowledge,
        )
        logger.debug("completion provider: %r", self.completor)
        self.console = console or Console()
        self.completer = ProviderCompleter(self.completor, self.context)
        self._exiting = False
        self.session = PromptSession(
            message=[("class:prompt", ">>> ")],
            lexer=PygmentsLexer(PythonLexer),
            completer=self.completer,
            multiline=True,
            style=Style.from_dict({"prompt": "fg:ansigreen bold"}),
            key_bindings=_build_key_bindings(self),
            input=input,
            output=output,
        )

    def exit(self) -> None:
        self._exiting = True

    def print_doc_at(self, document: Document) -> None:
        """Print the doc namespace and summary for the word at the cursor."""
        preposing, target, postposing = split_word_at_cursor(document)
        name = self.completor.doc_namespace(preposing, target, postposing, self.context)
        if name is None:
            self.console.print(f"no documentation for {escape(target or '?')}", style="dim")
            return
        summary = doc_summary(name)
        self.console.print(escape(name), style="bold", end="")
        self.console.print(f"  {escape(summary)}" if summary else "")

    async def _run_command(self, text: str) -> bool:
        parsed = self.registry.parse(text)
        if parsed is None:
            return False
        command, arg = parsed
        try:
            command.run(self, arg)
        except CommandError as e:
            logger.debug("command %s failed: %s", e.command, e)
            self.console.print(escape(str(e)), style="red")
        return True

    async def _run_py(self, text: str) -> None:
        try:
            result, captured = await async_exec(text, self.namespace)
            if captured:
                self.console.print(captured.rstrip("\n"), markup=False, highlight=False)
            if asyncio.iscoroutine(result):
                result = await result
                self.namespace["_"] = result
            if result is not None:
                self.console.print(repr(result), markup=False)
        except KeyboardInterrupt:
            pass
        except Exception:
            tb = traceback.format_exc()
            self.console.print(tb.rstrip("\n"), style="red", markup=False, highlight=False)

    async def dispatch(self, text: str) -> None:
        """Run a command line through the registry, anything else as Python."""
        if not await self._run_command(text):
            await self._run_py(text)

    async def run(self) -> None:
        """Main REPL loop."""
        with patch_stdout():
            while not self._exiting:
                try:
                    text = await self.session.prompt_async()
                except (KeyboardInterrupt, EOFError):
                    return
                if text.strip():
                    await self.dispatch(text)
