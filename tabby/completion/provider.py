"""Completion provider interface.

A provider is built once per shell session and queried on every completion
request with (preposing, target, postposing, context):

    preposing  -- text before the target on the current input
    target     -- the fragment being completed, possibly "" or dotted ("a.b")
    postposing -- text after the cursor
    context    -- EvaluationContext for the session's namespace

candidates() answers a sorted list of strings, doc_namespace() a
"Type#member" / "Type.member" identifier or None. Neither raises on
malformed input.
"""

from __future__ import annotations

import locale
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, Iterator, Protocol, runtime_checkable

from tabby.completion.context import EvaluationContext

# Python versions on which the type-aware provider is the default.
TYPE_COMPLETOR_MIN_VERSION = (3, 12)


class CompletorKind(str, Enum):
    """Configurable provider choice."""

    TYPE = "type"
    REGEXP = "regexp"


def default_completor_kind(version: tuple[int, ...] | None = None) -> CompletorKind:
    """Provider used when none is configured."""
    version = tuple(version or sys.version_info[:2])
    if version >= TYPE_COMPLETOR_MIN_VERSION:
        return CompletorKind.TYPE
    return CompletorKind.REGEXP


def default_encoding() -> str:
    """The process's preferred text encoding."""
    return locale.getpreferredencoding(False) or "utf-8"


@runtime_checkable
class CommandSource(Protocol):
    """Authoritative list of shell commands, as providers see it."""

    def command_names(self) -> Iterable[str]: ...

    def completes_commands(self, name: str) -> bool:
        """Whether the argument of command `name` is itself a command name."""
        ...


def filter_names(names: Iterable[str], partial: str) -> Iterator[str]:
    """Names starting with partial, hiding private names the way rlcompleter does.

    An empty partial hides names starting with "_"; a partial of "_" hides
    dunder names.
    """
    if partial == "":
        hidden = "_"
    elif partial == "_":
        hidden = "__"
    else:
        hidden = None
    for name in names:
        if name.startswith(partial) and not (hidden and name.startswith(hidden)):
            yield name


def command_candidates(commands: CommandSource, partial: str) -> list[str]:
    if not partial:
        return []
    return sorted(set(filter_names(commands.command_names(), partial)))


class CompletionProvider(ABC):
    """Base class for completion providers."""

    # Names that cannot be encoded in this are left out of the results.
    encoding: str

    @abstractmethod
    def candidates(
        self, preposing: str, target: str, postposing: str, context: EvaluationContext
    ) -> list[str]:
        """Completion candidates for target, given the surrounding text."""
        ...

    @abstractmethod
    def doc_namespace(
        self, preposing: str, target: str, postposing: str, context: EvaluationContext
    ) -> str | None:
        """Documentation identifier for the member target names, or None."""
        ...
