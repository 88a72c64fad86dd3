"""RegexpCompletor: rlcompleter over the live namespace.

The fallback provider. It matches the dotted word in front of the cursor
and, like rlcompleter, evaluates the receiver part to list its attributes,
so it can run user code. TypeCompletor avoids that.
"""

from __future__ import annotations

import logging
import re
import rlcompleter

from tabby.completion.context import EvaluationContext
from tabby.completion.provider import (
    CommandSource,
    CompletionProvider,
    command_candidates,
    default_encoding,
)
from tabby.completion.scanner import TARGET_RE, scan
from tabby.completion.typerefs import iter_names, type_of_value

logger = logging.getLogger(__name__)

_DOTTED_TAIL = re.compile(r"(?:[^\W\d]\w*\.)*(?:[^\W\d]\w*)?\Z")
_LEADING_COMMAND = re.compile(r"\s*([^\W\d]\w*)\s+\Z")


class RegexpCompletor(CompletionProvider):
    """Tab completion on a live namespace via rlcompleter."""

    def __init__(self, commands: CommandSource, *, encoding: str | None = None) -> None:
        self.commands = commands
        self.encoding = encoding or default_encoding()

    def _namespace(self, context: EvaluationContext) -> dict:
        ns = {}
        for name in iter_names(context.local_names, self.encoding):
            ns[name] = context.lookup_local(name)
        return ns

    def _word(self, preposing: str, target: str) -> str | None:
        if not TARGET_RE.fullmatch(target):
            return None
        return _DOTTED_TAIL.search(preposing + target).group(0)

    def candidates(
        self, preposing: str, target: str, postposing: str, context: EvaluationContext
    ) -> list[str]:
        word = self._word(preposing, target)
        if word is None:
            return []
        first = not scan(preposing).statements
        leading = _LEADING_COMMAND.fullmatch(preposing) if first else None
        if leading and self.commands.completes_commands(leading.group(1)):
            return command_candidates(self.commands, target)
        if not word or (preposing + target)[: -len(word)].endswith("."):
            return []
        completer = rlcompleter.Completer(self._namespace(context))
        matches = []
        i = 0
        while (match := completer.complete(word, i)) is not None:
            matches.append(match.rstrip("(: "))
            i += 1
        # rlcompleter completes the whole dotted word; hand back the target's share
        cut = len(word) - len(target)
        found = {m[cut:] for m in iter_names(lambda: matches, self.encoding) if len(m) > cut}
        if first and not preposing.strip():
            found.update(command_candidates(self.commands, target))
        return sorted(found)

    def doc_namespace(
        self, preposing: str, target: str, postposing: str, context: EvaluationContext
    ) -> str | None:
        word = self._word(preposing, target)
        if not word:
            return None
        expr, dot, member = word.rpartition(".")
        if not dot or not member:
            return None
        try:
            value = eval(expr, self._namespace(context))
        except Exception as e:
            logger.debug("cannot evaluate receiver %r: %r", expr, e)
            return None
        return type_of_value(value).doc_namespace(member)

    def __repr__(self) -> str:
        return f"RegexpCompletor(encoding={self.encoding!r})"
