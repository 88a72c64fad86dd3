"""prompt_toolkit Completer backed by a completion provider.

The provider sees the input split around the identifier fragment in front
of the cursor; whatever it answers replaces that fragment.
"""

from __future__ import annotations

import re
from typing import Iterator

from prompt_toolkit.completion import CompleteEvent, Completer, Completion
from prompt_toolkit.document import Document

from tabby.completion import CompletionProvider, EvaluationContext

_TRAILING_WORD = re.compile(r"(?:[^\W\d]\w*)?\Z")
_LEADING_WORD = re.compile(r"\w*")


def split_at_cursor(document: Document) -> tuple[str, str, str]:
    """(preposing, target, postposing) for the fragment ending at the cursor."""
    before = document.text_before_cursor
    target = _TRAILING_WORD.search(before).group(0)
    return before[: len(before) - len(target)], target, document.text_after_cursor


def split_word_at_cursor(document: Document) -> tuple[str, str, str]:
    """Like split_at_cursor, but the target runs on over identifier characters after the cursor."""
    preposing, target, postposing = split_at_cursor(document)
    rest = _LEADING_WORD.match(postposing).group(0)
    return preposing, target + rest, postposing[len(rest):]


class ProviderCompleter(Completer):
    """Tab completion through a CompletionProvider."""

    def __init__(self, provider: CompletionProvider, context: EvaluationContext) -> None:
        self.provider = provider
        self.context = context

    def get_completions(
        self, document: Document, complete_event: CompleteEvent
    ) -> Iterator[Completion]:
        preposing, target, postposing = split_at_cursor(document)
        # While typing, only pop up after a name fragment or a member dot.
        if not (target or preposing.endswith(".") or complete_event.completion_requested):
            return
        for candidate in self.provider.candidates(preposing, target, postposing, self.context):
            yield Completion(candidate, start_position=-len(target))
