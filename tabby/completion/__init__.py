"""Pluggable completion providers and provider selection."""

from __future__ import annotations

import logging

from tabby.completion.context import MISSING, EvaluationContext, NamespaceContext
from tabby.completion.knowledge import KnowledgeBase, default_knowledge
from tabby.completion.provider import (
    CommandSource,
    CompletionProvider,
    CompletorKind,
    default_completor_kind,
    default_encoding,
)
from tabby.completion.regexp import RegexpCompletor
from tabby.completion.typed import TypeCompletor
from tabby.exceptions import KnowledgeBaseError

logger = logging.getLogger(__name__)


def build_completor(
    kind: CompletorKind | None,
    commands: CommandSource,
    *,
    knowledge: KnowledgeBase | None = None,
    encoding: str | None = None,
    background: bool = True,
) -> CompletionProvider:
    """Build the session's provider.

    kind=None picks the default for the running Python. The type provider
    needs its knowledge base; when that cannot be loaded the regexp
    provider is used instead.
    """
    kind = kind or default_completor_kind()
    if kind is CompletorKind.REGEXP:
        return RegexpCompletor(commands, encoding=encoding)

    knowledge = knowledge or default_knowledge()
    try:
        if not knowledge.loaded:
            if background and knowledge.available():
                knowledge.load_in_background()
            else:
                knowledge.load()
    except KnowledgeBaseError as e:
        logger.warning("type completion unavailable, using regexp completion: %s", e)
        return RegexpCompletor(commands, encoding=encoding)
    return TypeCompletor(commands, knowledge, encoding=encoding)


__all__ = [
    "MISSING",
    "CommandSource",
    "CompletionProvider",
    "CompletorKind",
    "EvaluationContext",
    "KnowledgeBase",
    "NamespaceContext",
    "RegexpCompletor",
    "TypeCompletor",
    "build_completor",
    "default_completor_kind",
    "default_encoding",
    "default_knowledge",
]
