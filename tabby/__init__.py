"""Tabby: a Python REPL with pluggable, type-aware tab completion."""

from tabby.completion import (
    CompletionProvider,
    CompletorKind,
    EvaluationContext,
    KnowledgeBase,
    NamespaceContext,
    RegexpCompletor,
    TypeCompletor,
    build_completor,
)
from tabby.config import TabbyConfig, load_config
from tabby.exceptions import CommandError, ConfigError, KnowledgeBaseError, TabbyError

__all__ = [
    "CommandError",
    "CompletionProvider",
    "CompletorKind",
    "ConfigError",
    "EvaluationContext",
    "KnowledgeBase",
    "KnowledgeBaseError",
    "NamespaceContext",
    "RegexpCompletor",
    "TabbyConfig",
    "TabbyError",
    "TypeCompletor",
    "build_completor",
    "load_config",
]
