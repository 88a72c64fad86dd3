"""Shared fixtures: a loaded knowledge base and the built-in command registry."""

from __future__ import annotations

import pytest

from tabby.completion import KnowledgeBase, NamespaceContext, TypeCompletor
from tabby.repl.commands import default_registry


@pytest.fixture(scope="session")
def knowledge():
    kb = KnowledgeBase()
    kb.load()
    return kb


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def completor(registry, knowledge):
    return TypeCompletor(registry, knowledge, encoding="utf-8")


@pytest.fixture
def ns():
    return {"__builtins__": __builtins__, "num": 1}


@pytest.fixture
def context(ns):
    return NamespaceContext(ns)
