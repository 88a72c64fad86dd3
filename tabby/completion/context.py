"""Evaluation context: what a completion provider may know about the session.

Providers only see this capability, never the raw namespace, so the
analysis stays independent of how the shell stores its variables.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


@runtime_checkable
class EvaluationContext(Protocol):
    """Read-only view of a scope.

    local_names()      -- names bound in the scope
    lookup_local(name) -- the bound value, or MISSING
    receiver()         -- object whose members are also in scope (like self), or None
    """

    def local_names(self) -> Iterable[object]: ...

    def lookup_local(self, name: str) -> object: ...

    def receiver(self) -> object | None: ...


class NamespaceContext:
    """EvaluationContext over a REPL namespace dict."""

    def __init__(self, namespace: dict, receiver: object | None = None) -> None:
        self._ns = namespace
        self._receiver = receiver

    def local_names(self) -> Iterable[object]:
        return list(self._ns)

    def lookup_local(self, name: str) -> object:
        return self._ns.get(name, MISSING)

    def receiver(self) -> object | None:
        return self._receiver

    def __repr__(self) -> str:
        return f"NamespaceContext({len(self._ns)} names)"
