"""Async Python execution with top-level await and stdout capture."""

from __future__ import annotations

import ast
import asyncio
import sys
import types
from contextlib import redirect_stdout
from io import StringIO

MODULE_NAME = "<tabby>"


def _register_module(namespace: dict) -> None:
    """Expose the namespace as the <tabby> module.

    Classes defined at the prompt get __module__ == "<tabby>", so
    typing.get_type_hints can resolve their annotations through sys.modules.
    """
    namespace.setdefault("__name__", MODULE_NAME)
    module = sys.modules.get(MODULE_NAME)
    if module is None:
        module = sys.modules[MODULE_NAME] = types.ModuleType(MODULE_NAME)
    module.__dict__.update(namespace)


def _bind_last_expression(tree: ast.Module) -> bool:
    """Rewrite a trailing expression statement into `_ = <expr>`."""
    if not tree.body or not isinstance(tree.body[-1], ast.Expr):
        return False
    last = tree.body[-1]
    tree.body[-1] = ast.copy_location(
        ast.Assign(targets=[ast.Name(id="_", ctx=ast.Store())], value=last.value),
        last,
    )
    ast.fix_missing_locations(tree)
    return True


async def async_exec(code: str, namespace: dict) -> tuple[object | None, str]:
    """Run code in namespace, allowing top-level await.

    Returns (result, stdout): result is the value of a trailing expression
    (also stored as `_`), or None.
    """
    tree = ast.parse(code, mode="exec")
    has_result = _bind_last_expression(tree)

    _register_module(namespace)
    compiled = compile(tree, MODULE_NAME, "exec", flags=ast.PyCF_ALLOW_TOP_LEVEL_AWAIT)
    fn = types.FunctionType(compiled, namespace)

    buf = StringIO()
    with redirect_stdout(buf):
        pending = fn()
        if asyncio.iscoroutine(pending):
            await pending
    _register_module(namespace)

    return (namespace.get("_") if has_result else None), buf.getvalue()
