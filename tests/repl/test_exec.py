"""Tests for async_exec expression capture and stdout behavior."""

from __future__ import annotations

import asyncio
import sys
import typing

import pytest

from tabby.repl.exec import MODULE_NAME, async_exec


@pytest.mark.asyncio
async def test_expr_returns_value():
    ns = {}
    result, stdout = await async_exec("1 + 1", ns)
    assert result == 2
    assert stdout == ""
    assert ns["_"] == 2


@pytest.mark.asyncio
async def test_assignment_returns_none():
    ns = {}
    result, stdout = await async_exec("x = 42", ns)
    assert result is None
    assert ns["x"] == 42


@pytest.mark.asyncio
async def test_for_loop_with_print_captures_stdout():
    ns = {}
    result, stdout = await async_exec("for i in range(3): print(i)", ns)
    assert result is None
    assert stdout == "0\n1\n2\n"


@pytest.mark.asyncio
async def test_top_level_await():
    ns = {"asyncio": asyncio}
    result, stdout = await async_exec("await asyncio.sleep(0) or 'done'", ns)
    assert result == "done"
    assert ns["_"] == "done"


@pytest.mark.asyncio
async def test_multiline_last_expression():
    ns = {}
    result, _ = await async_exec("a = 2\nb = 3\na * b", ns)
    assert result == 6


@pytest.mark.asyncio
async def test_exception_propagates_and_restores_stdout():
    ns = {}
    stdout = sys.stdout
    with pytest.raises(ZeroDivisionError):
        await async_exec("print('x'); 1 / 0", ns)
    assert sys.stdout is stdout


@pytest.mark.asyncio
async def test_syntax_error_propagates():
    with pytest.raises(SyntaxError):
        await async_exec("def", {})


@pytest.mark.asyncio
async def test_classes_resolve_annotations_through_module():
    ns = {}
    await async_exec(
        "class Item:\n    name: str\nclass Box:\n    item: 'Item'\n", ns
    )
    box = ns["Box"]
    assert box.__module__ == MODULE_NAME
    assert typing.get_type_hints(box)["item"] is ns["Item"]
