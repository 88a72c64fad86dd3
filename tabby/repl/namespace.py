"""REPL namespace seeding.

seed() builds the initial namespace dict; summarize() gives the one-line
description `ls` prints next to each entry.
"""

from __future__ import annotations

import asyncio
import inspect
import os
import re
import sys
import textwrap
from pathlib import Path

from tabby.repl.exec import MODULE_NAME

# Objects pre-loaded into the REPL namespace.
_PRELOADED = {
    "asyncio": asyncio,
    "os": os,
    "re": re,
    "sys": sys,
    "Path": Path,
}


def seed(extra: dict | None = None) -> dict:
    """Build the initial REPL namespace."""
    ns: dict = {"__builtins__": __builtins__, "__name__": MODULE_NAME}
    ns.update(_PRELOADED)
    if extra:
        ns.update(extra)
    return ns


def summarize(obj: object) -> str:
    """One-line summary for namespace listing."""
    if isinstance(obj, type):
        doc = inspect.getdoc(obj)
        return doc.splitlines()[0] if doc else obj.__name__
    if inspect.ismodule(obj):
        return obj.__name__
    if inspect.isroutine(obj):
        return getattr(obj, "__qualname__", None) or repr(obj)
    return textwrap.shorten(repr(obj), width=60)
