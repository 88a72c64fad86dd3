"""Tabby: async Python REPL with pluggable completion."""

from __future__ import annotations

import asyncio

from tabby.config import TabbyConfig
from tabby.repl.shell import TabbyShell


def launch(config: TabbyConfig | None = None) -> None:
    """Start the tabby REPL."""
    asyncio.run(TabbyShell(config).run())


__all__ = ["TabbyShell", "launch"]
