"""Tabby CLI - Python REPL with type-aware tab completion.

Commands:
    tabby repl                      Start the interactive shell
    tabby complete PREPOSING TARGET Print completion candidates, one per line
    tabby doc PREPOSING TARGET      Print the doc namespace for TARGET
    tabby info                      Show configuration and provider details
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from tabby.completion import CompletionProvider, CompletorKind, NamespaceContext, build_completor
from tabby.config import TabbyConfig, disable_debug_log, enable_debug_log, load_config
from tabby.exceptions import TabbyError
from tabby.repl.commands import default_registry
from tabby.repl.exec import async_exec
from tabby.repl.namespace import seed

app = typer.Typer(
    name="tabby",
    help="Python REPL with type-aware tab completion",
    no_args_is_help=True,
)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Config file (default: ./tabby.toml, ~/.config/tabby/config.toml)"),
]
CompletorOption = Annotated[
    Optional[CompletorKind],
    typer.Option("--completor", help="Completion provider; overrides the config"),
]
SetupOption = Annotated[
    Optional[str],
    typer.Option("--setup", "-s", help="Python code run in the namespace first, e.g. 'num = 1'"),
]
PostposingOption = Annotated[
    str,
    typer.Option("--postposing", "-p", help="Text after the cursor"),
]


def _load(config_path: Path | None, completor: CompletorKind | None) -> TabbyConfig:
    try:
        config = load_config(config_path)
    except TabbyError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if completor is not None:
        config = config.model_copy(update={"completor": completor})
    return config


def _provider(
    config: TabbyConfig, setup: str | None
) -> tuple[CompletionProvider, NamespaceContext]:
    namespace = seed()
    if setup:
        try:
            asyncio.run(async_exec(setup, namespace))
        except Exception as e:
            raise typer.BadParameter(f"setup code failed: {e}", param_hint="--setup")
    provider = build_completor(
        config.completor, default_registry(), encoding=config.encoding, background=False
    )
    return provider, NamespaceContext(namespace)


@app.command("repl")
def repl(config_path: ConfigOption = None, completor: CompletorOption = None):
    """Start the interactive shell."""
    from tabby.repl import launch

    config = _load(config_path, completor)
    handler = enable_debug_log(config.debug_log) if config.debug_log else None
    try:
        launch(config)
    finally:
        if handler is not None:
            disable_debug_log(handler)


@app.command("complete")
def complete(
    preposing: Annotated[str, typer.Argument(help="Text before the target")],
    target: Annotated[str, typer.Argument(help="Fragment being completed")] = "",
    postposing: PostposingOption = "",
    setup: SetupOption = None,
    config_path: ConfigOption = None,
    completor: CompletorOption = None,
):
    """Print completion candidates, one per line."""
    provider, context = _provider(_load(config_path, completor), setup)
    for candidate in provider.candidates(preposing, target, postposing, context):
        typer.echo(candidate)


@app.command("doc")
def doc(
    preposing: Annotated[str, typer.Argument(help="Text before the target")],
    target: Annotated[str, typer.Argument(help="Fragment being documented")],
    postposing: PostposingOption = "",
    setup: SetupOption = None,
    config_path: ConfigOption = None,
    completor: CompletorOption = None,
):
    """Print the doc namespace (Type#member or Type.member) for TARGET."""
    provider, context = _provider(_load(config_path, completor), setup)
    namespace = provider.doc_namespace(preposing, target, postposing, context)
    if namespace is None:
        typer.echo("No documentation namespace found.", err=True)
        raise typer.Exit(1)
    typer.echo(namespace)


@app.command("info")
def info(config_path: ConfigOption = None, completor: CompletorOption = None):
    """Show configuration and provider details."""
    config = _load(config_path, completor)
    provider, _ = _provider(config, None)
    typer.echo(f"Python:     {sys.version.split()[0]}")
    typer.echo(f"Provider:   {provider!r}")
    typer.echo(f"Encoding:   {config.encoding}")
    typer.echo(f"Debug log:  {config.debug_log or '-'}")
    typer.echo(f"Preload:    {'yes' if config.preload_knowledge else 'no'}")


def main():
    app()


if __name__ == "__main__":
    main()
