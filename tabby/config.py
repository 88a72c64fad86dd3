"""Shell configuration from TOML files and environment overrides.

Search order: ./tabby.toml, then ~/.config/tabby/config.toml. Environment
variables TABBY_COMPLETOR, TABBY_ENCODING and TABBY_DEBUG_LOG override
whatever the file says.

    completor = "type"          # or "regexp"; unset picks by Python version
    encoding = "utf-8"          # names not encodable in this are skipped
    debug_log = ".tabby/debug.log"
    preload_knowledge = true    # load signature data on a background thread
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tabby.completion.provider import CompletorKind, default_encoding
from tabby.exceptions import ConfigError

_ENV_KEYS = {
    "TABBY_COMPLETOR": "completor",
    "TABBY_ENCODING": "encoding",
    "TABBY_DEBUG_LOG": "debug_log",
}


class TabbyConfig(BaseModel):
    """Validated shell settings."""

    model_config = ConfigDict(extra="forbid")

    completor: CompletorKind | None = None
    encoding: str = Field(default_factory=default_encoding)
    debug_log: Path | None = None
    preload_knowledge: bool = True

    @field_validator("encoding")
    @classmethod
    def _check_encoding(cls, v: str) -> str:
        try:
            "".encode(v)
        except LookupError:
            raise ValueError(f"unknown text encoding: {v}")
        return v


def config_paths(cwd: Path | None = None) -> list[Path]:
    return [
        (cwd or Path.cwd()) / "tabby.toml",
        Path.home() / ".config" / "tabby" / "config.toml",
    ]


def read_config_file(path: Path) -> dict:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read {path}", cause=e)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML in {path}: {e}", cause=e)


def load_config(path: Path | None = None, *, environ: dict | None = None) -> TabbyConfig:
    """Load config from path (or the first existing default) plus env overrides."""
    environ = os.environ if environ is None else environ
    data: dict = {}
    if path is not None:
        data = read_config_file(path)
    else:
        for candidate in config_paths():
            if candidate.is_file():
                data = read_config_file(candidate)
                break
    for env_key, field in _ENV_KEYS.items():
        value = environ.get(env_key)
        if value:
            data[field] = value
    try:
        return TabbyConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}", cause=e)


def enable_debug_log(path: Path) -> logging.FileHandler:
    """Attach a FileHandler for the tabby logger hierarchy at DEBUG level."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(path))
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    ))
    root = logging.getLogger("tabby")
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    return handler


def disable_debug_log(handler: logging.FileHandler) -> None:
    """Close and remove a handler added by enable_debug_log()."""
    logging.getLogger("tabby").removeHandler(handler)
    handler.close()
