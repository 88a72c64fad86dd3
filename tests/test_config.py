"""Tests for configuration loading, debug logging, and provider selection."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tabby.completion import (
    CompletorKind,
    KnowledgeBase,
    RegexpCompletor,
    TypeCompletor,
    build_completor,
    default_completor_kind,
)
from tabby.config import TabbyConfig, disable_debug_log, enable_debug_log, load_config
from tabby.exceptions import ConfigError


class TestLoadConfig:
    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        config = load_config(environ={})
        assert config.completor is None
        assert config.preload_knowledge is True
        assert config.encoding

    def test_explicit_file(self, tmp_path):
        path = tmp_path / "tabby.toml"
        path.write_text('completor = "regexp"\nencoding = "ascii"\npreload_knowledge = false\n')
        config = load_config(path, environ={})
        assert config.completor is CompletorKind.REGEXP
        assert config.encoding == "ascii"
        assert config.preload_knowledge is False

    def test_file_in_working_directory(self, tmp_path, monkeypatch):
        (tmp_path / "tabby.toml").write_text('completor = "type"\n')
        monkeypatch.chdir(tmp_path)
        assert load_config(environ={}).completor is CompletorKind.TYPE

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "tabby.toml"
        path.write_text('completor = "type"\n')
        config = load_config(
            path, environ={"TABBY_COMPLETOR": "regexp", "TABBY_DEBUG_LOG": "dbg.log"}
        )
        assert config.completor is CompletorKind.REGEXP
        assert config.debug_log == Path("dbg.log")

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "tabby.toml"
        path.write_text('colour = "blue"\n')
        with pytest.raises(ConfigError, match="invalid configuration"):
            load_config(path, environ={})

    def test_bad_completor_value(self, tmp_path):
        path = tmp_path / "tabby.toml"
        path.write_text('completor = "magic"\n')
        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_unknown_encoding_from_environment(self, tmp_path):
        path = tmp_path / "tabby.toml"
        path.write_text("")
        with pytest.raises(ConfigError, match="unknown text encoding: bogus"):
            load_config(path, environ={"TABBY_ENCODING": "bogus"})

    def test_binary_codec_rejected(self, tmp_path):
        path = tmp_path / "tabby.toml"
        path.write_text('encoding = "hex"\n')
        with pytest.raises(ConfigError, match="unknown text encoding"):
            load_config(path, environ={})

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "tabby.toml"
        path.write_text("completor = \n")
        with pytest.raises(ConfigError, match="invalid TOML") as exc_info:
            load_config(path, environ={})
        assert exc_info.value.__cause__ is not None


def test_debug_log_writes_tabby_records(tmp_path):
    path = tmp_path / "logs" / "debug.log"
    handler = enable_debug_log(path)
    try:
        logging.getLogger("tabby.completion.typed").debug("receiver inferred")
    finally:
        disable_debug_log(handler)
    text = path.read_text()
    assert "[tabby.completion.typed] receiver inferred" in text
    assert handler not in logging.getLogger("tabby").handlers


class TestBuildCompletor:
    def test_default_kind_by_version(self):
        assert default_completor_kind((3, 12)) is CompletorKind.TYPE
        assert default_completor_kind((3, 13)) is CompletorKind.TYPE
        assert default_completor_kind((3, 11)) is CompletorKind.REGEXP

    def test_none_follows_version_default(self, registry, knowledge):
        provider = build_completor(None, registry, knowledge=knowledge)
        expected = TypeCompletor if default_completor_kind() is CompletorKind.TYPE else RegexpCompletor
        assert type(provider) is expected

    def test_regexp(self, registry):
        assert isinstance(build_completor(CompletorKind.REGEXP, registry), RegexpCompletor)

    def test_type(self, registry, knowledge):
        provider = build_completor(CompletorKind.TYPE, registry, knowledge=knowledge, encoding="ascii")
        assert isinstance(provider, TypeCompletor)
        assert provider.encoding == "ascii"

    def test_type_loads_synchronously_without_background(self, registry, tmp_path):
        path = tmp_path / "sigs.toml"
        path.write_text('[functions]\nchr = "str"\n')
        kb = KnowledgeBase(path)
        build_completor(CompletorKind.TYPE, registry, knowledge=kb, background=False)
        assert kb.loaded

    def test_missing_knowledge_falls_back_to_regexp(self, registry, tmp_path, caplog):
        kb = KnowledgeBase(tmp_path / "missing.toml")
        with caplog.at_level(logging.WARNING, logger="tabby.completion"):
            provider = build_completor(CompletorKind.TYPE, registry, knowledge=kb)
        assert isinstance(provider, RegexpCompletor)
        assert "type completion unavailable" in caplog.text

    def test_background_load_failure_switches_to_regexp(self, registry, context, tmp_path, caplog):
        path = tmp_path / "sigs.toml"
        path.write_text("not = [valid")
        kb = KnowledgeBase(path)
        provider = build_completor(CompletorKind.TYPE, registry, knowledge=kb)
        assert isinstance(provider, TypeCompletor)
        assert not kb.wait(5)
        with caplog.at_level(logging.WARNING, logger="tabby.completion"):
            assert "bit_length" in provider.candidates("num.", "bit_", "", context)
        assert isinstance(provider.fallback, RegexpCompletor)
        assert "type completion unavailable" in caplog.text
        assert provider.doc_namespace("num.", "bit_length", "", context) == "int#bit_length"


def test_config_model_rejects_extra_fields():
    with pytest.raises(ValueError):
        TabbyConfig(colour="blue")
