"""Tests for RegexpCompletor, the rlcompleter-based fallback provider."""

from __future__ import annotations

import pytest

from tabby.completion import NamespaceContext, RegexpCompletor


@pytest.fixture
def regexp(registry):
    return RegexpCompletor(registry, encoding="utf-8")


def test_member_completion(regexp, context):
    assert "bit_length" in regexp.candidates("num.", "bit_", "", context)


def test_dotted_target(regexp, context):
    assert "num.bit_length" in regexp.candidates("", "num.bit_", "", context)


def test_global_names(regexp, context):
    result = regexp.candidates("", "nu", "", context)
    assert "num" in result
    assert result == sorted(result)


def test_builtins_without_call_paren(regexp, context):
    assert "print" in regexp.candidates("", "pri", "", context)


def test_line_start_includes_commands(regexp, context):
    assert "show_source" in regexp.candidates("", "show_s", "", context)
    assert "show_source" not in regexp.candidates("x; ", "show_s", "", context)


def test_after_newline_excludes_commands(regexp, context):
    assert "show_source" not in regexp.candidates("\n", "show_s", "", context)


def test_command_word_on_earlier_line(regexp, ns):
    ns["some_var"] = 1
    result = regexp.candidates("help\n", "s", "", NamespaceContext(ns))
    assert "some_var" in result
    assert "show_source" not in result


def test_command_argument(regexp, ns):
    ns["some_var"] = 1
    result = regexp.candidates("help ", "s", "", NamespaceContext(ns))
    assert "show_source" in result
    assert "some_var" not in result


def test_empty_target_gives_nothing(regexp, context):
    assert regexp.candidates("x = ", "", "", context) == []


def test_non_name_receiver_gives_nothing(regexp, context):
    assert regexp.candidates("foo().", "", "", context) == []
    assert regexp.candidates("foo().", "bar", "", context) == []


def test_malformed_target(regexp, context):
    assert regexp.candidates("(", ")", "", context) == []
    assert regexp.doc_namespace("(", ")", "", context) is None


def test_bad_names(regexp):
    context = NamespaceContext({b"raw": 1, "b\udcff": 2, "bar": 3})
    result = regexp.candidates("", "b", "", context)
    assert "bool" in result
    assert "bar" in result
    assert None not in result


def test_doc_namespace(regexp, ns):
    ns["word"] = "hi"
    context = NamespaceContext(ns)
    assert regexp.doc_namespace("word.", "upper", "", context) == "str#upper"
    assert regexp.doc_namespace("", "word.upper", "", context) == "str#upper"


def test_doc_namespace_receiver_error(regexp, context):
    assert regexp.doc_namespace("missing.", "upper", "", context) is None
