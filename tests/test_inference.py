"""Tests for TypeInferrer and annotation conversion."""

from __future__ import annotations

import typing
from typing import Annotated, Optional, Union

import pytest

from tabby.completion import NamespaceContext
from tabby.completion.inference import TypeInferrer, hint_to_ref
from tabby.completion.typerefs import InstanceOf, MethodRef, Singleton


class Node:
    parent: Optional[Node] = None

    def clone(self) -> typing.Self:
        return self

    @classmethod
    def make(cls) -> Node:
        return cls()


@pytest.fixture
def inferrer(knowledge):
    ns = {"num": 1, "word": "hi", "Node": Node, "node": Node(), "items": ["a", "b"]}
    return TypeInferrer(NamespaceContext(ns), knowledge)


class TestHintToRef:
    def test_plain_class(self):
        assert hint_to_ref(int) == InstanceOf(int)

    def test_optional_unwraps(self):
        assert hint_to_ref(Optional[int]) == InstanceOf(int)

    def test_ambiguous_union_is_unknown(self):
        assert hint_to_ref(Union[int, str]) is None

    def test_annotated_unwraps(self):
        assert hint_to_ref(Annotated[str, "meta"]) == InstanceOf(str)

    def test_generic_alias_keeps_arguments(self):
        assert hint_to_ref(list[str]) == InstanceOf(list, (InstanceOf(str),))

    def test_none(self):
        assert hint_to_ref(None) == InstanceOf(type(None))

    def test_string_annotation_is_unknown(self):
        assert hint_to_ref("Node") is None


class TestInfer:
    @pytest.mark.parametrize(
        "source, expected",
        [
            ("num", InstanceOf(int)),
            ("'x'", InstanceOf(str)),
            ("num == 2", InstanceOf(bool)),
            ("not num", InstanceOf(bool)),
            ("-num", InstanceOf(int)),
            ("num / 2", InstanceOf(float)),
            ("word.upper()", InstanceOf(str)),
            ("word.split()[0]", InstanceOf(str)),
            ("items[0]", InstanceOf(str)),
            ("items[1:]", InstanceOf(list, (InstanceOf(str),))),
            ("len(items)", InstanceOf(int)),
            ("max(items)", InstanceOf(str)),
            ("(1, 'a')", InstanceOf(tuple, (InstanceOf(int),))),
            ("{w: 1 for w in items}", InstanceOf(dict, (InstanceOf(str), InstanceOf(int)))),
            ("f'{num}'", InstanceOf(str)),
            ("num if word else 0", InstanceOf(int)),
            ("open('f').readline()", InstanceOf(str)),
        ],
    )
    def test_expressions(self, inferrer, source, expected):
        assert inferrer.infer_source(source) == expected

    def test_class_is_singleton(self, inferrer):
        assert inferrer.infer_source("Node") == Singleton(Node)

    def test_constructor_call(self, inferrer):
        assert inferrer.infer_source("Node()").cls is Node

    def test_classmethod_return_annotation(self, inferrer):
        assert inferrer.infer_source("Node.make()") == InstanceOf(Node)

    def test_self_return_annotation(self, inferrer):
        assert inferrer.infer_source("node.clone()").cls is Node

    def test_field_annotation(self, inferrer):
        assert inferrer.infer_source("node.parent") == InstanceOf(Node)

    def test_uncalled_method(self, inferrer):
        ref = inferrer.infer_source("word.upper")
        assert isinstance(ref, MethodRef)
        assert ref.name == "upper"

    def test_unknown_name(self, inferrer):
        assert inferrer.infer_source("missing_name.attr") is None

    def test_syntax_error(self, inferrer):
        assert inferrer.infer_source("a +") is None


class TestBindStatements:
    def test_assign_and_annassign(self, inferrer):
        inferrer.bind_statements(["a = word.upper()", "b: int", "c: float = 1.0"])
        assert inferrer.lookup_name("a") == InstanceOf(str)
        assert inferrer.lookup_name("b") == InstanceOf(int)
        assert inferrer.lookup_name("c") == InstanceOf(float)

    def test_later_binding_shadows_context(self, inferrer):
        inferrer.bind_statements(["num = 'now a string'"])
        assert inferrer.lookup_name("num") == InstanceOf(str)

    def test_import_of_unloaded_module_binds_nothing_known(self, inferrer):
        inferrer.bind_statements(["import not_a_loaded_module_xyz as m"])
        assert inferrer.lookup_name("m") is None

    def test_from_import(self, inferrer):
        inferrer.bind_statements(["from os import path"])
        ref = inferrer.lookup_name("path")
        assert isinstance(ref, Singleton)

    def test_unparseable_statement_is_skipped(self, inferrer):
        inferrer.bind_statements(["x = (", "y = 1"])
        assert inferrer.lookup_name("y") == InstanceOf(int)
        assert "x" not in list(inferrer.bound_names())
