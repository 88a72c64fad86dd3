"""Static type inference for completion receivers.

TypeInferrer walks an ast expression and answers a TypeRef without
evaluating it. Sources, in order: names assigned earlier in the same input,
live values bound in the evaluation context (by type only), builtins, the
knowledge base, and annotations of user code read with get_type_hints().
Anything it cannot work out is None.
"""

from __future__ import annotations

import ast
import builtins
import inspect
import logging
import sys
import textwrap
import types
import typing
from typing import Iterable, Iterator, Sequence

from tabby.completion.context import MISSING, EvaluationContext
from tabby.completion.knowledge import KnowledgeBase
from tabby.completion.typerefs import (
    InstanceOf,
    MethodRef,
    Singleton,
    TypeRef,
    iter_names,
    type_of_value,
)

logger = logging.getLogger(__name__)

_BINOP_METHODS = {
    ast.Add: "__add__",
    ast.Sub: "__sub__",
    ast.Mult: "__mul__",
    ast.MatMult: "__matmul__",
    ast.Div: "__truediv__",
    ast.FloorDiv: "__floordiv__",
    ast.Mod: "__mod__",
    ast.Pow: "__pow__",
    ast.LShift: "__lshift__",
    ast.RShift: "__rshift__",
    ast.BitOr: "__or__",
    ast.BitXor: "__xor__",
    ast.BitAnd: "__and__",
}

_UNARY_METHODS = {
    ast.USub: "__neg__",
    ast.UAdd: "__pos__",
    ast.Invert: "__invert__",
}

_UNION_TYPES = (typing.Union, types.UnionType)

# Raised by ast.parse and the recursive walk on deeply nested input
_TOO_DEEP = (RecursionError, MemoryError)


def _return_hint(func: object) -> object:
    try:
        return typing.get_type_hints(func).get("return", MISSING)
    except Exception as e:
        logger.debug("no return annotation for %r: %r", func, e)
        return MISSING


def _field_hint(cls: type, name: str) -> object:
    try:
        return typing.get_type_hints(cls).get(name, MISSING)
    except Exception as e:
        logger.debug("no field annotations for %r: %r", cls, e)
        return MISSING


def hint_to_ref(hint: object, owner: InstanceOf | None = None) -> TypeRef | None:
    """Convert a resolved annotation to a TypeRef."""
    if hint is MISSING or isinstance(hint, (str, typing.ForwardRef)):
        return None
    if hint is None or hint is type(None):
        return InstanceOf(type(None))
    if hint is typing.Self:
        return owner
    origin = typing.get_origin(hint)
    if origin in _UNION_TYPES:
        options = [a for a in typing.get_args(hint) if a is not type(None)]
        return hint_to_ref(options[0], owner) if len(options) == 1 else None
    if origin is typing.Annotated:
        return hint_to_ref(typing.get_args(hint)[0], owner)
    if isinstance(origin, type):
        args = tuple(hint_to_ref(a, owner) for a in typing.get_args(hint) if a is not Ellipsis)
        if any(a is None for a in args):
            args = ()
        return InstanceOf(origin, args)
    if isinstance(hint, type):
        return InstanceOf(hint)
    return None


def _unwrap(raw: object) -> object:
    if isinstance(raw, (staticmethod, classmethod)):
        return raw.__func__
    return raw


class TypeInferrer:
    """Infers TypeRefs for expressions against one evaluation context."""

    def __init__(
        self,
        context: EvaluationContext,
        knowledge: KnowledgeBase,
        *,
        bindings: dict[str, TypeRef | None] | None = None,
    ) -> None:
        self.context = context
        self.knowledge = knowledge
        self.bindings: dict[str, TypeRef | None] = dict(bindings or {})

    def child(self, bindings: dict[str, TypeRef | None]) -> TypeInferrer:
        """Inferrer for a nested scope (comprehension) seeing extra bindings."""
        return TypeInferrer(self.context, self.knowledge, bindings={**self.bindings, **bindings})

    # --- statements ---

    def bind_statements(self, statements: Iterable[str]) -> None:
        """Record names assigned by earlier complete statements."""
        for stmt in statements:
            source = textwrap.dedent(stmt).strip()
            if not source:
                continue
            try:
                tree = ast.parse(source)
            except SyntaxError:
                logger.debug("skipping unparseable statement %r", source)
                continue
            except _TOO_DEEP as e:
                logger.debug("skipping statement too deep to parse: %r", e)
                continue
            try:
                for node in tree.body:
                    self._bind(node)
            except _TOO_DEEP as e:
                logger.debug("statement too deep to bind: %r", e)

    def _bind(self, node: ast.stmt) -> None:
        if isinstance(node, ast.Assign):
            ref = self.infer(node.value)
            for target in node.targets:
                if isinstance(target, ast.Name):
                    self.bindings[target.id] = ref
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            ref = self.infer(node.value) if node.value is not None else None
            if ref is None:
                ref = self._annotation(node.annotation)
            self.bindings[node.target.id] = ref
        elif isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    module = sys.modules.get(alias.name)
                    self.bindings[alias.asname] = Singleton(module) if module else None
                else:
                    top = alias.name.partition(".")[0]
                    module = sys.modules.get(top)
                    self.bindings[top] = Singleton(module) if module else None
        elif isinstance(node, ast.ImportFrom) and node.module and not node.level:
            module = sys.modules.get(node.module)
            for alias in node.names:
                if alias.name == "*":
                    continue
                value = vars(module).get(alias.name, MISSING) if module else MISSING
                name = alias.asname or alias.name
                self.bindings[name] = None if value is MISSING else type_of_value(value)

    def _annotation(self, node: ast.expr) -> TypeRef | None:
        ref = self.infer(node)
        if isinstance(ref, Singleton) and isinstance(ref.obj, type):
            return InstanceOf(ref.obj)
        return None

    # --- names ---

    def bound_names(self) -> Iterator[str]:
        yield from self.bindings

    def lookup_name(self, name: str) -> TypeRef | None:
        if name in self.bindings:
            return self.bindings[name]
        value = self.context.lookup_local(name)
        if value is not MISSING:
            return type_of_value(value)
        value = getattr(builtins, name, MISSING)
        if value is not MISSING:
            return type_of_value(value)
        return None

    # --- expressions ---

    def infer_source(self, source: str) -> TypeRef | None:
        try:
            tree = ast.parse(source.strip(), mode="eval")
        except SyntaxError:
            logger.debug("unparseable receiver %r", source)
            return None
        except _TOO_DEEP as e:
            logger.debug("receiver too deep to parse: %r", e)
            return None
        try:
            return self.infer(tree.body)
        except _TOO_DEEP as e:
            logger.debug("receiver too deep to infer: %r", e)
            return None

    def infer(self, node: ast.expr) -> TypeRef | None:
        method = getattr(self, f"_infer_{type(node).__name__}", None)
        if method is None:
            return None
        return method(node)

    def _infer_Name(self, node: ast.Name) -> TypeRef | None:
        return self.lookup_name(node.id)

    def _infer_Constant(self, node: ast.Constant) -> TypeRef | None:
        return InstanceOf(type(node.value))

    def _infer_JoinedStr(self, node: ast.JoinedStr) -> TypeRef | None:
        return InstanceOf(str)

    def _infer_Compare(self, node: ast.Compare) -> TypeRef | None:
        return InstanceOf(bool)

    def _infer_BoolOp(self, node: ast.BoolOp) -> TypeRef | None:
        return self.infer(node.values[-1])

    def _infer_IfExp(self, node: ast.IfExp) -> TypeRef | None:
        return self.infer(node.body) or self.infer(node.orelse)

    def _infer_NamedExpr(self, node: ast.NamedExpr) -> TypeRef | None:
        return self.infer(node.value)

    def _infer_UnaryOp(self, node: ast.UnaryOp) -> TypeRef | None:
        if isinstance(node.op, ast.Not):
            return InstanceOf(bool)
        operand = self.infer(node.operand)
        return self.call(self.attribute(operand, _UNARY_METHODS[type(node.op)]), ()) or operand

    def _infer_BinOp(self, node: ast.BinOp) -> TypeRef | None:
        left = self.infer(node.left)
        method = self.attribute(left, _BINOP_METHODS[type(node.op)])
        return self.call(method, (self.infer(node.right),))

    def _sequence(self, cls: type, elts: Sequence[ast.expr]) -> TypeRef:
        for elt in elts:
            if isinstance(elt, ast.Starred):
                continue
            ref = self.infer(elt)
            return InstanceOf(cls, (ref,)) if ref else InstanceOf(cls)
        return InstanceOf(cls)

    def _infer_List(self, node: ast.List) -> TypeRef | None:
        return self._sequence(list, node.elts)

    def _infer_Tuple(self, node: ast.Tuple) -> TypeRef | None:
        return self._sequence(tuple, node.elts)

    def _infer_Set(self, node: ast.Set) -> TypeRef | None:
        return self._sequence(set, node.elts)

    def _infer_Dict(self, node: ast.Dict) -> TypeRef | None:
        for key, value in zip(node.keys, node.values):
            if key is None:
                continue
            k, v = self.infer(key), self.infer(value)
            return InstanceOf(dict, (k, v)) if k and v else InstanceOf(dict)
        return InstanceOf(dict)

    def _comprehension_scope(self, generators: list[ast.comprehension]) -> TypeInferrer | None:
        scope = self
        for gen in generators:
            if not isinstance(gen.target, ast.Name):
                return None
            element = self.knowledge.element_type(scope.infer(gen.iter))
            scope = scope.child({gen.target.id: element})
        return scope

    def _infer_ListComp(self, node: ast.ListComp) -> TypeRef | None:
        scope = self._comprehension_scope(node.generators)
        elt = scope.infer(node.elt) if scope else None
        return InstanceOf(list, (elt,)) if elt else InstanceOf(list)

    def _infer_SetComp(self, node: ast.SetComp) -> TypeRef | None:
        scope = self._comprehension_scope(node.generators)
        elt = scope.infer(node.elt) if scope else None
        return InstanceOf(set, (elt,)) if elt else InstanceOf(set)

    def _infer_DictComp(self, node: ast.DictComp) -> TypeRef | None:
        scope = self._comprehension_scope(node.generators)
        if scope is None:
            return InstanceOf(dict)
        k, v = scope.infer(node.key), scope.infer(node.value)
        return InstanceOf(dict, (k, v)) if k and v else InstanceOf(dict)

    def _infer_GeneratorExp(self, node: ast.GeneratorExp) -> TypeRef | None:
        return InstanceOf(types.GeneratorType)

    def _infer_Attribute(self, node: ast.Attribute) -> TypeRef | None:
        return self.attribute(self.infer(node.value), node.attr)

    def _infer_Call(self, node: ast.Call) -> TypeRef | None:
        callee = self.infer(node.func)
        args = [self.infer(a) for a in node.args if not isinstance(a, ast.Starred)]
        return self.call(callee, args)

    def _infer_Subscript(self, node: ast.Subscript) -> TypeRef | None:
        value = self.infer(node.value)
        if not isinstance(value, InstanceOf):
            return None
        if isinstance(node.slice, ast.Slice):
            return value
        return self.call(self.attribute(value, "__getitem__"), (self.infer(node.slice),))

    # --- members and calls ---

    def attribute(self, owner: TypeRef | None, name: str) -> TypeRef | None:
        """Type of owner.name; methods come back as MethodRef."""
        if isinstance(owner, InstanceOf):
            return self._instance_attribute(owner, name)
        if isinstance(owner, Singleton):
            return self._singleton_attribute(owner, name)
        return None

    def _instance_attribute(self, owner: InstanceOf, name: str) -> TypeRef | None:
        if self.knowledge.has_method(owner, name):
            return MethodRef(owner, name)
        ref = self.knowledge.attribute_type(owner, name)
        if ref is not None:
            return ref
        try:
            raw = inspect.getattr_static(owner.cls, name)
        except AttributeError:
            return hint_to_ref(_field_hint(owner.cls, name), owner)
        if isinstance(raw, property):
            return hint_to_ref(_return_hint(raw.fget), owner) if raw.fget else None
        if inspect.isroutine(_unwrap(raw)) or inspect.ismethoddescriptor(raw):
            return MethodRef(owner, name)
        ref = hint_to_ref(_field_hint(owner.cls, name), owner)
        if ref is not None or inspect.isdatadescriptor(raw):
            return ref
        return type_of_value(raw)

    def _singleton_attribute(self, owner: Singleton, name: str) -> TypeRef | None:
        obj = owner.obj
        if owner.is_module:
            value = vars(obj).get(name, MISSING)
            if value is MISSING:
                value = sys.modules.get(f"{obj.__name__}.{name}", MISSING)
            return None if value is MISSING else type_of_value(value)
        try:
            raw = inspect.getattr_static(obj, name)
        except AttributeError:
            return None
        if owner.is_class and (inspect.isroutine(_unwrap(raw)) or inspect.ismethoddescriptor(raw)):
            return MethodRef(InstanceOf(obj), name)
        return type_of_value(raw)

    def call(self, callee: TypeRef | None, args: Sequence[TypeRef | None]) -> TypeRef | None:
        """Type returned by calling callee with arguments of the given types."""
        if isinstance(callee, MethodRef):
            return self._call_method(callee, args)
        if isinstance(callee, Singleton):
            return self._call_object(callee.obj, args)
        if isinstance(callee, InstanceOf):
            return self._call_method(MethodRef(callee, "__call__"), args)
        return None

    def _call_method(self, method: MethodRef, args: Sequence[TypeRef | None]) -> TypeRef | None:
        owner = method.owner
        if not isinstance(owner, InstanceOf):
            return None
        ref = self.knowledge.method_return(owner, method.name, args)
        if ref is not None:
            return ref
        try:
            raw = inspect.getattr_static(owner.cls, method.name)
        except AttributeError:
            return None
        return hint_to_ref(_return_hint(_unwrap(raw)), owner)

    def _call_object(self, obj: object, args: Sequence[TypeRef | None]) -> TypeRef | None:
        if obj is type and len(args) == 1 and isinstance(args[0], InstanceOf):
            return Singleton(args[0].cls)
        ref = self.knowledge.function_return(obj, args)
        if ref is not None:
            return ref
        if isinstance(obj, type):
            return InstanceOf(obj)
        if inspect.isroutine(obj):
            return hint_to_ref(_return_hint(obj))
        return None


def receiver_names(context: EvaluationContext, encoding: str) -> Iterator[str]:
    """Members of the context's receiver object, as identifiers in scope."""
    receiver = context.receiver()
    if receiver is None:
        return iter(())
    return type_of_value(receiver).member_names(encoding)


def local_names(context: EvaluationContext, encoding: str) -> Iterator[str]:
    return iter_names(context.local_names, encoding)
