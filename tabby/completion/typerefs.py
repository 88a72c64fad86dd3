"""Type references for static completion.

InstanceOf(cls, args)   -- a value of class cls, e.g. list[int]
Singleton(obj)          -- a class, module or routine used as a namespace
MethodRef(owner, name)  -- a member looked up on owner but not yet called

Member enumeration goes through iter_names(), which drops names that are
not str or cannot be encoded in the active encoding instead of failing the
whole listing.
"""

from __future__ import annotations

import inspect
import logging
import types
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Union

logger = logging.getLogger(__name__)

_CONTAINERS = (list, set, frozenset, tuple)
_SAMPLE_DEPTH = 2


def iter_names(source: Callable[[], Iterable[object]], encoding: str) -> Iterator[str]:
    """Yield usable names from source(), skipping malformed entries.

    source is called lazily so a failing __dir__ or annotation lookup
    yields nothing rather than propagating.
    """
    try:
        names = list(source())
    except Exception as e:
        logger.debug("member listing failed: %r", e)
        return
    for name in names:
        if not isinstance(name, str):
            logger.debug("skipping non-str name %r", name)
            continue
        try:
            name.encode(encoding)
        except UnicodeEncodeError:
            logger.debug("skipping name not encodable as %s: %r", encoding, name)
            continue
        yield name


def qualified_name(obj: object) -> str:
    """Dotted name used in namespace identifiers. Builtins stay unqualified."""
    if inspect.ismodule(obj):
        return obj.__name__
    qual = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None)
    if qual is None:
        qual = type(obj).__qualname__
    module = getattr(obj, "__module__", None)
    if not module or module == "builtins":
        return qual
    return f"{module}.{qual}"


def _annotated_fields(cls: type) -> list[str]:
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        try:
            names.extend(inspect.get_annotations(klass))
        except Exception as e:
            logger.debug("annotations of %r unavailable: %r", klass, e)
    return names


@dataclass(frozen=True)
class InstanceOf:
    """A value whose class is known, with optional element type arguments."""

    cls: type
    args: tuple[TypeRef, ...] = ()
    attrs: frozenset[str] = field(default=frozenset(), compare=False)

    def member_names(self, encoding: str) -> Iterator[str]:
        yield from iter_names(lambda: dir(self.cls), encoding)
        yield from iter_names(lambda: _annotated_fields(self.cls), encoding)
        yield from iter_names(lambda: self.attrs, encoding)

    def owner_of(self, name: str) -> type | None:
        """First class in the MRO whose own namespace defines name."""
        for klass in self.cls.__mro__:
            if name in vars(klass):
                return klass
        if name in self.attrs or name in _annotated_fields(self.cls):
            return self.cls
        return None

    def doc_namespace(self, member: str) -> str | None:
        owner = self.owner_of(member)
        if owner is None:
            return None
        return f"{qualified_name(owner)}#{member}"

    def __str__(self) -> str:
        name = qualified_name(self.cls)
        if self.args:
            return f"{name}[{', '.join(str(a) for a in self.args)}]"
        return name


@dataclass(frozen=True)
class Singleton:
    """A known class, module or routine whose own attributes are the members."""

    obj: object

    @property
    def is_module(self) -> bool:
        return inspect.ismodule(self.obj)

    @property
    def is_class(self) -> bool:
        return isinstance(self.obj, type)

    def member_names(self, encoding: str) -> Iterator[str]:
        if self.is_module:
            yield from iter_names(lambda: vars(self.obj), encoding)
        else:
            yield from iter_names(lambda: dir(self.obj), encoding)

    def has_member(self, name: str) -> bool:
        if self.is_module:
            return name in vars(self.obj)
        try:
            inspect.getattr_static(self.obj, name)
        except AttributeError:
            return False
        return True

    def doc_namespace(self, member: str) -> str | None:
        if not self.has_member(member):
            return None
        return f"{qualified_name(self.obj)}.{member}"

    def __str__(self) -> str:
        return qualified_name(self.obj)


@dataclass(frozen=True)
class MethodRef:
    """owner.name looked up but not called; calling it yields the return type."""

    owner: TypeRef
    name: str

    def _as_instance(self) -> InstanceOf:
        return InstanceOf(types.MethodType)

    def member_names(self, encoding: str) -> Iterator[str]:
        return self._as_instance().member_names(encoding)

    def doc_namespace(self, member: str) -> str | None:
        return self._as_instance().doc_namespace(member)

    def __str__(self) -> str:
        return f"{self.owner}.{self.name}"


TypeRef = Union[InstanceOf, Singleton, MethodRef]


def _instance_attrs(value: object) -> frozenset[str]:
    try:
        attrs = object.__getattribute__(value, "__dict__")
    except AttributeError:
        return frozenset()
    if not isinstance(attrs, dict):
        return frozenset()
    return frozenset(k for k in attrs if isinstance(k, str))


def type_of_value(value: object, _depth: int = 0) -> TypeRef:
    """TypeRef for a live value without running any of its code.

    Exact builtin containers are sampled on their first element to fill in
    element types; subclasses are not, since their iteration may be user code.
    """
    if inspect.ismodule(value) or isinstance(value, type) or inspect.isroutine(value):
        return Singleton(value)
    cls = type(value)
    if _depth < _SAMPLE_DEPTH and (cls in _CONTAINERS or cls is dict) and value:
        if cls in _CONTAINERS:
            first = next(iter(value))
            return InstanceOf(cls, (type_of_value(first, _depth + 1),))
        else:
            key, item = next(iter(value.items()))
            return InstanceOf(
                cls, (type_of_value(key, _depth + 1), type_of_value(item, _depth + 1))
            )
    return InstanceOf(cls, attrs=_instance_attrs(value))
