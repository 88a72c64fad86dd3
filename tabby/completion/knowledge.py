"""Type knowledge base: return types of builtin members and functions.

Signature data ships as signatures.toml next to this module and is validated
with pydantic. Loading can run on a background thread; until it finishes
every lookup answers None and completion falls back to what annotations and
live values provide. Callers that need stable results poll `loaded` or
call wait().
"""

from __future__ import annotations

import builtins
import logging
import re
import sys
import threading
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tabby.completion.typerefs import InstanceOf, TypeRef
from tabby.exceptions import KnowledgeBaseError

logger = logging.getLogger(__name__)

DEFAULT_SIGNATURES = Path(__file__).with_name("signatures.toml")

_TOKEN_RE = re.compile(r"\s*([\w.]+|\[|\]|,)")
_ARG_RE = re.compile(r"([AE])(\d+)")


class TypeExpr(NamedTuple):
    """Parsed type expression: `name` or `name[arg, ...]`."""

    name: str
    args: tuple[TypeExpr, ...] = ()


def parse_type_expr(text: str) -> TypeExpr:
    """Parse a signature type expression, raising ValueError when malformed."""
    tokens = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise ValueError(f"unexpected character in type expression {text!r} at {pos}")
        tokens.append(m.group(1))
        pos = m.end()

    def parse(i: int) -> tuple[TypeExpr, int]:
        if i >= len(tokens) or tokens[i] in ("[", "]", ","):
            raise ValueError(f"expected a type name in {text!r}")
        name = tokens[i]
        i += 1
        if i < len(tokens) and tokens[i] == "[":
            args = []
            i += 1
            while True:
                arg, i = parse(i)
                args.append(arg)
                if i < len(tokens) and tokens[i] == ",":
                    i += 1
                    continue
                if i < len(tokens) and tokens[i] == "]":
                    return TypeExpr(name, tuple(args)), i + 1
                raise ValueError(f"unclosed '[' in {text!r}")
        return TypeExpr(name), i

    expr, end = parse(0)
    if end != len(tokens):
        raise ValueError(f"trailing tokens in type expression {text!r}")
    return expr


class TypeSignature(BaseModel):
    """Signature entry for one class."""

    model_config = ConfigDict(extra="forbid")

    params: list[str] = Field(default_factory=list)
    element: str | None = None
    methods: dict[str, str] = Field(default_factory=dict)
    attributes: dict[str, str] = Field(default_factory=dict)

    @field_validator("element")
    @classmethod
    def _check_element(cls, v: str | None) -> str | None:
        if v is not None:
            parse_type_expr(v)
        return v

    @field_validator("methods", "attributes")
    @classmethod
    def _check_members(cls, v: dict[str, str]) -> dict[str, str]:
        for expr in v.values():
            parse_type_expr(expr)
        return v


class SignatureData(BaseModel):
    """Top-level signature document."""

    model_config = ConfigDict(extra="forbid")

    types: dict[str, TypeSignature] = Field(default_factory=dict)
    functions: dict[str, str] = Field(default_factory=dict)

    @field_validator("functions")
    @classmethod
    def _check_functions(cls, v: dict[str, str]) -> dict[str, str]:
        for expr in v.values():
            parse_type_expr(expr)
        return v


def read_signatures(path: Path) -> SignatureData:
    """Read and validate a signature file."""
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise KnowledgeBaseError(f"cannot read signatures from {path}", cause=e)
    except tomllib.TOMLDecodeError as e:
        raise KnowledgeBaseError(f"invalid TOML in {path}: {e}", cause=e)
    try:
        return SignatureData.model_validate(raw)
    except ValidationError as e:
        raise KnowledgeBaseError(f"invalid signature data in {path}: {e}", cause=e)


def lookup_object(name: str) -> object | None:
    """Find a builtin or an attribute of an already-imported module by dotted name.

    Never imports: a module that is not in sys.modules resolves to None.
    """
    if "." not in name:
        return getattr(builtins, name, None)
    module_name, _, attr = name.rpartition(".")
    module = sys.modules.get(module_name)
    if module is None:
        return None
    return vars(module).get(attr)


@dataclass(frozen=True)
class _Entry:
    params: tuple[str, ...]
    element: TypeExpr | None
    methods: dict[str, TypeExpr]
    attributes: dict[str, TypeExpr]


@dataclass(frozen=True)
class _Table:
    types: dict[type, _Entry]
    functions: dict[object, TypeExpr]


def _build_table(data: SignatureData) -> _Table:
    types: dict[type, _Entry] = {}
    for name, sig in data.types.items():
        cls = lookup_object(name)
        if not isinstance(cls, type):
            logger.debug("signature type %s not available, skipping", name)
            continue
        types[cls] = _Entry(
            params=tuple(sig.params),
            element=parse_type_expr(sig.element) if sig.element else None,
            methods={k: parse_type_expr(v) for k, v in sig.methods.items()},
            attributes={k: parse_type_expr(v) for k, v in sig.attributes.items()},
        )
    functions: dict[object, TypeExpr] = {}
    for name, expr in data.functions.items():
        fn = lookup_object(name)
        if fn is None:
            logger.debug("signature function %s not available, skipping", name)
            continue
        functions[fn] = parse_type_expr(expr)
    return _Table(types=types, functions=functions)


class KnowledgeBase:
    """Thread-safe holder of the signature table with a readiness flag."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or DEFAULT_SIGNATURES
        self._table: _Table | None = None
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._thread: threading.Thread | None = None
        self.error: KnowledgeBaseError | None = None

    @property
    def loaded(self) -> bool:
        return self._table is not None

    @property
    def size(self) -> int:
        """Number of signatures known (methods, attributes and functions)."""
        table = self._table
        if table is None:
            return 0
        members = sum(len(e.methods) + len(e.attributes) for e in table.types.values())
        return members + len(table.functions)

    def available(self) -> bool:
        """Whether the data file exists, without reading it."""
        return self.path.is_file()

    def load(self) -> None:
        """Read, validate and publish the table. Raises KnowledgeBaseError."""
        table = _build_table(read_signatures(self.path))
        with self._lock:
            self._table = table
        self._done.set()
        logger.debug("knowledge base loaded: %d signatures from %s", self.size, self.path)

    def load_in_background(self) -> threading.Thread:
        """Start loading on a daemon thread (once) and return it."""
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._load_logged, name="tabby-knowledge", daemon=True
                )
                self._thread.start()
            return self._thread

    def _load_logged(self) -> None:
        try:
            self.load()
        except KnowledgeBaseError as e:
            self.error = e
            logger.warning("knowledge base failed to load: %s", e)
            self._done.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a load attempt finishes; True when the table is available."""
        if self._table is None and self._thread is None:
            return False
        self._done.wait(timeout)
        return self.loaded

    # --- lookups ---

    def _entry_for(self, table: _Table, cls: type, member: str, kind: str) -> tuple[type, _Entry, TypeExpr] | None:
        for klass in cls.__mro__:
            entry = table.types.get(klass)
            if entry is None:
                continue
            expr = getattr(entry, kind).get(member)
            if expr is not None:
                return klass, entry, expr
        return None

    def has_method(self, receiver: InstanceOf, name: str) -> bool:
        table = self._table
        return table is not None and self._entry_for(table, receiver.cls, name, "methods") is not None

    def method_return(
        self, receiver: InstanceOf, name: str, arguments: Sequence[TypeRef | None] = ()
    ) -> TypeRef | None:
        table = self._table
        if table is None:
            return None
        found = self._entry_for(table, receiver.cls, name, "methods")
        if found is None:
            return None
        klass, entry, expr = found
        params = entry.params if klass is receiver.cls else ()
        return self._resolve(expr, receiver, params, arguments)

    def attribute_type(self, receiver: InstanceOf, name: str) -> TypeRef | None:
        table = self._table
        if table is None:
            return None
        found = self._entry_for(table, receiver.cls, name, "attributes")
        if found is None:
            return None
        klass, entry, expr = found
        params = entry.params if klass is receiver.cls else ()
        return self._resolve(expr, receiver, params, ())

    def function_return(self, fn: object, arguments: Sequence[TypeRef | None]) -> TypeRef | None:
        table = self._table
        if table is None:
            return None
        try:
            expr = table.functions.get(fn)
        except TypeError:
            return None
        if expr is None:
            return None
        return self._resolve(expr, None, (), arguments)

    def element_type(self, ref: TypeRef | None) -> TypeRef | None:
        """Type produced by iterating ref, when known."""
        table = self._table
        if table is None or not isinstance(ref, InstanceOf):
            return None
        for klass in ref.cls.__mro__:
            entry = table.types.get(klass)
            if entry is not None and entry.element is not None:
                params = entry.params if klass is ref.cls else ()
                return self._resolve(entry.element, ref, params, ())
        return None

    def _resolve(
        self,
        expr: TypeExpr,
        receiver: InstanceOf | None,
        params: Sequence[str],
        arguments: Sequence[TypeRef | None],
    ) -> TypeRef | None:
        name = expr.name
        if name == "self":
            return receiver
        if name in params:
            idx = params.index(name)
            if receiver is None or idx >= len(receiver.args):
                return None
            return receiver.args[idx]
        if m := _ARG_RE.fullmatch(name):
            n = int(m.group(2))
            arg = arguments[n] if n < len(arguments) else None
            return arg if m.group(1) == "A" else self.element_type(arg)
        if name == "None":
            return InstanceOf(type(None))
        cls = lookup_object(name)
        if not isinstance(cls, type):
            return None
        args = tuple(self._resolve(a, receiver, params, arguments) for a in expr.args)
        if any(a is None for a in args):
            args = ()
        return InstanceOf(cls, args)

    def __repr__(self) -> str:
        state = "loaded" if self.loaded else "loading" if self._thread else "unloaded"
        return f"KnowledgeBase({state}, {self.size} signatures)"


_default: KnowledgeBase | None = None
_default_lock = threading.Lock()


def default_knowledge() -> KnowledgeBase:
    """Process-wide knowledge base over the bundled signature data."""
    global _default
    with _default_lock:
        if _default is None:
            _default = KnowledgeBase()
        return _default
