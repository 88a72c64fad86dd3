"""Lexical scan of the text in front of the cursor.

Splits the input into statements at depth-0 terminators (`;` and newlines
outside brackets), rejects unmatched or mismatched closing delimiters, and
finds the receiver expression in front of a trailing member-access dot.
Lexing uses Pygments' PythonLexer, which never raises on incomplete input.
"""

from __future__ import annotations

import enum
import keyword
import re
from dataclasses import dataclass, field

from pygments.lexers.python import PythonLexer
from pygments.token import Comment, Number, String

_LEXER = PythonLexer(stripnl=False, ensurenl=False)

_PAIRS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_PAIRS.values())
_CONSTANTS = frozenset({"True", "False", "None"})

# A target is a possibly dotted identifier fragment: "", "up", "a.b", "os.path.jo"
TARGET_RE = re.compile(r"(?:[^\W\d]\w*\.)*(?:[^\W\d]\w*)?")
_LEADING_WORD_RE = re.compile(r"\s*([^\W\d]\w*)\s+")


class Kind(enum.Enum):
    OPEN = "open"
    CLOSE = "close"
    SEP = "sep"
    DOT = "dot"
    WORD = "word"
    STRING = "string"
    NUMBER = "number"
    COMMENT = "comment"
    SPACE = "space"
    OP = "op"


@dataclass(frozen=True)
class Tok:
    start: int
    kind: Kind
    text: str


@dataclass
class Scan:
    """Result of scanning one chunk of input."""

    text: str
    tokens: list[Tok] = field(default_factory=list)
    balanced: bool = True
    statements: list[str] = field(default_factory=list)
    current_start: int = 0

    @property
    def current(self) -> str:
        """Text of the statement the cursor is in."""
        return self.text[self.current_start:]


def _classify(ttype, value: str, depth: int) -> Kind:
    if ttype in Comment:
        return Kind.COMMENT
    if ttype in String:
        return Kind.STRING
    if ttype in Number:
        return Kind.NUMBER
    if value in _PAIRS:
        return Kind.OPEN
    if value in _CLOSERS:
        return Kind.CLOSE
    if value == ";":
        return Kind.SEP if depth == 0 else Kind.OP
    if value == ".":
        return Kind.DOT
    if not value.strip():
        if "\n" in value and depth == 0:
            return Kind.SEP
        return Kind.SPACE
    if value.startswith("\\") and not value[1:].strip():
        return Kind.SPACE
    if value.isidentifier():
        return Kind.WORD
    return Kind.OP


def scan(text: str) -> Scan:
    """Tokenize text and record statement boundaries and delimiter balance."""
    result = Scan(text=text)
    stack: list[str] = []
    for start, ttype, value in _LEXER.get_tokens_unprocessed(text):
        if not value:
            continue
        kind = _classify(ttype, value, len(stack))
        if kind is Kind.OPEN:
            stack.append(value)
        elif kind is Kind.CLOSE:
            if not stack or _PAIRS[stack[-1]] != value:
                result.balanced = False
                return result
            stack.pop()
        elif kind is Kind.SEP:
            result.statements.append(text[result.current_start:start])
            result.current_start = start + len(value)
        result.tokens.append(Tok(start, kind, value))
    return result


def _ends_atom(tok: Tok) -> bool:
    if tok.kind is Kind.WORD:
        return not keyword.iskeyword(tok.text) or tok.text in _CONSTANTS
    return tok.kind in (Kind.CLOSE, Kind.STRING)


def _matching_open(tokens: list[Tok], close_idx: int) -> int | None:
    depth = 0
    for i in range(close_idx, -1, -1):
        kind = tokens[i].kind
        if kind is Kind.CLOSE:
            depth += 1
        elif kind is Kind.OPEN:
            depth -= 1
            if depth == 0:
                return i
    return None


def _primary_start(tokens: list[Tok], end: int) -> int | None:
    """Index of the first token of the primary expression ending at tokens[end].

    Walks back over names, literals, dotted access and call/subscript
    trailers. Returns None when tokens[end] cannot end an expression.
    """
    i = end
    while i >= 0:
        tok = tokens[i]
        if tok.kind is Kind.CLOSE:
            j = _matching_open(tokens, i)
            if j is None:
                return None
            if j > 0 and _ends_atom(tokens[j - 1]):
                i = j - 1
                continue
            start = j
        elif tok.kind is Kind.WORD and _ends_atom(tok):
            start = i
        elif tok.kind in (Kind.STRING, Kind.NUMBER):
            start = i
            while start > 0 and tokens[start - 1].kind is Kind.STRING:
                start -= 1
        else:
            return None
        if start > 1 and tokens[start - 1].kind is Kind.DOT:
            i = start - 2
            continue
        return start
    return None


def receiver_source(result: Scan) -> str | None:
    """Source of the receiver in front of the trailing dot, or None."""
    tokens = result.tokens
    if not tokens or tokens[-1].kind is not Kind.DOT or len(tokens) < 2:
        return None
    dot = tokens[-1]
    start = _primary_start(tokens, len(tokens) - 2)
    if start is None:
        return None
    return result.text[tokens[start].start:dot.start]


class Position(enum.Enum):
    """Where the cursor sits, as far as completion is concerned."""

    UNPARSEABLE = "unparseable"
    MEMBER = "member"
    IDENTIFIER = "identifier"


@dataclass
class Analysis:
    """Classification of one (preposing, target) pair.

    partial    -- the fragment being completed (last segment of target)
    prefix     -- receiver text carried in target, prepended to candidates
    receiver   -- source of the receiver expression for MEMBER positions
    statements -- complete statements before the current one
    line_start -- nothing but whitespace precedes the target
    leading    -- a lone leading word followed by whitespace, e.g. "help "
    """

    position: Position
    partial: str = ""
    prefix: str = ""
    receiver: str | None = None
    statements: list[str] = field(default_factory=list)
    line_start: bool = False
    leading: str | None = None


UNPARSEABLE = Analysis(Position.UNPARSEABLE)


def analyze(preposing: str, target: str) -> Analysis:
    """Classify the completion position for preposing + target."""
    if not TARGET_RE.fullmatch(target):
        return UNPARSEABLE
    receiver_part, dot, partial = target.rpartition(".")
    result = scan(preposing + receiver_part + dot)
    if not result.balanced:
        return UNPARSEABLE
    if result.tokens and result.tokens[-1].kind in (Kind.STRING, Kind.COMMENT):
        return UNPARSEABLE
    if result.tokens and result.tokens[-1].kind is Kind.DOT:
        receiver = receiver_source(result)
        if receiver is None:
            return UNPARSEABLE
        return Analysis(
            Position.MEMBER,
            partial=partial,
            prefix=receiver_part + dot,
            receiver=receiver,
            statements=result.statements,
        )
    # Only the first statement of the input can be a shell command
    first = not result.statements
    leading = _LEADING_WORD_RE.fullmatch(preposing) if first else None
    return Analysis(
        Position.IDENTIFIER,
        partial=partial,
        statements=result.statements,
        line_start=first and not preposing.strip(),
        leading=leading.group(1) if leading else None,
    )
