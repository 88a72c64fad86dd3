"""TypeCompletor: completion from statically inferred receiver types."""

from __future__ import annotations

import builtins
import keyword
import logging
from dataclasses import dataclass
from itertools import chain

from tabby.completion.context import EvaluationContext
from tabby.completion.inference import TypeInferrer, local_names, receiver_names
from tabby.completion.knowledge import KnowledgeBase, default_knowledge
from tabby.completion.provider import (
    CommandSource,
    CompletionProvider,
    command_candidates,
    default_encoding,
    filter_names,
)
from tabby.completion.regexp import RegexpCompletor
from tabby.completion.scanner import Analysis, Position, analyze
from tabby.completion.typerefs import InstanceOf, Singleton, TypeRef, qualified_name

logger = logging.getLogger(__name__)

_KEYWORDS = tuple(keyword.kwlist) + tuple(keyword.softkwlist)


@dataclass
class _Result:
    analysis: Analysis
    inferrer: TypeInferrer
    receiver: TypeRef | None = None


class TypeCompletor(CompletionProvider):
    """Type-aware provider.

    Member completion after `recv.` lists members of the inferred type of
    recv; nothing in the input is evaluated. doc_namespace() reuses the
    analysis of an immediately preceding candidates() call for the same input.
    If the knowledge base fails to load, both calls go to a RegexpCompletor.
    """

    def __init__(
        self,
        commands: CommandSource,
        knowledge: KnowledgeBase | None = None,
        *,
        encoding: str | None = None,
    ) -> None:
        self.commands = commands
        self.knowledge = knowledge or default_knowledge()
        self.encoding = encoding or default_encoding()
        self._last: tuple[tuple, _Result] | None = None
        self._fallback: RegexpCompletor | None = None

    @property
    def fallback(self) -> RegexpCompletor | None:
        """The provider standing in after a failed knowledge base load, if any."""
        if self._fallback is None and self.knowledge.error is not None:
            logger.warning(
                "type completion unavailable, using regexp completion: %s", self.knowledge.error
            )
            self._fallback = RegexpCompletor(self.commands, encoding=self.encoding)
        return self._fallback

    def _analyze(
        self,
        preposing: str,
        target: str,
        postposing: str,
        context: EvaluationContext,
        *,
        reuse: bool = False,
    ) -> _Result:
        key = (preposing, target, postposing, id(context))
        last, self._last = self._last, None
        if reuse and last is not None and last[0] == key:
            return last[1]
        analysis = analyze(preposing, target)
        inferrer = TypeInferrer(context, self.knowledge)
        result = _Result(analysis, inferrer)
        if analysis.position is not Position.UNPARSEABLE:
            inferrer.bind_statements(analysis.statements)
        if analysis.position is Position.MEMBER:
            result.receiver = inferrer.infer_source(analysis.receiver)
            logger.debug("receiver %r inferred as %s", analysis.receiver, result.receiver)
        self._last = (key, result)
        return result

    def _completes_commands_only(self, analysis: Analysis) -> bool:
        return analysis.leading is not None and self.commands.completes_commands(analysis.leading)

    def candidates(
        self, preposing: str, target: str, postposing: str, context: EvaluationContext
    ) -> list[str]:
        if self.fallback is not None:
            return self.fallback.candidates(preposing, target, postposing, context)
        result = self._analyze(preposing, target, postposing, context)
        analysis = result.analysis
        if analysis.position is Position.UNPARSEABLE:
            return []
        if analysis.position is Position.MEMBER:
            if result.receiver is None:
                return []
            names = result.receiver.member_names(self.encoding)
            return sorted({analysis.prefix + n for n in filter_names(names, analysis.partial)})
        if self._completes_commands_only(analysis):
            return command_candidates(self.commands, analysis.partial)
        names = chain(
            result.inferrer.bound_names(),
            local_names(context, self.encoding),
            receiver_names(context, self.encoding),
            dir(builtins),
            _KEYWORDS,
        )
        found = set(filter_names(names, analysis.partial))
        if analysis.line_start:
            found.update(command_candidates(self.commands, analysis.partial))
        return sorted(found)

    def doc_namespace(
        self, preposing: str, target: str, postposing: str, context: EvaluationContext
    ) -> str | None:
        if self.fallback is not None:
            return self.fallback.doc_namespace(preposing, target, postposing, context)
        result = self._analyze(preposing, target, postposing, context, reuse=True)
        analysis = result.analysis
        if not analysis.partial or analysis.position is Position.UNPARSEABLE:
            return None
        if analysis.position is Position.MEMBER:
            if result.receiver is None:
                return None
            return result.receiver.doc_namespace(analysis.partial)
        if self._completes_commands_only(analysis):
            return None
        ref = result.inferrer.lookup_name(analysis.partial)
        if isinstance(ref, Singleton):
            return qualified_name(ref.obj)
        if isinstance(ref, InstanceOf):
            return qualified_name(ref.cls)
        return None

    def __repr__(self) -> str:
        return f"TypeCompletor({self.knowledge!r}, encoding={self.encoding!r})"
