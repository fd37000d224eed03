# -*- coding: utf-8 -*-
"""Shared data model for the wrap engine.

Candidates cross the boundary between the analyzer and the transformer as
plain data: the only thing the two passes agree on is the ``(line, column)``
coordinate of the node each candidate was found at.
"""
from __future__ import annotations

import dataclasses
import enum
from typing import Any, Dict, Iterable, List, Optional


class Confidence(str, enum.Enum):
	HIGH = "high"
	MEDIUM = "medium"
	LOW = "low"

	@property
	def rank(self) -> int:
		return _CONFIDENCE_ORDER.index(self)

	def meets(self, threshold: "Confidence") -> bool:
		"""True if this level is at or above ``threshold`` (high > medium > low)."""
		return self.rank <= Confidence(threshold).rank


_CONFIDENCE_ORDER = [Confidence.HIGH, Confidence.MEDIUM, Confidence.LOW]


class Strategy(str, enum.Enum):
	MARKUP_WRAP = "markup-wrap"
	CALL_WRAP = "call-wrap"


class Context(str, enum.Enum):
	MARKUP_TEXT = "markup-text"
	MARKUP_ATTRIBUTE = "markup-attribute"
	STRING_LITERAL = "string-literal"
	TEMPLATE_LITERAL = "template-literal"


@dataclasses.dataclass(frozen=True)
class ClassificationResult:
	translatable: bool
	confidence: Confidence
	reason: str


@dataclasses.dataclass(frozen=True)
class ClassificationMetadata:
	attribute_name: Optional[str] = None
	parent_type: Optional[str] = None
	call_name: Optional[str] = None
	inside_component: bool = False


@dataclasses.dataclass(frozen=True)
class WrapCandidate:
	file: str
	line: int
	column: int
	text: str
	confidence: Confidence
	strategy: Strategy
	context: Context
	reason: str

	@property
	def key(self) -> str:
		return location_key(self.line, self.column)

	def to_dict(self) -> Dict[str, Any]:
		d = dataclasses.asdict(self)
		d["confidence"] = self.confidence.value
		d["strategy"] = self.strategy.value
		d["context"] = self.context.value
		return d


@dataclasses.dataclass
class TransformResult:
	file: str
	output: str
	wrapped: List[WrapCandidate] = dataclasses.field(default_factory=list)
	skipped: List[WrapCandidate] = dataclasses.field(default_factory=list)

	@property
	def wrapped_count(self) -> int:
		return len(self.wrapped)

	@property
	def changed(self) -> bool:
		return bool(self.wrapped)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"file": self.file,
			"wrappedCount": self.wrapped_count,
			"wrapped": [c.to_dict() for c in self.wrapped],
			"skipped": [c.to_dict() for c in self.skipped],
		}


@dataclasses.dataclass(frozen=True)
class ExtractedString:
	text: str
	file: str
	line: int
	context: Optional[str] = None
	formality: Optional[str] = None

	@property
	def dedupe_key(self) -> str:
		return f"{self.text}|{self.context or ''}|{self.formality or ''}"


class WrapError(Exception):
	"""Base exception for the wrap engine."""


class ParseError(WrapError):
	"""Raised when a source file cannot be parsed cleanly."""

	def __init__(self, path: str, line: int = 0, column: int = 0, message: str = "syntax error") -> None:
		super().__init__(f"{path}:{line}:{column}: {message}")
		self.path = path
		self.line = line
		self.column = column


def location_key(line: int, column: int) -> str:
	return f"{line}:{column}"


def filter_by_confidence(candidates: Iterable[WrapCandidate], threshold: Confidence) -> List[WrapCandidate]:
	threshold = Confidence(threshold)
	return [c for c in candidates if c.confidence.meets(threshold)]
