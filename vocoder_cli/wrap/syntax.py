# -*- coding: utf-8 -*-
"""tree-sitter plumbing shared by the analyzer, transformer and extractor.

Parsing produces a concrete syntax tree over the UTF-8 bytes of the file.
Rewriting never re-prints the tree: edits are byte-span splices over the
original text, so comments, quoting and whitespace outside the touched spans
come out exactly as they went in.
"""
from __future__ import annotations

import bisect
import dataclasses
import re
from typing import Iterator, List, Optional, Sequence, Tuple

import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Parser

from .types import ParseError

TSX_LANGUAGE = Language(tstypescript.language_tsx())
TYPESCRIPT_LANGUAGE = Language(tstypescript.language_typescript())

# Plain .ts files may use `<Type>value` assertions, which the TSX grammar rejects.
TYPESCRIPT_EXTENSIONS = (".ts", ".mts", ".cts")

JSX_TEXT_PARTS = ("jsx_text", "html_character_reference")
FUNCTION_EXPRESSIONS = ("function_expression", "function")

_WS_BYTES = b" \t\r\n"
_WS = " \t\r\n"
_WS_RUN_RE = re.compile(r"[ \t\r\n]+")
_LINE_INDENT_RE = re.compile(rb"[ \t]*")

_SIMPLE_ESCAPES = {
	"n": "\n",
	"t": "\t",
	"r": "\r",
	"b": "\b",
	"f": "\f",
	"v": "\v",
	"0": "\0",
}


def language_for(path: Optional[str]) -> Language:
	if path and path.lower().endswith(TYPESCRIPT_EXTENSIONS):
		return TYPESCRIPT_LANGUAGE
	return TSX_LANGUAGE


@dataclasses.dataclass(frozen=True)
class TextRun:
	"""Adjacent JSX text children treated as one piece of copy."""

	start: int
	end: int
	text: str
	parent: object


@dataclasses.dataclass(frozen=True)
class Edit:
	start: int
	end: int
	text: str
	# Zero-width insertions that must land before a replacement at the same offset use 0.
	order: int = 1


class ParsedSource:
	def __init__(self, text: str, path: str, tree) -> None:
		self.text = text
		self.path = path
		self.data = text.encode("utf-8")
		self.tree = tree
		self.root = tree.root_node
		self._line_starts = [0] + [m.end() for m in re.finditer(b"\n", self.data)]

	@property
	def newline(self) -> str:
		"""Line ending for inserted lines: CRLF if the file already uses it."""
		return "\r\n" if b"\r\n" in self.data else "\n"

	def slice(self, start: int, end: int) -> str:
		return self.data[start:end].decode("utf-8", errors="replace")

	def text_of(self, node) -> str:
		return self.slice(node.start_byte, node.end_byte)

	def location(self, offset: int) -> Tuple[int, int]:
		"""1-based line and 0-based character column of a byte offset."""
		idx = bisect.bisect_right(self._line_starts, offset) - 1
		line_start = self._line_starts[idx]
		column = len(self.data[line_start:offset].decode("utf-8", errors="replace"))
		return idx + 1, column

	def node_location(self, node) -> Tuple[int, int]:
		return self.location(node.start_byte)

	def line_indent(self, offset: int) -> str:
		idx = bisect.bisect_right(self._line_starts, offset) - 1
		m = _LINE_INDENT_RE.match(self.data, self._line_starts[idx])
		return m.group(0).decode("utf-8") if m else ""


def parse_source(text: str, path: Optional[str] = None) -> ParsedSource:
	"""Parse ``text`` or raise ``ParseError`` if the tree needed error recovery."""
	label = path or "<input>"
	parser = Parser(language_for(path))
	source = ParsedSource(text, label, parser.parse(text.encode("utf-8")))
	if source.root.has_error:
		bad = _first_error(source.root)
		line, column = source.node_location(bad) if bad is not None else (0, 0)
		raise ParseError(label, line, column)
	return source


def _first_error(node):
	stack = [node]
	while stack:
		n = stack.pop()
		if n.type == "ERROR" or n.is_missing:
			return n
		stack.extend(reversed([c for c in n.children if c.has_error or c.is_missing]))
	return None


def walk(node) -> Iterator:
	"""Pre-order traversal in document order."""
	stack = [node]
	while stack:
		n = stack.pop()
		yield n
		stack.extend(reversed(n.children))


def ancestors(node) -> Iterator:
	parent = node.parent
	while parent is not None:
		yield parent
		parent = parent.parent


def same_node(a, b) -> bool:
	if a is None or b is None:
		return False
	return (a.start_byte, a.end_byte, a.type) == (b.start_byte, b.end_byte, b.type)


def _decode_escape(raw: str) -> str:
	body = raw[1:]
	if not body:
		return ""
	if body[0] in "\r\n\u2028\u2029":
		return ""
	try:
		if body.startswith("u{"):
			return chr(int(body[2:-1], 16))
		if body[0] in "ux" and len(body) > 1:
			return chr(int(body[1:], 16))
	except ValueError:
		return body
	return _SIMPLE_ESCAPES.get(body, body)


def string_value(node, source: ParsedSource) -> str:
	"""Decoded value of a string literal node (quotes removed, escapes resolved)."""
	parts: List[str] = []
	pos = node.start_byte + 1
	for child in node.named_children:
		if child.type != "escape_sequence":
			continue
		parts.append(source.slice(pos, child.start_byte))
		parts.append(_decode_escape(source.text_of(child)))
		pos = child.end_byte
	parts.append(source.slice(pos, max(pos, node.end_byte - 1)))
	value = "".join(parts)
	try:
		# Re-join surrogate pairs written as two \uXXXX escapes.
		return value.encode("utf-16", "surrogatepass").decode("utf-16")
	except UnicodeError:
		return value


def _placeholder(substitution, source: ParsedSource) -> str:
	inner = [c for c in substitution.named_children if c.type != "comment"]
	if len(inner) == 1 and inner[0].type == "identifier":
		return source.text_of(inner[0])
	return "value"


def template_text(node, source: ParsedSource) -> str:
	"""Template literal with `${name}` as ``{name}`` and other expressions as ``{value}``."""
	parts: List[str] = []
	pos = node.start_byte + 1
	for child in node.named_children:
		if child.type != "template_substitution":
			continue
		parts.append(source.slice(pos, child.start_byte))
		parts.append("{%s}" % _placeholder(child, source))
		pos = child.end_byte
	parts.append(source.slice(pos, max(pos, node.end_byte - 1)))
	return "".join(parts)


def template_values(node, source: ParsedSource) -> Optional[List[Tuple[str, object]]]:
	"""``(placeholder, expression)`` for each substitution of a template literal.

	A name repeated as ``${name}`` is harmless, but two different expressions
	both shown as ``{value}`` cannot be told apart; None is returned then.
	"""
	values: List[Tuple[str, object]] = []
	seen = {}
	for child in node.named_children:
		if child.type != "template_substitution":
			continue
		inner = [c for c in child.named_children if c.type != "comment"]
		if len(inner) != 1:
			return None
		key = _placeholder(child, source)
		expression = inner[0]
		if key in seen and (seen[key].type != "identifier" or expression.type != "identifier"):
			return None
		seen.setdefault(key, expression)
		values.append((key, expression))
	return values


def normalize_text(text: str) -> str:
	return _WS_RUN_RE.sub(" ", text).strip(_WS)


def text_runs(element, source: ParsedSource) -> List[TextRun]:
	"""Group the JSX text children of ``element`` into runs split by child elements/expressions."""
	runs: List[TextRun] = []
	current: List = []

	def flush() -> None:
		if not current:
			return
		start, end = current[0].start_byte, current[-1].end_byte
		raw = source.data[start:end]
		stripped = raw.lstrip(_WS_BYTES)
		start += len(raw) - len(stripped)
		end = start + len(stripped.rstrip(_WS_BYTES))
		current.clear()
		if end <= start:
			return
		runs.append(TextRun(start=start, end=end, text=normalize_text(source.slice(start, end)), parent=element))

	for child in element.named_children:
		if child.type in JSX_TEXT_PARTS:
			current.append(child)
		else:
			flush()
	flush()
	return runs


def call_name(node, source: ParsedSource) -> Optional[str]:
	"""Name of a call/new expression callee: ``foo`` or ``a.b`` for simple member callees."""
	field = "function" if node.type == "call_expression" else "constructor"
	callee = node.child_by_field_name(field)
	if callee is None:
		return None
	if callee.type in ("identifier", "import"):
		return source.text_of(callee)
	if node.type == "call_expression" and callee.type == "member_expression":
		obj = callee.child_by_field_name("object")
		prop = callee.child_by_field_name("property")
		if obj is not None and prop is not None and obj.type == "identifier" and prop.type == "property_identifier":
			return f"{source.text_of(obj)}.{source.text_of(prop)}"
	return None


def enclosing_call_name(node, source: ParsedSource) -> Optional[str]:
	"""Walk up to the nearest call/new expression with a simple callee and return its name."""
	for ancestor in ancestors(node):
		if ancestor.type in ("call_expression", "new_expression"):
			name = call_name(ancestor, source)
			if name:
				return name
	return None


def jsx_attribute_parts(attr, source: ParsedSource):
	"""Return (name, value_node) of a ``jsx_attribute``; value is None for bare flags."""
	named = attr.named_children
	if not named:
		return None, None
	name = source.text_of(named[0])
	value = named[-1] if len(named) > 1 else None
	return name, value


def jsx_expression_inner(node) -> Optional[object]:
	inner = [c for c in node.named_children if c.type != "comment"]
	return inner[0] if len(inner) == 1 else None


def function_name(node, source: ParsedSource) -> Optional[str]:
	"""Name a function is declared with, or the variable it is assigned to."""
	if node.type in ("function_declaration", "generator_function_declaration"):
		name = node.child_by_field_name("name")
		return source.text_of(name) if name is not None else None
	if node.type in ("arrow_function",) + FUNCTION_EXPRESSIONS:
		parent = node.parent
		if parent is not None and parent.type == "variable_declarator":
			target = parent.child_by_field_name("name")
			if target is not None and target.type == "identifier":
				return source.text_of(target)
	return None


def apply_edits(data: bytes, edits: Sequence[Edit]) -> str:
	"""Splice ``edits`` into ``data``; edits must not overlap."""
	out: List[bytes] = []
	cursor = 0
	for edit in sorted(edits, key=lambda e: (e.start, e.order, e.end)):
		if edit.start < cursor:
			raise ValueError(f"overlapping edit at byte {edit.start}")
		out.append(data[cursor:edit.start])
		out.append(edit.text.encode("utf-8"))
		cursor = edit.end
	out.append(data[cursor:])
	return b"".join(out).decode("utf-8")
