# -*- coding: utf-8 -*-
"""Find user-facing strings that are not yet wrapped for translation.

One pre-order walk per file. Import declarations and ``const { t } = hook()``
destructuring teach the walk which local names are translation primitives;
markup text, attributes, string and template literals are then either
skipped structurally or handed to the classifier.
"""
from __future__ import annotations

import pathlib
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional

from ..utils.files import discover_files, read_source
from ..utils.logging import get_logger
from .adapters import ROLE_COMPONENT, ROLE_FUNCTION, ROLE_HOOK, Bindings, FrameworkAdapter, react_adapter
from .classifier import classify_string, is_translatable_var_name
from .syntax import (
	ParsedSource,
	ancestors,
	enclosing_call_name,
	jsx_attribute_parts,
	jsx_expression_inner,
	parse_source,
	same_node,
	string_value,
	template_text,
	template_values,
	text_runs,
	walk,
)
from .types import ClassificationMetadata, Confidence, Context, Strategy, WrapCandidate, WrapError

logger = get_logger(__name__)

# Parents whose string children name a module rather than carry copy.
MODULE_PARENTS = ("import_statement", "export_statement", "import_require_clause", "external_module_reference")
MODULE_CALLS = ("require", "import")

# Strings in these positions are syntax, not text.
STRUCTURAL_PARENTS = ("jsx_attribute", "jsx_expression", "expression_statement", "literal_type", "enum_assignment")


def learn_bindings(node, source: ParsedSource, adapter: FrameworkAdapter, bindings: Bindings) -> None:
	"""Record local names bound to the adapter's primitives by ``node``, if any."""
	if node.type == "import_statement":
		_learn_import(node, source, adapter, bindings)
	elif node.type == "variable_declarator":
		_learn_hook_destructuring(node, source, adapter, bindings)


def _learn_import(node, source: ParsedSource, adapter: FrameworkAdapter, bindings: Bindings) -> None:
	src = node.child_by_field_name("source")
	if src is None or string_value(src, source) != adapter.import_source:
		return
	roles = {
		adapter.component_name: ROLE_COMPONENT,
		adapter.function_name: ROLE_FUNCTION,
		adapter.hook_name: ROLE_HOOK,
	}
	for spec in walk(node):
		if spec.type != "import_specifier":
			continue
		name = spec.child_by_field_name("name")
		alias = spec.child_by_field_name("alias")
		if name is None:
			continue
		imported = source.text_of(name)
		role = roles.get(imported)
		if role:
			bindings.bind(source.text_of(alias) if alias is not None else imported, role)


def _learn_hook_destructuring(node, source: ParsedSource, adapter: FrameworkAdapter, bindings: Bindings) -> None:
	target = node.child_by_field_name("name")
	value = node.child_by_field_name("value")
	if target is None or value is None or target.type != "object_pattern":
		return
	if value.type == "await_expression" and value.named_children:
		value = value.named_children[0]
	if value.type != "call_expression":
		return
	callee = value.child_by_field_name("function")
	if callee is None or callee.type != "identifier":
		return
	hook = source.text_of(callee)
	if hook != adapter.hook_name and bindings.role_of(hook) != ROLE_HOOK:
		return
	for prop in target.named_children:
		if prop.type == "shorthand_property_identifier_pattern":
			if source.text_of(prop) == adapter.function_name:
				bindings.bind(adapter.function_name, ROLE_FUNCTION)
		elif prop.type == "object_assignment_pattern":
			left = prop.child_by_field_name("left")
			if left is not None and source.text_of(left) == adapter.function_name:
				bindings.bind(adapter.function_name, ROLE_FUNCTION)
		elif prop.type == "pair_pattern":
			key = prop.child_by_field_name("key")
			local = prop.child_by_field_name("value")
			if key is None or source.text_of(key) != adapter.function_name:
				continue
			if local is not None and local.type == "identifier":
				bindings.bind(source.text_of(local), ROLE_FUNCTION)


def is_module_specifier(node) -> bool:
	parent = node.parent
	if parent is None:
		return False
	if parent.type in MODULE_PARENTS:
		return True
	if parent.type == "arguments":
		call = parent.parent
		if call is not None and call.type == "call_expression":
			callee = call.child_by_field_name("function")
			if callee is not None and callee.type in ("import", "identifier"):
				return callee.text.decode("utf-8") in MODULE_CALLS
	return False


def inside_translate_call(node, source: ParsedSource, adapter: FrameworkAdapter, bindings: Bindings) -> bool:
	return any(adapter.is_translate_call(a, source, bindings.translate_names) for a in ancestors(node))


def _is_name_position(node, parent) -> bool:
	"""True for object keys, class member names and interface property names."""
	if parent.type == "pair" and same_node(parent.child_by_field_name("key"), node):
		return True
	return same_node(parent.child_by_field_name("name"), node)


class StringAnalyzer:
	"""Walks parsed files and reports wrap candidates in document order."""

	def __init__(self, adapter: Optional[FrameworkAdapter] = None) -> None:
		self.adapter = adapter or react_adapter

	# ---------------------------
	# Single file
	# ---------------------------

	def analyze_code(self, code: str, file_path: str = "<input>") -> List[WrapCandidate]:
		"""Analyze ``code`` and return its candidates. Raises ``ParseError``."""
		source = parse_source(code, file_path)
		bindings = Bindings()
		candidates: List[WrapCandidate] = []

		for node in walk(source.root):
			kind = node.type
			if kind in ("import_statement", "variable_declarator"):
				learn_bindings(node, source, self.adapter, bindings)
			if kind == "jsx_element":
				self._visit_element(node, source, bindings, candidates)
			elif kind == "jsx_attribute":
				self._visit_attribute(node, source, bindings, candidates)
			elif kind == "string":
				self._visit_string(node, source, bindings, candidates)
			elif kind == "template_string":
				self._visit_template(node, source, bindings, candidates)

		# Text runs are reported when their element is entered, ahead of its attributes.
		candidates.sort(key=lambda c: (c.line, c.column))
		return candidates

	def analyze_file(self, path) -> List[WrapCandidate]:
		path = pathlib.Path(path)
		return self.analyze_code(read_source(path), str(path))

	# ---------------------------
	# Project
	# ---------------------------

	def analyze_project(
		self,
		include: Optional[Iterable[str]] = None,
		exclude: Optional[Iterable[str]] = None,
		root=None,
		threads: int = 1,
	) -> List[WrapCandidate]:
		"""Analyze every matched file; files that fail are logged and left out."""
		base = pathlib.Path(root or ".").resolve()
		files = discover_files(base, include, exclude)
		logger.info("Analyzing %d file(s) under %s", len(files), base)

		def _work(p: pathlib.Path) -> List[WrapCandidate]:
			try:
				return self.analyze_file(p)
			except (WrapError, OSError, UnicodeDecodeError) as e:
				logger.warning("Skipping %s: %s", p, e)
				return []

		if threads > 1 and len(files) > 1:
			with ThreadPoolExecutor(max_workers=threads) as ex:
				results = list(ex.map(_work, files))
		else:
			results = [_work(p) for p in files]
		return [c for per_file in results for c in per_file]

	# ---------------------------
	# Visitors
	# ---------------------------

	def _classify(self, text: str, context: Context, metadata: ClassificationMetadata):
		return classify_string(
			text,
			context,
			metadata,
			translatable_attributes=self.adapter.translatable_attributes,
			non_translatable_attributes=self.adapter.non_translatable_attributes,
		)

	def _candidate(self, source, offset, text, result, strategy, context, confidence=None) -> WrapCandidate:
		line, column = source.location(offset)
		return WrapCandidate(
			file=source.path,
			line=line,
			column=column,
			text=text,
			confidence=confidence or result.confidence,
			strategy=strategy,
			context=context,
			reason=result.reason,
		)

	def _visit_element(self, node, source, bindings, out) -> None:
		if self.adapter.is_already_wrapped([node, *ancestors(node)], source, bindings):
			return
		for run in text_runs(node, source):
			result = self._classify(run.text, Context.MARKUP_TEXT, ClassificationMetadata(inside_component=True))
			if result.translatable:
				out.append(self._candidate(source, run.start, run.text, result, Strategy.MARKUP_WRAP, Context.MARKUP_TEXT))

	def _visit_attribute(self, node, source, bindings, out) -> None:
		name, value = jsx_attribute_parts(node, source)
		if not name or value is None:
			return
		if self.adapter.is_already_wrapped(ancestors(node), source, bindings):
			return
		text = None
		if value.type == "string":
			text = string_value(value, source)
		elif value.type == "jsx_expression":
			inner = jsx_expression_inner(value)
			if inner is not None and inner.type == "string":
				text = string_value(inner, source)
		if text is None or not text.strip():
			return
		text = text.strip()
		metadata = ClassificationMetadata(attribute_name=name, parent_type=node.type, inside_component=True)
		result = self._classify(text, Context.MARKUP_ATTRIBUTE, metadata)
		if result.translatable:
			out.append(self._candidate(source, node.start_byte, text, result, Strategy.CALL_WRAP, Context.MARKUP_ATTRIBUTE))

	def _visit_string(self, node, source, bindings, out) -> None:
		parent = node.parent
		if parent is None or parent.type in STRUCTURAL_PARENTS:
			return
		if is_module_specifier(node) or _is_name_position(node, parent):
			return
		if inside_translate_call(node, source, self.adapter, bindings):
			return
		text = string_value(node, source).strip()
		if not text:
			return
		self._classify_literal(node, parent, text, Context.STRING_LITERAL, source, out)

	def _visit_template(self, node, source, bindings, out) -> None:
		parent = node.parent
		if parent is None or parent.type in ("expression_statement", "literal_type"):
			return
		# tag`...` is a call whose arguments are the template itself.
		if parent.type == "call_expression" and same_node(parent.child_by_field_name("arguments"), node):
			return
		if is_module_specifier(node) or inside_translate_call(node, source, self.adapter, bindings):
			return
		# A rewrite must pass every substitution on as a value.
		if template_values(node, source) is None:
			logger.debug("%s:%d: template has colliding {value} placeholders", source.path, source.node_location(node)[0])
			return
		text = template_text(node, source).strip()
		if not text:
			return
		self._classify_literal(node, parent, text, Context.TEMPLATE_LITERAL, source, out)

	def _classify_literal(self, node, parent, text, context, source, out) -> None:
		metadata = ClassificationMetadata(
			parent_type=parent.type,
			call_name=enclosing_call_name(node, source),
			inside_component=_inside_markup(node),
		)
		result = self._classify(text, context, metadata)
		if not result.translatable:
			return
		confidence = result.confidence
		if confidence is Confidence.MEDIUM and parent.type == "variable_declarator":
			target = parent.child_by_field_name("name")
			if target is not None and target.type == "identifier" and is_translatable_var_name(source.text_of(target)):
				confidence = Confidence.HIGH
		out.append(self._candidate(source, node.start_byte, text, result, Strategy.CALL_WRAP, context, confidence))


def _inside_markup(node) -> bool:
	return any(a.type in ("jsx_element", "jsx_self_closing_element") for a in ancestors(node))


def analyze(source_text: str, adapter: Optional[FrameworkAdapter] = None, file_path: str = "<input>") -> List[WrapCandidate]:
	"""Candidates for one file's text. Raises ``ParseError`` if it does not parse."""
	return StringAnalyzer(adapter).analyze_code(source_text, file_path)


__all__ = [
	"StringAnalyzer",
	"analyze",
	"learn_bindings",
	"is_module_specifier",
	"inside_translate_call",
]
