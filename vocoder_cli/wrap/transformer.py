# -*- coding: utf-8 -*-
"""Apply wrap candidates to source text.

The file is parsed again from scratch and candidates are matched back to
nodes by their ``line:column`` key. Every rewrite is a byte-span edit, so the
output differs from the input only inside replaced literals, the injected
hook lines and the import declaration.
"""
from __future__ import annotations

import json
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..utils.logging import get_logger
from .adapters import FrameworkAdapter, react_adapter
from .syntax import (
	FUNCTION_EXPRESSIONS,
	Edit,
	ParsedSource,
	ancestors,
	apply_edits,
	function_name,
	jsx_attribute_parts,
	jsx_expression_inner,
	parse_source,
	string_value,
	template_values,
	text_runs,
	walk,
)
from .types import Strategy, TransformResult, WrapCandidate, location_key

logger = get_logger(__name__)

FUNCTION_NODES = ("function_declaration", "generator_function_declaration", "arrow_function") + FUNCTION_EXPRESSIONS
# Hook calls inside these belong to another function's body.
SCOPE_NODES = FUNCTION_NODES + ("generator_function", "method_definition", "class_declaration", "class")
PROLOGUE_NODES = ("hash_bang_line",)


def _is_directive(node) -> bool:
	return (
		node.type == "expression_statement"
		and len(node.named_children) == 1
		and node.named_children[0].type == "string"
	)


class StringTransformer:
	"""Rewrites one file's text for a list of candidates produced by the analyzer."""

	def __init__(self, adapter: Optional[FrameworkAdapter] = None) -> None:
		self.adapter = adapter or react_adapter

	def transform(self, code: str, candidates: Iterable[WrapCandidate], file_path: str = "<input>") -> TransformResult:
		candidates = list(candidates)
		source = parse_source(code, file_path)
		state = _State({c.key: c for c in candidates})

		stack = [source.root]
		while stack:
			node = stack.pop()
			kind = node.type
			replaced = False
			if kind == "jsx_element":
				self._visit_element(node, source, state)
			elif kind == "jsx_attribute":
				replaced = self._visit_attribute(node, source, state)
			elif kind in ("string", "template_string"):
				replaced = self._visit_literal(node, source, state)
			if not replaced:
				stack.extend(reversed(node.children))

		hooked = self._inject_hooks(source, state)
		self._manage_imports(source, state, hooked)

		output = apply_edits(source.data, state.edits) if state.edits else code
		skipped = [c for c in candidates if c.key in state.lookup]
		if skipped:
			logger.info("%s: %d candidate(s) not found in the parsed source", source.path, len(skipped))
		return TransformResult(file=source.path, output=output, wrapped=state.wrapped, skipped=skipped)

	# ---------------------------
	# Node rewrites
	# ---------------------------

	def _call(self, text: str) -> str:
		return "%s(%s)" % (self.adapter.function_name, json.dumps(text, ensure_ascii=False))

	def _take(self, state: "_State", source: ParsedSource, offset: int, strategy: Strategy) -> Optional[WrapCandidate]:
		key = location_key(*source.location(offset))
		candidate = state.lookup.get(key)
		# A strategy mismatch leaves the key in place so it is reported as skipped.
		if candidate is None or candidate.strategy is not strategy:
			return None
		del state.lookup[key]
		state.wrapped.append(candidate)
		state.strategies.add(strategy)
		return candidate

	def _visit_element(self, node, source, state) -> None:
		name = self.adapter.component_name
		for run in text_runs(node, source):
			if self._take(state, source, run.start, Strategy.MARKUP_WRAP) is None:
				continue
			state.edits.append(Edit(run.start, run.end, f"<{name}>{source.slice(run.start, run.end)}</{name}>"))

	def _visit_attribute(self, node, source, state) -> bool:
		_, value = jsx_attribute_parts(node, source)
		if value is None:
			return False
		if value.type == "jsx_expression":
			inner = jsx_expression_inner(value)
			if inner is None or inner.type != "string":
				return False
		elif value.type != "string":
			return False
		candidate = self._take(state, source, node.start_byte, Strategy.CALL_WRAP)
		if candidate is None:
			return False
		state.edits.append(Edit(value.start_byte, value.end_byte, "{%s}" % self._call(candidate.text)))
		self._record_component(node, source, state)
		return True

	def _visit_literal(self, node, source, state) -> bool:
		parent = node.parent
		if parent is not None and parent.type == "jsx_attribute":
			return False
		if node.type == "string" and parent is not None and parent.type == "jsx_expression":
			grand = parent.parent
			if grand is not None and grand.type == "jsx_attribute":
				return False
		if node.type == "template_string":
			return self._visit_template(node, source, state)
		candidate = self._take(state, source, node.start_byte, Strategy.CALL_WRAP)
		if candidate is None:
			return False
		state.edits.append(Edit(node.start_byte, node.end_byte, self._call(candidate.text)))
		self._record_component(node, source, state)
		return True

	def _visit_template(self, node, source, state) -> bool:
		"""Rewrite to ``t("... {name} ...", { name, value: expr })``.

		Substituted expressions keep their original bytes, so the walk still
		descends into them. Always returns False for that reason.
		"""
		values = template_values(node, source)
		if values is None:
			return False
		candidate = self._take(state, source, node.start_byte, Strategy.CALL_WRAP)
		if candidate is None:
			return False
		self._record_component(node, source, state)
		call = self._call(candidate.text)
		if not values:
			state.edits.append(Edit(node.start_byte, node.end_byte, call))
			return False

		prefix = call[:-1] + ", { "
		cursor = node.start_byte
		kept: Set[str] = set()
		for key, expression in values:
			# Repeats of a ${name} fall inside the next gap and are dropped.
			if key in kept:
				continue
			if kept:
				prefix = ", "
			kept.add(key)
			if expression.type != "identifier":
				prefix += f"{key}: "
			state.edits.append(Edit(cursor, expression.start_byte, prefix))
			cursor = expression.end_byte
		state.edits.append(Edit(cursor, node.end_byte, " })"))
		return False

	def _record_component(self, node, source, state) -> None:
		component = enclosing_component(node, source)
		if component is None:
			state.needs_function = True
		else:
			state.components.setdefault((component.start_byte, component.end_byte), component)

	# ---------------------------
	# Hook injection
	# ---------------------------

	def _calls_hook(self, body, source) -> bool:
		"""True if ``body`` itself calls the hook; nested functions do not count."""
		stack = [body]
		while stack:
			n = stack.pop()
			if n.type == "call_expression":
				callee = n.child_by_field_name("function")
				if callee is not None and callee.type == "identifier" and source.text_of(callee) == self.adapter.hook_name:
					return True
			stack.extend(c for c in n.children if c.type not in SCOPE_NODES)
		return False

	def _inject_hooks(self, source: ParsedSource, state: "_State") -> bool:
		declaration = "const { %s } = %s();" % (self.adapter.function_name, self.adapter.hook_name)
		injected = False
		for component in sorted(state.components.values(), key=lambda n: n.start_byte):
			body = component.child_by_field_name("body")
			if body is None or self._calls_hook(body, source):
				continue
			if body.type == "statement_block":
				state.edits.append(_block_insertion(body, source, declaration))
			else:
				state.edits.extend(_expression_body_insertion(component, body, source, declaration))
			injected = True
		return injected

	# ---------------------------
	# Imports
	# ---------------------------

	def _manage_imports(self, source: ParsedSource, state: "_State", hooked: bool) -> None:
		wanted, module = self.adapter.required_imports(state.strategies, hooked, state.needs_function)
		if not wanted:
			return
		existing, imported, foreign = _scan_imports(source, module)
		missing = []
		for name in wanted:
			if name in imported:
				continue
			if name in foreign:
				logger.warning("%s: %s is already imported from another module", source.path, name)
				continue
			missing.append(name)
		if not missing:
			return

		if existing is not None:
			edit = _extend_import(existing, missing)
			if edit is not None:
				state.edits.append(edit)
				return
		state.edits.append(_new_import(source, missing, module))


class _State:
	def __init__(self, lookup: Dict[str, WrapCandidate]) -> None:
		self.lookup = lookup
		self.edits: List[Edit] = []
		self.wrapped: List[WrapCandidate] = []
		self.strategies: Set[Strategy] = set()
		self.components: Dict[Tuple[int, int], object] = {}
		self.needs_function = False


def enclosing_component(node, source: ParsedSource):
	"""Nearest enclosing function whose name starts with an uppercase letter."""
	for ancestor in ancestors(node):
		if ancestor.type not in FUNCTION_NODES:
			continue
		name = function_name(ancestor, source)
		if name and name[0].isupper():
			return ancestor
	return None


def _indent_unit(indent: str) -> str:
	return "\t" if "\t" in indent else "  "


def _block_insertion(body, source: ParsedSource, declaration: str) -> Edit:
	children = body.named_children
	if not children:
		return Edit(body.start_byte + 1, body.start_byte + 1, f" {declaration} ")
	first = children[0]
	if source.location(first.start_byte)[0] == source.location(body.start_byte)[0]:
		return Edit(first.start_byte, first.start_byte, f"{declaration} ", order=0)
	indent = source.line_indent(first.start_byte)
	return Edit(first.start_byte, first.start_byte, f"{declaration}{source.newline}{indent}", order=0)


def _expression_body_insertion(function, body, source: ParsedSource, declaration: str) -> List[Edit]:
	indent = source.line_indent(function.start_byte)
	inner = indent + _indent_unit(indent)
	nl = source.newline
	return [
		Edit(body.start_byte, body.start_byte, f"{{{nl}{inner}{declaration}{nl}{inner}return ", order=0),
		Edit(body.end_byte, body.end_byte, f";{nl}{indent}}}", order=2),
	]


def _is_type_only(import_node) -> bool:
	return any(not c.is_named and c.type == "type" for c in import_node.children)


def _local_names(import_node, source: ParsedSource) -> Set[str]:
	names: Set[str] = set()
	clause = next((c for c in import_node.named_children if c.type == "import_clause"), None)
	if clause is None:
		return names
	for n in walk(clause):
		if n.type == "import_specifier":
			alias = n.child_by_field_name("alias")
			name = n.child_by_field_name("name")
			target = alias if alias is not None else name
			if target is not None:
				names.add(source.text_of(target))
		elif n.type == "identifier" and n.parent is not None and n.parent.type in ("import_clause", "namespace_import"):
			names.add(source.text_of(n))
	return names


def _scan_imports(source: ParsedSource, module: str):
	"""Return (import node from ``module``, names it imports, names imported elsewhere)."""
	existing = None
	imported: Set[str] = set()
	foreign: Set[str] = set()
	for child in source.root.named_children:
		if child.type != "import_statement":
			continue
		src = child.child_by_field_name("source")
		names = _local_names(child, source)
		if src is not None and string_value(src, source) == module and not _is_type_only(child):
			if existing is None:
				existing = child
			imported |= names
		else:
			foreign |= names
	return existing, imported, foreign


def _extend_import(import_node, missing: List[str]) -> Optional[Edit]:
	clause = next((c for c in import_node.named_children if c.type == "import_clause"), None)
	if clause is None:
		return None
	joined = ", ".join(missing)
	named = next((c for c in clause.named_children if c.type == "named_imports"), None)
	if named is not None:
		specifiers = [c for c in named.named_children if c.type == "import_specifier"]
		if specifiers:
			return Edit(specifiers[-1].end_byte, specifiers[-1].end_byte, f", {joined}")
		return Edit(named.start_byte + 1, named.end_byte - 1, f" {joined} ")
	if any(c.type == "namespace_import" for c in clause.named_children):
		return None
	default = next((c for c in clause.named_children if c.type == "identifier"), None)
	if default is None:
		return None
	return Edit(default.end_byte, default.end_byte, f", {{ {joined} }}")


def _new_import(source: ParsedSource, missing: List[str], module: str) -> Edit:
	top = source.root.named_children
	imports = [c for c in top if c.type == "import_statement"]
	quote = '"'
	if imports:
		src = imports[-1].child_by_field_name("source")
		if src is not None and source.text_of(src)[:1] == "'":
			quote = "'"
	statement = "import { %s } from %s%s%s;" % (", ".join(missing), quote, module, quote)
	if imports:
		anchor = imports[-1].end_byte
		return Edit(anchor, anchor, source.newline + statement)
	# Directives such as "use client" must stay first.
	anchor = 0
	for c in top:
		if c.type in PROLOGUE_NODES or _is_directive(c):
			anchor = c.end_byte
		elif c.type != "comment":
			break
	if anchor:
		return Edit(anchor, anchor, source.newline + statement)
	return Edit(0, 0, statement + source.newline)


def transform(
	source_text: str,
	candidates: Iterable[WrapCandidate],
	adapter: Optional[FrameworkAdapter] = None,
	file_path: str = "<input>",
) -> TransformResult:
	"""Rewrite ``source_text`` for ``candidates``. Raises ``ParseError`` if it does not parse."""
	return StringTransformer(adapter).transform(source_text, candidates, file_path)


__all__ = ["StringTransformer", "transform", "enclosing_component"]
