# -*- coding: utf-8 -*-
"""Collect strings that are already wrapped, for submission to the service.

Two shapes are recognised: calls to a bound translate function (first
argument, plus an optional ``{ context, formality }`` options object) and
wrapper-component elements (``msg`` attribute, else their children with
``{name}`` placeholders).
"""
from __future__ import annotations

import pathlib
from typing import Dict, Iterable, List, Optional

from ..utils.files import BUILD_IGNORE, discover_files, read_source
from ..utils.logging import get_logger
from .adapters import ROLE_COMPONENT, Bindings, FrameworkAdapter, react_adapter
from .analyzer import learn_bindings
from .syntax import (
	JSX_TEXT_PARTS,
	ParsedSource,
	jsx_attribute_parts,
	jsx_expression_inner,
	normalize_text,
	parse_source,
	string_value,
	template_text,
	walk,
)
from .types import ExtractedString, WrapError

logger = get_logger(__name__)

OPTION_KEYS = ("context", "formality")


def literal_text(node, source: ParsedSource) -> Optional[str]:
	if node is None:
		return None
	if node.type == "string":
		return string_value(node, source)
	if node.type == "template_string":
		return template_text(node, source)
	return None


def _call_options(node, source: ParsedSource) -> Dict[str, str]:
	options: Dict[str, str] = {}
	if node is None or node.type != "object":
		return options
	for pair in node.named_children:
		if pair.type != "pair":
			continue
		key = pair.child_by_field_name("key")
		value = pair.child_by_field_name("value")
		if key is None or value is None or value.type != "string":
			continue
		name = string_value(key, source) if key.type == "string" else source.text_of(key)
		if name in OPTION_KEYS:
			options[name] = string_value(value, source)
	return options


def _attribute_text(opening, name: str, source: ParsedSource) -> Optional[str]:
	for attr in opening.named_children:
		if attr.type != "jsx_attribute":
			continue
		attr_name, value = jsx_attribute_parts(attr, source)
		if attr_name != name or value is None:
			continue
		if value.type == "jsx_expression":
			value = jsx_expression_inner(value)
		return literal_text(value, source)
	return None


def children_text(element, source: ParsedSource) -> str:
	parts: List[str] = []
	for child in element.named_children:
		if child.type in JSX_TEXT_PARTS:
			parts.append(source.text_of(child))
		elif child.type == "jsx_expression":
			inner = jsx_expression_inner(child)
			if inner is None:
				continue
			if inner.type == "identifier":
				parts.append("{%s}" % source.text_of(inner))
			else:
				parts.append(literal_text(inner, source) or "")
	return normalize_text("".join(parts))


def dedupe(strings: Iterable[ExtractedString]) -> List[ExtractedString]:
	"""Keep the first occurrence of each text/context/formality combination."""
	seen = set()
	unique: List[ExtractedString] = []
	for s in strings:
		if s.dedupe_key in seen:
			continue
		seen.add(s.dedupe_key)
		unique.append(s)
	return unique


class StringExtractor:
	def __init__(self, adapter: Optional[FrameworkAdapter] = None) -> None:
		self.adapter = adapter or react_adapter

	def extract_code(self, code: str, file_path: str = "<input>") -> List[ExtractedString]:
		source = parse_source(code, file_path)
		bindings = Bindings()
		found: List[ExtractedString] = []
		for node in walk(source.root):
			if node.type in ("import_statement", "variable_declarator"):
				learn_bindings(node, source, self.adapter, bindings)
			elif node.type == "call_expression":
				if self.adapter.is_translate_call(node, source, bindings.translate_names):
					self._from_call(node, source, found)
			elif node.type in ("jsx_element", "jsx_self_closing_element"):
				self._from_element(node, source, bindings, found)
		return found

	def extract_file(self, path) -> List[ExtractedString]:
		path = pathlib.Path(path)
		return self.extract_code(read_source(path), str(path))

	def extract_project(
		self,
		include: Optional[Iterable[str]] = None,
		exclude: Optional[Iterable[str]] = None,
		root=None,
	) -> List[ExtractedString]:
		base = pathlib.Path(root or ".").resolve()
		collected: List[ExtractedString] = []
		for p in discover_files(base, include, exclude, default_ignore=BUILD_IGNORE):
			try:
				collected.extend(self.extract_file(p))
			except (WrapError, OSError, UnicodeDecodeError) as e:
				logger.warning("Failed to extract from %s: %s", p, e)
		unique = dedupe(collected)
		logger.info("Extracted %d unique string(s) from %s", len(unique), base)
		return unique

	def _from_call(self, node, source, out) -> None:
		args = node.child_by_field_name("arguments")
		if args is None or args.type != "arguments":
			return
		positional = [c for c in args.named_children if c.type != "comment"]
		if not positional:
			return
		text = literal_text(positional[0], source)
		if not text or not text.strip():
			return
		options = _call_options(positional[1] if len(positional) > 1 else None, source)
		out.append(ExtractedString(
			text=text.strip(),
			file=source.path,
			line=source.node_location(node)[0],
			context=options.get("context"),
			formality=options.get("formality"),
		))

	def _from_element(self, node, source, bindings, out) -> None:
		opening = node.child_by_field_name("open_tag") if node.type == "jsx_element" else node
		if opening is None:
			return
		tag = opening.child_by_field_name("name")
		if tag is None or tag.type != "identifier" or bindings.role_of(source.text_of(tag)) != ROLE_COMPONENT:
			return
		text = _attribute_text(opening, "msg", source)
		if not text and node.type == "jsx_element":
			text = children_text(node, source)
		if not text or not text.strip():
			return
		out.append(ExtractedString(
			text=text.strip(),
			file=source.path,
			line=source.node_location(node)[0],
			context=_attribute_text(opening, "context", source),
			formality=_attribute_text(opening, "formality", source),
		))


def extract(source_text: str, adapter: Optional[FrameworkAdapter] = None, file_path: str = "<input>") -> List[ExtractedString]:
	return StringExtractor(adapter).extract_code(source_text, file_path)


__all__ = ["StringExtractor", "extract", "dedupe", "children_text"]
