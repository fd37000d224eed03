# -*- coding: utf-8 -*-
"""Framework adapters describe how a UI dialect spells translation.

The analyzer and transformer never hard-code ``<T>``, ``t()`` or the hook
name; they ask the adapter. A new dialect subclasses ``FrameworkAdapter``
and implements the two "already wrapped" predicates.
"""
from __future__ import annotations

import abc
import dataclasses
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Tuple

from .classifier import NON_TRANSLATABLE_ATTRIBUTES, TRANSLATABLE_ATTRIBUTES
from .types import Strategy

# Roles a local binding can play (values of ``Bindings.roles``).
ROLE_COMPONENT = "component"
ROLE_FUNCTION = "function"
ROLE_HOOK = "hook"


@dataclasses.dataclass
class Bindings:
	"""Local names that refer to the adapter's translation primitives in one file."""

	roles: Dict[str, str] = dataclasses.field(default_factory=dict)
	translate_names: set = dataclasses.field(default_factory=set)

	def bind(self, local: str, role: str) -> None:
		self.roles[local] = role
		if role == ROLE_FUNCTION:
			self.translate_names.add(local)

	def role_of(self, local: str):
		return self.roles.get(local)


@dataclasses.dataclass(frozen=True)
class FrameworkAdapter(abc.ABC):
	name: str
	extensions: Tuple[str, ...]
	import_source: str
	component_name: str
	function_name: str
	hook_name: str
	translatable_attributes: FrozenSet[str]
	non_translatable_attributes: FrozenSet[str]

	@abc.abstractmethod
	def is_already_wrapped(self, ancestors: Iterable, source, bindings: Bindings) -> bool:
		"""True if a markup node sits inside the wrapper component."""

	@abc.abstractmethod
	def is_translate_call(self, node, source, translate_names: AbstractSet[str]) -> bool:
		"""True if ``node`` is a call to a known translate function."""

	def required_imports(
		self,
		strategies: AbstractSet[Strategy],
		needs_hook: bool,
		needs_function: bool = False,
	) -> Tuple[List[str], str]:
		"""Specifiers the rewritten file must import, and where from."""
		specifiers: List[str] = []
		if Strategy.MARKUP_WRAP in strategies:
			specifiers.append(self.component_name)
		if Strategy.CALL_WRAP in strategies:
			if needs_hook:
				specifiers.append(self.hook_name)
			if needs_function:
				specifiers.append(self.function_name)
		return specifiers, self.import_source


_JSX_CONTAINERS = ("jsx_element", "jsx_self_closing_element")


def _tag_name_node(element):
	if element.type == "jsx_element":
		opening = element.child_by_field_name("open_tag")
		return opening.child_by_field_name("name") if opening is not None else None
	return element.child_by_field_name("name")


@dataclasses.dataclass(frozen=True)
class ReactAdapter(FrameworkAdapter):
	name: str = "react"
	extensions: Tuple[str, ...] = (".tsx", ".jsx", ".ts", ".js")
	import_source: str = "@vocoder/react"
	component_name: str = "T"
	function_name: str = "t"
	hook_name: str = "useVocoder"
	translatable_attributes: FrozenSet[str] = TRANSLATABLE_ATTRIBUTES
	non_translatable_attributes: FrozenSet[str] = NON_TRANSLATABLE_ATTRIBUTES - frozenset(
		a for a in NON_TRANSLATABLE_ATTRIBUTES if a.startswith("on")
	)

	def is_already_wrapped(self, ancestors, source, bindings):
		for ancestor in ancestors:
			if ancestor.type not in _JSX_CONTAINERS:
				continue
			tag = _tag_name_node(ancestor)
			if tag is None or tag.type != "identifier":
				continue
			if bindings.role_of(source.text_of(tag)) == ROLE_COMPONENT:
				return True
		return False

	def is_translate_call(self, node, source, translate_names):
		if node.type != "call_expression":
			return False
		callee = node.child_by_field_name("function")
		return callee is not None and callee.type == "identifier" and source.text_of(callee) in translate_names


react_adapter = ReactAdapter()
