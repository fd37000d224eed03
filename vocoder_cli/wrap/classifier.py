# -*- coding: utf-8 -*-
"""Heuristic classification of string literals.

``classify_string`` decides whether a piece of text is user-facing copy that
should be translated. Rules run in a fixed order and the first match wins:

1. unconditional skips (empty, single char, no letters, URL, e-mail, path,
   colors, CSS units, MIME types, date-format tokens)
2. attribute rules (deny list, ``data-*``, ``onXxx`` handlers, allow list)
3. markup text containing a word
4. code identifiers (camelCase, PascalCase, SCREAMING_SNAKE, kebab-case)
5. utility-class strings (``flex items-center p-4``)
6. debug/serialization calls and thrown errors
7. medium confidence: variable initializers, phrases of 3+ words
8. low confidence: two words, capitalized word outside a bare literal
9. anything else is rejected

Later rules rely on earlier ones having already removed trivial input, so the
order must not change. The classifier never raises.
"""
from __future__ import annotations

import re
from typing import AbstractSet, Optional

from .types import ClassificationMetadata, ClassificationResult, Confidence, Context

# ── Unconditional skip shapes ──────────────────────────────────────────────────
URL_RE = re.compile(r"^(https?://|//|mailto:|tel:|ftp://)", re.I)
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
FILE_PATH_RE = re.compile(r"^(\.{0,2}/|[a-zA-Z]:\\)")
COLOR_HEX_RE = re.compile(r"^#([0-9a-fA-F]{3,8})$")
COLOR_FUNC_RE = re.compile(r"^(rgb|rgba|hsl|hsla)\s*\(", re.I)
CSS_UNIT_RE = re.compile(r"^\d+(\.\d+)?(px|em|rem|vh|vw|%|ch|ex|pt|pc|in|cm|mm)$")
MIME_TYPE_RE = re.compile(r"^(application|text|image|audio|video|font|multipart)/")
DATE_FORMAT_RE = re.compile(r"^[YMDHhmsaAZz\-/.\s:,]+$")

# ── Identifier shapes ─────────────────────────────────────────────────────────
CAMEL_CASE_RE = re.compile(r"^[a-z][a-zA-Z0-9]*$")
PASCAL_CASE_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
SCREAMING_SNAKE_RE = re.compile(r"^[A-Z][A-Z0-9_]+$")
KEBAB_CASE_RE = re.compile(r"^[a-z][a-z0-9-]+$")

HAS_LETTER_RE = re.compile(r"[a-zA-Z]")
HAS_WORD_RE = re.compile(r"[a-zA-Z]{2,}")
CAPITALIZED_RE = re.compile(r"^[A-Z][a-z]")

# ── Utility classes (Tailwind and friends) ────────────────────────────────────
UTILITY_CLASSES_RE = re.compile(r"^[a-z][\w-]*(\s+[a-z][\w-]*)*$")
UTILITY_CLASS_PREFIXES = (
	"flex", "grid", "block", "inline", "hidden", "absolute", "relative", "fixed", "sticky",
	"top", "bottom", "left", "right", "inset",
	"w-", "h-", "min-", "max-", "p-", "px-", "py-", "pt-", "pb-", "pl-", "pr-",
	"m-", "mx-", "my-", "mt-", "mb-", "ml-", "mr-",
	"text-", "font-", "leading-", "tracking-", "bg-", "border-", "rounded-",
	"shadow-", "opacity-", "z-", "gap-", "space-",
	"items-", "justify-", "self-", "place-",
	"overflow-", "cursor-", "transition-", "duration-", "ease-",
	"sm:", "md:", "lg:", "xl:", "2xl:", "dark:", "hover:", "focus:", "active:",
	"group-", "peer-",
)

NON_TRANSLATABLE_ATTRIBUTES = frozenset({
	"className", "class", "href", "src", "id", "key", "ref", "style",
	"data-testid", "data-cy", "data-test",
	"type", "name", "value", "action", "method", "encType", "target",
	"rel", "role", "tabIndex", "htmlFor", "for",
	"width", "height", "viewBox", "xmlns", "fill", "stroke",
	"onClick", "onChange", "onSubmit", "onBlur", "onFocus", "onKeyDown",
	"onKeyUp", "onKeyPress", "onMouseEnter", "onMouseLeave",
})

TRANSLATABLE_ATTRIBUTES = frozenset({
	"title", "placeholder", "alt", "aria-label", "aria-description",
	"aria-placeholder", "aria-roledescription", "aria-valuetext",
	"label", "description", "message", "heading", "caption",
	"helperText", "errorMessage", "successMessage", "tooltip",
})

NON_TRANSLATABLE_CALLS = frozenset({
	"console.log", "console.warn", "console.error", "console.info", "console.debug",
	"require", "import",
	"addEventListener", "removeEventListener",
	"querySelector", "querySelectorAll", "getElementById",
	"getAttribute", "setAttribute", "createElement",
	"JSON.parse", "JSON.stringify",
	"parseInt", "parseFloat",
	"encodeURIComponent", "decodeURIComponent", "encodeURI", "decodeURI",
	"RegExp",
})

TRANSLATABLE_VAR_NAMES = (
	"label", "message", "title", "description", "heading",
	"text", "caption", "subtitle", "tooltip",
	"errorMessage", "successMessage", "warningMessage", "infoMessage",
	"placeholder", "helperText", "hint",
	"buttonText", "linkText", "headerText", "footerText",
	"confirmText", "cancelText", "submitText",
	"greeting", "welcome", "instructions",
)

# Syntax node types the analyzer reports in ``ClassificationMetadata.parent_type``.
VARIABLE_INITIALIZER = "variable_declarator"
THROW_STATEMENT = "throw_statement"
ERROR_CONSTRUCTOR = "Error"


def _result(translatable: bool, confidence: Confidence, reason: str) -> ClassificationResult:
	return ClassificationResult(translatable=translatable, confidence=confidence, reason=reason)


def _skip(reason: str) -> ClassificationResult:
	return _result(False, Confidence.HIGH, reason)


def _unconditional_skip(text: str) -> Optional[str]:
	if not text:
		return "Empty or whitespace-only"
	if len(text) == 1:
		return "Single character"
	if not HAS_LETTER_RE.search(text):
		return "No alphabetic characters"
	if URL_RE.search(text):
		return "URL"
	if EMAIL_RE.search(text):
		return "Email address"
	if FILE_PATH_RE.search(text) and " " not in text:
		return "File path"
	if COLOR_HEX_RE.search(text) or COLOR_FUNC_RE.search(text):
		return "Color code"
	if CSS_UNIT_RE.search(text):
		return "CSS unit value"
	if MIME_TYPE_RE.search(text):
		return "MIME type"
	if DATE_FORMAT_RE.search(text):
		return "Date format string"
	return None


def _is_event_handler(name: str) -> bool:
	return len(name) > 2 and name.startswith("on") and name[2] == name[2].upper()


def is_identifier_shaped(text: str) -> bool:
	if " " in text:
		return False
	return bool(
		CAMEL_CASE_RE.search(text)
		or PASCAL_CASE_RE.search(text)
		or SCREAMING_SNAKE_RE.search(text)
		or KEBAB_CASE_RE.search(text)
	)


def is_utility_classes(text: str) -> bool:
	"""Detect strings that look like Tailwind / CSS utility classes."""
	if not UTILITY_CLASSES_RE.search(text):
		return False
	parts = text.split()
	hits = sum(1 for part in parts if part.startswith(UTILITY_CLASS_PREFIXES))
	return hits > len(parts) / 2


def classify_string(
	text: str,
	context: Context,
	metadata: Optional[ClassificationMetadata] = None,
	*,
	translatable_attributes: Optional[AbstractSet[str]] = None,
	non_translatable_attributes: Optional[AbstractSet[str]] = None,
) -> ClassificationResult:
	"""Decide whether ``text`` is translatable and with what confidence.

	The attribute sets default to the built-in lists; the analyzer passes the
	framework adapter's lists instead.
	"""
	metadata = metadata or ClassificationMetadata()
	context = Context(context)
	allow = TRANSLATABLE_ATTRIBUTES if translatable_attributes is None else translatable_attributes
	deny = NON_TRANSLATABLE_ATTRIBUTES if non_translatable_attributes is None else non_translatable_attributes
	trimmed = (text or "").strip()

	reason = _unconditional_skip(trimmed)
	if reason:
		return _skip(reason)

	attr = metadata.attribute_name
	if context is Context.MARKUP_ATTRIBUTE and attr:
		if attr in deny:
			return _skip(f"Non-translatable attribute: {attr}")
		if attr.startswith("data-") and attr not in allow:
			return _skip("data-* attribute")
		if _is_event_handler(attr):
			return _skip("Event handler attribute")
		if attr in allow:
			return _result(True, Confidence.HIGH, f"Translatable attribute: {attr}")

	if context is Context.MARKUP_TEXT and HAS_WORD_RE.search(trimmed):
		return _result(True, Confidence.HIGH, "Markup text with words")

	if is_identifier_shaped(trimmed):
		return _skip("Code identifier")

	if is_utility_classes(trimmed):
		return _skip("CSS/utility classes")

	call = metadata.call_name
	if call and call in NON_TRANSLATABLE_CALLS:
		return _skip(f"Inside {call}()")
	if metadata.parent_type == THROW_STATEMENT or call == ERROR_CONSTRUCTOR:
		return _skip("Error message")

	if (
		context in (Context.STRING_LITERAL, Context.TEMPLATE_LITERAL)
		and metadata.parent_type == VARIABLE_INITIALIZER
	):
		return _result(True, Confidence.MEDIUM, "String in variable declaration")

	words = trimmed.split()
	if len(words) >= 3:
		return _result(True, Confidence.MEDIUM, f"Multi-word string ({len(words)} words)")
	if len(words) == 2 and HAS_WORD_RE.search(trimmed):
		return _result(True, Confidence.LOW, "Short phrase (2 words)")

	if CAPITALIZED_RE.search(trimmed) and context is not Context.STRING_LITERAL:
		return _result(True, Confidence.LOW, "Capitalized word, possibly UI text")

	return _result(False, Confidence.LOW, "Ambiguous single-word string")


def is_translatable_var_name(name: str) -> bool:
	"""True if a variable name suggests it holds UI copy (``errorMessage``, ``pageTitle``)."""
	lower = (name or "").lower()
	if not lower:
		return False
	return any(lower == v.lower() or lower.endswith(v.lower()) for v in TRANSLATABLE_VAR_NAMES)
