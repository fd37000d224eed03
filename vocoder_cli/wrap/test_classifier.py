# -*- coding: utf-8 -*-
"""
Test suite for classifier.py

Covers rule precedence, the attribute allow/deny lists and confidence tiers.
"""
from __future__ import annotations

import unittest

from vocoder_cli.wrap.classifier import classify_string, is_identifier_shaped, is_translatable_var_name, is_utility_classes
from vocoder_cli.wrap.types import ClassificationMetadata, Confidence, Context, filter_by_confidence


def attr(name: str) -> ClassificationMetadata:
    return ClassificationMetadata(attribute_name=name, inside_component=True)


class TestUnconditionalSkips(unittest.TestCase):
    """Trivial and machine-shaped strings are never translatable."""

    def test_empty_single_char_and_no_letters(self):
        """Test empty, single character and punctuation-only input."""
        for text in ("", "   ", "x", "...", "42", "--"):
            for context in Context:
                result = classify_string(text, context)
                self.assertFalse(result.translatable, (text, context))
                self.assertEqual(result.confidence, Confidence.HIGH)

    def test_machine_shapes_win_over_allow_listed_attribute(self):
        """Test that URL/email/path/color/unit/MIME/date shapes beat the allow list."""
        shapes = [
            "https://example.com/docs",
            "mailto:team@example.com",
            "team@example.com",
            "./assets/logo.png",
            "#ff00aa",
            "rgba(0, 0, 0, 0.5)",
            "12px",
            "application/json",
            "YYYY-MM-DD",
        ]
        for text in shapes:
            result = classify_string(text, Context.MARKUP_ATTRIBUTE, attr("placeholder"))
            self.assertFalse(result.translatable, text)

    def test_path_with_spaces_is_not_a_path(self):
        """Test that a sentence starting with a slash is still considered."""
        result = classify_string("/ separated words in a sentence", Context.STRING_LITERAL)
        self.assertTrue(result.translatable)


class TestAttributeRules(unittest.TestCase):
    """Attribute context rules run before identifier and utility checks."""

    def test_class_name_rejected(self):
        """Test that className values are never translated."""
        result = classify_string("flex items-center p-4", Context.MARKUP_ATTRIBUTE, attr("className"))
        self.assertFalse(result.translatable)
        self.assertEqual(result.confidence, Confidence.HIGH)

    def test_placeholder_accepted_high(self):
        """Test that an allow-listed attribute is accepted at high confidence."""
        result = classify_string("Enter your name", Context.MARKUP_ATTRIBUTE, attr("placeholder"))
        self.assertTrue(result.translatable)
        self.assertEqual(result.confidence, Confidence.HIGH)

    def test_allow_list_beats_identifier_shape(self):
        """Test alt="MyLogo" is accepted even though it looks like PascalCase."""
        result = classify_string("MyLogo", Context.MARKUP_ATTRIBUTE, attr("alt"))
        self.assertTrue(result.translatable)
        self.assertEqual(result.confidence, Confidence.HIGH)

    def test_data_attributes_rejected(self):
        """Test generic data-* attributes are skipped."""
        result = classify_string("Some label text", Context.MARKUP_ATTRIBUTE, attr("data-section"))
        self.assertFalse(result.translatable)
        self.assertEqual(result.reason, "data-* attribute")

    def test_event_handler_attribute_rejected(self):
        """Test on + capitalized names are treated as handlers."""
        result = classify_string("Do the thing now", Context.MARKUP_ATTRIBUTE, attr("onHover"))
        self.assertFalse(result.translatable)
        self.assertEqual(result.reason, "Event handler attribute")

    def test_custom_allow_list(self):
        """Test that callers can pass their own attribute lists."""
        result = classify_string(
            "Pick one",
            Context.MARKUP_ATTRIBUTE,
            attr("hint"),
            translatable_attributes=frozenset({"hint"}),
        )
        self.assertTrue(result.translatable)
        self.assertEqual(result.confidence, Confidence.HIGH)


class TestTextAndLiteralRules(unittest.TestCase):
    """Markup text, identifiers, utility classes and call contexts."""

    def test_markup_text_with_words(self):
        """Test markup text is accepted when it contains a word."""
        result = classify_string("Welcome to our app", Context.MARKUP_TEXT)
        self.assertTrue(result.translatable)
        self.assertEqual(result.confidence, Confidence.HIGH)

    def test_identifiers_rejected(self):
        """Test camelCase, PascalCase, SCREAMING_SNAKE and kebab-case."""
        for text in ("userName", "UserProfile", "MAX_RETRIES", "primary-button"):
            result = classify_string(text, Context.STRING_LITERAL)
            self.assertFalse(result.translatable, text)
            self.assertEqual(result.reason, "Code identifier")

    def test_utility_classes_rejected(self):
        """Test Tailwind-like class lists outside attributes."""
        result = classify_string("flex items-center p-4", Context.STRING_LITERAL)
        self.assertFalse(result.translatable)
        self.assertEqual(result.reason, "CSS/utility classes")

    def test_non_translatable_call(self):
        """Test strings passed to console.log are skipped."""
        meta = ClassificationMetadata(call_name="console.log")
        result = classify_string("Debug output for users", Context.STRING_LITERAL, meta)
        self.assertFalse(result.translatable)
        self.assertEqual(result.reason, "Inside console.log()")

    def test_thrown_error_message(self):
        """Test throw statements and new Error(...) are skipped."""
        thrown = classify_string("Something went wrong here", Context.STRING_LITERAL, ClassificationMetadata(parent_type="throw_statement"))
        constructed = classify_string("Something went wrong here", Context.STRING_LITERAL, ClassificationMetadata(call_name="Error"))
        self.assertFalse(thrown.translatable)
        self.assertFalse(constructed.translatable)
        self.assertEqual(thrown.reason, "Error message")

    def test_variable_initializer_is_medium(self):
        """Test that a declaration initializer is accepted at medium confidence."""
        meta = ClassificationMetadata(parent_type="variable_declarator")
        result = classify_string("Save changes", Context.STRING_LITERAL, meta)
        self.assertTrue(result.translatable)
        self.assertEqual(result.confidence, Confidence.MEDIUM)
        self.assertEqual(result.reason, "String in variable declaration")

    def test_word_count_tiers(self):
        """Test 3+ words are medium and 2 words are low."""
        three = classify_string("one two three", Context.STRING_LITERAL)
        two = classify_string("Save changes", Context.STRING_LITERAL)
        self.assertEqual(three.confidence, Confidence.MEDIUM)
        self.assertEqual(three.reason, "Multi-word string (3 words)")
        self.assertEqual(two.confidence, Confidence.LOW)
        self.assertTrue(two.translatable)

    def test_capitalized_word_depends_on_context(self):
        """Test a lone capitalized word is low in templates, rejected as a bare literal."""
        template = classify_string("Hello!", Context.TEMPLATE_LITERAL)
        literal = classify_string("Hello!", Context.STRING_LITERAL)
        self.assertTrue(template.translatable)
        self.assertEqual(template.confidence, Confidence.LOW)
        self.assertFalse(literal.translatable)
        self.assertEqual(literal.reason, "Ambiguous single-word string")

    def test_classifier_never_raises(self):
        """Test odd input still yields an answer."""
        for text in (None, "\u200b", "日本語のテキスト", "a" * 5000):
            result = classify_string(text, Context.STRING_LITERAL)
            self.assertIsInstance(result.translatable, bool)


class TestHelpers(unittest.TestCase):
    def test_translatable_var_names(self):
        """Test exact and suffix matches, case-insensitive."""
        self.assertTrue(is_translatable_var_name("errorMessage"))
        self.assertTrue(is_translatable_var_name("pageTitle"))
        self.assertTrue(is_translatable_var_name("LABEL"))
        self.assertFalse(is_translatable_var_name("count"))
        self.assertFalse(is_translatable_var_name(""))

    def test_shape_helpers(self):
        self.assertTrue(is_identifier_shaped("fooBar"))
        self.assertFalse(is_identifier_shaped("foo bar"))
        self.assertTrue(is_utility_classes("grid gap-4 text-sm"))
        self.assertFalse(is_utility_classes("please read the docs"))

    def test_confidence_threshold(self):
        """Test ordering high > medium > low."""
        self.assertTrue(Confidence.HIGH.meets(Confidence.MEDIUM))
        self.assertTrue(Confidence.MEDIUM.meets(Confidence.MEDIUM))
        self.assertFalse(Confidence.LOW.meets(Confidence.HIGH))
        self.assertTrue(Confidence.LOW.meets("low"))
        self.assertEqual(filter_by_confidence([], Confidence.LOW), [])


if __name__ == "__main__":
    unittest.main()
