# -*- coding: utf-8 -*-
"""
Test suite for files.py
"""
from __future__ import annotations

import pathlib
import tempfile
import unittest

from vocoder_cli.utils.files import (
    BUILD_IGNORE,
    atomic_write,
    discover_files,
    expand_braces,
    read_source,
    unified_diff,
    write_backup,
)


class TestExpandBraces(unittest.TestCase):
    def test_alternatives(self):
        self.assertEqual(
            expand_braces("src/**/*.{tsx,jsx}"),
            ["src/**/*.tsx", "src/**/*.jsx"],
        )

    def test_nested_groups_and_plain_patterns(self):
        self.assertEqual(
            expand_braces("{app,lib}/*.{ts,js}"),
            ["app/*.ts", "app/*.js", "lib/*.ts", "lib/*.js"],
        )
        self.assertEqual(expand_braces("src/index.tsx"), ["src/index.tsx"])


class TestDiscoverFiles(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = pathlib.Path(self._tmp.name).resolve()
        for rel in (
            "src/App.tsx",
            "src/lib/util.ts",
            "src/App.test.tsx",
            "src/Button.stories.tsx",
            "src/__tests__/thing.tsx",
            "src/node_modules/pkg/index.js",
            "dist/bundle.js",
            "src/styles.css",
        ):
            p = self.root / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text("", encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def rel(self, files):
        return [str(p.relative_to(self.root)).replace("\\", "/") for p in files]

    def test_default_patterns_and_ignores(self):
        """Test tests, stories, dependencies and build output are never returned."""
        self.assertEqual(self.rel(discover_files(self.root)), ["src/App.tsx", "src/lib/util.ts"])

    def test_user_exclude_and_duplicates(self):
        files = discover_files(self.root, ["src/**/*.tsx", "src/App.tsx", "**/*.js"], ["src/lib/**"])
        self.assertEqual(self.rel(files), ["src/App.tsx"])

    def test_build_only_ignores_keep_tests(self):
        """Test the narrower ignore list still drops dependencies and build output."""
        files = discover_files(self.root, ["**/*.{tsx,ts,js}"], default_ignore=BUILD_IGNORE)
        self.assertEqual(
            sorted(self.rel(files)),
            ["src/App.test.tsx", "src/App.tsx", "src/Button.stories.tsx", "src/__tests__/thing.tsx", "src/lib/util.ts"],
        )


class TestWrites(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = pathlib.Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_atomic_write_and_backup(self):
        target = self.root / "App.tsx"
        atomic_write(target, "old\n")
        backup = write_backup(target, "old\n")
        atomic_write(target, "new\n")
        self.assertEqual(target.read_text(encoding="utf-8"), "new\n")
        self.assertEqual(backup.read_text(encoding="utf-8"), "old\n")
        self.assertRegex(backup.name, r"^App\.tsx\.[0-9a-f]{8}\.bak$")
        self.assertEqual(sorted(p.name for p in self.root.iterdir()), sorted([target.name, backup.name]))

    def test_crlf_round_trip(self):
        """Test CRLF line endings survive a read and an atomic write unchanged."""
        target = self.root / "App.tsx"
        target.write_bytes(b"// a\r\nexport const x = 1;\r\n")
        text = read_source(target)
        self.assertEqual(text, "// a\r\nexport const x = 1;\r\n")
        atomic_write(target, text)
        self.assertEqual(target.read_bytes(), b"// a\r\nexport const x = 1;\r\n")

    def test_unified_diff(self):
        diff = unified_diff("a\nb\n", "a\nc\n", pathlib.Path("src/App.tsx"))
        self.assertIn("--- a/src/App.tsx", diff)
        self.assertIn("-b\n", diff)
        self.assertIn("+c\n", diff)
        self.assertEqual(unified_diff("same\n", "same\n", pathlib.Path("x")), "")


if __name__ == "__main__":
    unittest.main()
