# -*- coding: utf-8 -*-
"""
Test suite for config.py

The .env loader is patched out so the developer's own environment never leaks in.
"""
from __future__ import annotations

import json
import os
import pathlib
import subprocess
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from vocoder_cli.utils.config import (
    DEFAULT_API_URL,
    ConfigError,
    MergedConfig,
    detect_branch,
    find_config_file,
    get_merged_config,
    is_target_branch,
    match_branch_pattern,
    upsert_env_value,
    validate_api_config,
    validate_config_file,
)
from vocoder_cli.utils.files import DEFAULT_INCLUDE


class ConfigTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = pathlib.Path(self._tmp.name)
        env = patch.dict(os.environ, {}, clear=True)
        env.start()
        self.addCleanup(env.stop)
        dotenv = patch("vocoder_cli.utils.config.load_env")
        dotenv.start()
        self.addCleanup(dotenv.stop)

    def tearDown(self):
        self._tmp.cleanup()

    def write_config(self, data, directory=None) -> pathlib.Path:
        path = (directory or self.root) / "vocoder.config.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path


class TestMergedConfig(ConfigTestCase):
    """Priority: CLI flags > config file > environment > defaults."""

    def test_defaults(self):
        cfg = get_merged_config(start_dir=self.root)
        self.assertEqual(cfg.include, list(DEFAULT_INCLUDE))
        self.assertEqual(cfg.exclude, [])
        self.assertEqual(cfg.api_url, DEFAULT_API_URL)
        self.assertIsNone(cfg.api_key)
        self.assertIsNone(cfg.config_file)
        self.assertEqual(cfg.sources["include"], "default")
        self.assertEqual(cfg.sources["api_key"], "unset")

    def test_environment(self):
        os.environ.update({
            "VOCODER_API_KEY": "vc_env",
            "VOCODER_API_URL": "https://env.example.com/",
            "VOCODER_EXTRACTION_PATTERN": "app/**/*.tsx",
        })
        cfg = get_merged_config(start_dir=self.root)
        self.assertEqual(cfg.api_key, "vc_env")
        self.assertEqual(cfg.api_url, "https://env.example.com")
        self.assertEqual(cfg.include, ["app/**/*.tsx"])
        self.assertEqual(cfg.sources["include"], "environment")

    def test_file_beats_environment(self):
        os.environ["VOCODER_API_KEY"] = "vc_env"
        path = self.write_config({"include": "lib/**/*.tsx", "apiKey": "vc_file", "apiUrl": "https://file.example.com/"})
        cfg = get_merged_config(start_dir=self.root)
        self.assertEqual(cfg.api_key, "vc_file")
        self.assertEqual(cfg.api_url, "https://file.example.com")
        self.assertEqual(cfg.include, ["lib/**/*.tsx"])
        self.assertEqual(cfg.config_file, path.resolve())
        self.assertEqual(cfg.sources["api_key"], "config file")

    def test_cli_beats_file(self):
        self.write_config({"include": ["lib/**/*.tsx"], "exclude": ["lib/legacy/**"]})
        cfg = get_merged_config(include=["src/**/*.tsx"], exclude=["**/*.gen.tsx"], start_dir=self.root)
        self.assertEqual(cfg.include, ["src/**/*.tsx"])
        self.assertEqual(cfg.exclude, ["**/*.gen.tsx"])
        self.assertEqual(cfg.sources["include"], "cli")
        self.assertEqual(cfg.sources["exclude"], "cli")

    def test_config_found_in_parent_directory(self):
        path = self.write_config({"include": ["lib/**/*.tsx"]})
        nested = self.root / "packages" / "web"
        nested.mkdir(parents=True)
        self.assertEqual(find_config_file(nested), path.resolve())
        self.assertEqual(get_merged_config(start_dir=nested).include, ["lib/**/*.tsx"])

    def test_invalid_json_raises(self):
        (self.root / "vocoder.config.json").write_text("{not json", encoding="utf-8")
        with self.assertRaises(ConfigError):
            get_merged_config(start_dir=self.root)


class TestEnvFile(ConfigTestCase):
    def test_creates_missing_file(self):
        path = self.root / ".env"
        upsert_env_value(path, "VOCODER_API_KEY", "vc_new")
        self.assertEqual(path.read_text(encoding="utf-8"), "VOCODER_API_KEY=vc_new\n")

    def test_existing_value_needs_overwrite(self):
        """Test a different key is refused unless overwriting is allowed; other lines survive."""
        path = self.root / ".env"
        path.write_text("OTHER=1\nVOCODER_API_KEY=vc_old\n", encoding="utf-8")
        with self.assertRaises(ConfigError):
            upsert_env_value(path, "VOCODER_API_KEY", "vc_new")
        upsert_env_value(path, "VOCODER_API_KEY", "vc_old")
        upsert_env_value(path, "VOCODER_API_KEY", "vc_new", allow_overwrite=True)
        self.assertEqual(path.read_text(encoding="utf-8"), "OTHER=1\nVOCODER_API_KEY=vc_new\n")

    def test_appends_to_file_without_the_key(self):
        path = self.root / ".env"
        path.write_text("OTHER=1", encoding="utf-8")
        upsert_env_value(path, "VOCODER_API_KEY", "vc_new")
        self.assertEqual(path.read_text(encoding="utf-8"), "OTHER=1\nVOCODER_API_KEY=vc_new\n")


class TestValidation(unittest.TestCase):
    def test_config_file_types(self):
        """Test wrong types are rejected and good values normalized."""
        with self.assertRaises(ConfigError):
            validate_config_file(["not", "an", "object"])
        with self.assertRaises(ConfigError):
            validate_config_file({"include": 42})
        with self.assertRaises(ConfigError):
            validate_config_file({"apiKey": 123})
        with self.assertRaises(ConfigError):
            validate_config_file({"apiUrl": "ftp://example.com"})
        self.assertEqual(
            validate_config_file({"include": "src/**", "apiUrl": "http://localhost:3000/"}),
            {"include": ["src/**"], "apiUrl": "http://localhost:3000"},
        )

    def test_api_config(self):
        ok = MergedConfig(include=[], exclude=[], api_url="https://vocoder.app", api_key="vc_123")
        validate_api_config(ok)
        for key in (None, "", "sk_123"):
            with self.assertRaises(ConfigError):
                validate_api_config(MergedConfig(include=[], exclude=[], api_url="https://vocoder.app", api_key=key))


class TestBranch(unittest.TestCase):
    def test_override_and_environment(self):
        with patch.dict(os.environ, {"GITHUB_REF_NAME": "feature/ci"}, clear=True):
            self.assertEqual(detect_branch("release"), "release")
            self.assertEqual(detect_branch(), "feature/ci")
        with patch.dict(os.environ, {"VOCODER_BRANCH": "explicit", "CIRCLE_BRANCH": "circle"}, clear=True):
            self.assertEqual(detect_branch(), "explicit")

    def test_git(self):
        completed = MagicMock(stdout="develop\n")
        with patch.dict(os.environ, {}, clear=True), \
                patch("vocoder_cli.utils.config.subprocess.run", return_value=completed) as run:
            self.assertEqual(detect_branch(), "develop")
        self.assertEqual(run.call_args[0][0], ["git", "rev-parse", "--abbrev-ref", "HEAD"])

    def test_fallback_to_main(self):
        """Test a missing git binary or a non-repository falls back to main."""
        errors = [OSError("git not found"), subprocess.CalledProcessError(128, ["git"])]
        for error in errors:
            with patch.dict(os.environ, {}, clear=True), \
                    patch("vocoder_cli.utils.config.subprocess.run", side_effect=error):
                self.assertEqual(detect_branch(), "main")

    def test_is_target_branch(self):
        self.assertTrue(is_target_branch("main", ["main", "release"]))
        self.assertFalse(is_target_branch("feature/x", ["main"]))
        self.assertTrue(is_target_branch("main", ["release/*", "main"]))
        self.assertTrue(is_target_branch("release/2026.01", ["release/*", "main"]))
        self.assertFalse(is_target_branch("feature/new-ui", ["release/*", "main"]))


class TestBranchPattern(unittest.TestCase):
    def test_exact_names(self):
        self.assertTrue(match_branch_pattern("main", "main"))
        self.assertFalse(match_branch_pattern("develop", "main"))
        self.assertFalse(match_branch_pattern("main2", "main"))

    def test_single_star_stays_in_one_segment(self):
        self.assertTrue(match_branch_pattern("release/v1", "release/*"))
        self.assertFalse(match_branch_pattern("release/v1/hotfix", "release/*"))

    def test_double_star_crosses_segments(self):
        self.assertTrue(match_branch_pattern("feature/mobile/ios", "feature/**"))
        self.assertFalse(match_branch_pattern("feature/mobile/ios", "feature/*"))

    def test_dots_are_literal(self):
        self.assertTrue(match_branch_pattern("v1.2", "v1.2"))
        self.assertFalse(match_branch_pattern("v112", "v1.2"))


if __name__ == "__main__":
    unittest.main()
