#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
vocoder: wrap user-facing strings for translation and sync them with the service.

Commands
--------

1. Preview which strings would be wrapped (no writes):
   vocoder wrap --dry-run

2. Preview with a unified diff and lower the confidence threshold:
   vocoder wrap --dry-run --diff --confidence medium

3. Wrap, confirming each string (writes files, creates .bak backups):
   vocoder wrap --interactive

4. List strings that are already wrapped:
   vocoder extract --json

5. Submit wrapped strings for the current branch and save the translations:
   vocoder sync --output public/translations.json

6. Authorize the project in a browser and save VOCODER_API_KEY to .env:
   vocoder init --source-locale en --target-locales fr,de

Configuration precedence: flags > vocoder.config.json > VOCODER_* environment (.env) > defaults.
Exit codes: 0 success, 1 runtime failure, 2 usage or configuration error.
"""

from __future__ import annotations
import argparse
import concurrent.futures as cf
import dataclasses
import json
import logging
import os
import pathlib
import sys
import webbrowser
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..api.client import LimitError, VocoderClient, VocoderError, VocoderRequestError
from ..utils.config import (
	ENV_API_KEY,
	ConfigError,
	detect_branch,
	get_merged_config,
	is_target_branch,
	upsert_env_value,
	validate_api_config,
)
from ..utils.files import atomic_write, read_source, unified_diff, write_backup
from ..utils.logging import ROOT_LOGGER_NAME, get_logger, temporarily
from ..wrap.adapters import react_adapter
from ..wrap.analyzer import StringAnalyzer
from ..wrap.extractor import StringExtractor
from ..wrap.transformer import StringTransformer
from ..wrap.types import Confidence, Strategy, TransformResult, WrapCandidate, WrapError, filter_by_confidence

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

NEWLINE = "\n"


# ── Presentation ──────────────────────────────────────────────────────────────
def truncate(text: str, max_len: int) -> str:
	if len(text) <= max_len:
		return text
	return text[: max_len - 3] + "..."


def strategy_label(c: WrapCandidate) -> str:
	if c.strategy is Strategy.MARKUP_WRAP:
		return f"<{react_adapter.component_name}>"
	return f"{react_adapter.function_name}()"


def summarize(candidates: Iterable[WrapCandidate]) -> str:
	"""One-line tally, e.g. ``2 high, 1 medium | 2 <T>, 1 t()``."""
	levels: Dict[Confidence, int] = {}
	markup = calls = 0
	for c in candidates:
		levels[c.confidence] = levels.get(c.confidence, 0) + 1
		if c.strategy is Strategy.MARKUP_WRAP:
			markup += 1
		else:
			calls += 1
	parts = [f"{levels[level]} {level.value}" for level in Confidence if levels.get(level)]
	shapes = []
	if markup:
		shapes.append(f"{markup} <{react_adapter.component_name}>")
	if calls:
		shapes.append(f"{calls} {react_adapter.function_name}()")
	return ", ".join(parts) + " | " + ", ".join(shapes)


def group_by_file(candidates: Iterable[WrapCandidate]) -> Dict[str, List[WrapCandidate]]:
	by_file: Dict[str, List[WrapCandidate]] = {}
	for c in candidates:
		by_file.setdefault(c.file, []).append(c)
	return by_file


def limit_error_guidance(limit: LimitError) -> List[str]:
	"""What to tell the user when the service refuses work over a plan limit."""
	if limit.limit_type == "providers":
		return [
			"Provider setup required: no translation provider is available on this plan.",
			"Add your own DeepL API key in the organization settings, or upgrade your plan.",
			f"Settings: {limit.upgrade_url}",
		]
	if limit.limit_type == "source_strings":
		return [
			f"Active source string limit reached on the {limit.plan_id} plan.",
			f"Active strings: {limit.current}",
			f"Required for this sync: {limit.required}",
			"Remove unused strings or upgrade your plan.",
			f"Upgrade: {limit.upgrade_url}",
		]
	if limit.limit_type == "translation_chars":
		return [
			f"Translation character limit reached on the {limit.plan_id} plan.",
			f"Characters used: {limit.current}",
			f"Required for this sync: {limit.required}",
			f"Upgrade: {limit.upgrade_url}",
		]
	return [
		f"Plan: {limit.plan_id}",
		f"Current: {limit.current}",
		f"Required: {limit.required}",
		f"Upgrade: {limit.upgrade_url}",
	]


def report_service_error(action: str, e: VocoderError) -> int:
	limit = e.limit_error if isinstance(e, VocoderRequestError) else None
	logger.error("%s failed: %s", action, limit.message if limit else e)
	if limit:
		for line in limit_error_guidance(limit):
			print(f"  {line}")
	return EXIT_FAILURE


def _rel(base: pathlib.Path, file: str) -> str:
	try:
		return str(pathlib.Path(file).relative_to(base))
	except ValueError:
		return file


# ── Interactive confirmation ──────────────────────────────────────────────────
def interactive_confirm(
	by_file: Dict[str, List[WrapCandidate]],
	base: pathlib.Path,
	ask: Callable[[str], str] = input,
) -> List[WrapCandidate]:
	"""Ask about each candidate: (y)es (n)o (a)ll remaining (s)kip file (q)uit."""
	accepted: List[WrapCandidate] = []
	print("\nInteractive mode - confirm each string:")
	print("  (y)es  (n)o  (a)ll remaining  (s)kip file  (q)uit\n")

	files = list(by_file.items())
	for fi, (file, candidates) in enumerate(files):
		print(_rel(base, file))
		for ci, c in enumerate(candidates):
			print(f"  L{c.line} {strategy_label(c)} \"{truncate(c.text, 60)}\"")
			try:
				answer = ask("  Wrap? [y/n/a/s/q] ").strip().lower()
			except EOFError:
				answer = "q"
			if answer in ("y", "yes"):
				accepted.append(c)
			elif answer in ("a", "all"):
				accepted.extend(candidates[ci:])
				for _, rest in files[fi + 1:]:
					accepted.extend(rest)
				return accepted
			elif answer in ("s", "skip"):
				break
			elif answer in ("q", "quit"):
				return accepted
		print()
	return accepted


# ── Per-file transform ────────────────────────────────────────────────────────
def process_file(
	p: pathlib.Path,
	candidates: List[WrapCandidate],
	transformer: StringTransformer,
	dry: bool = False,
	no_backup: bool = False,
	emit_diff: bool = False,
	max_file_size: Optional[int] = None,
) -> Tuple[Optional[TransformResult], Optional[str]]:
	"""Transform one file. Returns (result, diff); result is None if the file was skipped."""
	if p.is_symlink():
		logger.warning("Skipping symlink: %s", p)
		return None, None
	if max_file_size and p.stat().st_size > max_file_size:
		logger.warning("Skipping large file (> %d bytes): %s", max_file_size, p)
		return None, None

	text = read_source(p)
	result = transformer.transform(text, candidates, str(p))
	if result.skipped:
		logger.info("%s: %d candidate(s) skipped", p, len(result.skipped))
	if not result.changed or result.output == text:
		return result, None

	diff = unified_diff(text, result.output, p) if emit_diff else None
	if dry:
		return result, diff
	if not no_backup:
		try:
			write_backup(p, text)
		except OSError as e:
			logger.warning("Could not write backup for %s: %s", p, e)
	atomic_write(p, result.output)
	return result, diff


# ── Commands ──────────────────────────────────────────────────────────────────
def _merged_config(args: argparse.Namespace, base: pathlib.Path):
	return get_merged_config(include=args.include, exclude=args.exclude, start_dir=base)


def run_wrap(args: argparse.Namespace) -> int:
	base = pathlib.Path(args.root).resolve()
	cfg = _merged_config(args, base)

	analyzer = StringAnalyzer(react_adapter)
	found = analyzer.analyze_project(cfg.include, cfg.exclude, base, threads=args.threads)
	if not found:
		print("No unwrapped strings found")
		return EXIT_OK
	print(f"Found {len(found)} candidate strings")

	filtered = filter_by_confidence(found, Confidence(args.confidence))
	if not filtered:
		print(f"No strings meet the {args.confidence} confidence threshold.")
		print("Try --confidence medium or --confidence low to see more candidates.")
		return EXIT_OK
	print(f"  {len(filtered)} strings meet {args.confidence} confidence threshold")

	by_file = group_by_file(filtered)

	if args.dry_run:
		print("\nDry run - would wrap:\n")
		for file, candidates in by_file.items():
			print(_rel(base, file))
			for c in candidates:
				print(f"  L{c.line} [{c.confidence.value}] {strategy_label(c)} \"{truncate(c.text, 50)}\"")
				if args.verbose:
					print(f"        {c.reason}")
			print()
		print(f"Summary: {summarize(filtered)}")
		if not args.diff:
			print("\nRun without --dry-run to apply changes.")
			return EXIT_OK

	if args.interactive and not args.dry_run:
		accepted = interactive_confirm(by_file, base)
		if not accepted:
			print("No strings selected for wrapping.")
			return EXIT_OK
		by_file = group_by_file(accepted)

	transformer = StringTransformer(react_adapter)
	failed: List[str] = []

	def _work(item):
		file, candidates = item
		try:
			return file, process_file(
				pathlib.Path(file),
				candidates,
				transformer,
				dry=args.dry_run,
				no_backup=args.no_backup,
				emit_diff=args.diff,
				max_file_size=args.max_file_size,
			)
		except (WrapError, OSError, UnicodeDecodeError, ValueError) as e:
			# One bad file must not stop the rest of the batch.
			logger.error("Error processing %s: %s", file, e)
			failed.append(file)
			return file, (None, None)

	results: List[TransformResult] = []
	diffs: List[str] = []
	with cf.ThreadPoolExecutor(max_workers=max(1, args.threads)) as ex:
		for _, (result, diff) in ex.map(_work, by_file.items()):
			if result is not None:
				results.append(result)
			if diff:
				diffs.append(diff)

	if args.diff and diffs:
		sys.stdout.write(NEWLINE.join(diffs))

	wrapped = sum(r.wrapped_count for r in results)
	modified = sum(1 for r in results if r.changed)
	skipped = sum(len(r.skipped) for r in results)

	if args.report:
		report = {
			"dryRun": bool(args.dry_run),
			"wrappedCount": wrapped,
			"filesModified": modified,
			"failed": sorted(failed),
			"files": [r.to_dict() for r in results],
		}
		atomic_write(pathlib.Path(args.report), json.dumps(report, indent=2, ensure_ascii=False) + NEWLINE)

	verb = "Would wrap" if args.dry_run else "Wrapped"
	print(f"\n{verb} {wrapped} strings across {modified} files")
	if skipped:
		print(f"  {skipped} candidate(s) could not be located and were skipped")
	if failed:
		print(f"  {len(failed)} file(s) failed; see the log above")
		return EXIT_FAILURE
	return EXIT_OK


def run_extract(args: argparse.Namespace) -> int:
	base = pathlib.Path(args.root).resolve()
	cfg = _merged_config(args, base)
	strings = StringExtractor(react_adapter).extract_project(cfg.include, cfg.exclude, base)

	if args.json:
		payload = [{k: v for k, v in dataclasses.asdict(s).items() if v is not None} for s in strings]
		sys.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False) + NEWLINE)
		return EXIT_OK

	for s in strings:
		extra = ", ".join(f"{k}={v}" for k, v in (("context", s.context), ("formality", s.formality)) if v)
		suffix = f"  ({extra})" if extra else ""
		print(f"{_rel(base, s.file)}:{s.line}  {s.text}{suffix}")
	print(f"\n{len(strings)} unique string(s)")
	return EXIT_OK


def run_sync(args: argparse.Namespace) -> int:
	base = pathlib.Path(args.root).resolve()
	cfg = _merged_config(args, base)
	validate_api_config(cfg)

	branch = detect_branch(args.branch, cwd=base)
	strings = StringExtractor(react_adapter).extract_project(cfg.include, cfg.exclude, base)
	texts = list(dict.fromkeys(s.text for s in strings))
	if not texts:
		print("No wrapped strings found; nothing to sync.")
		return EXIT_OK

	client = VocoderClient(api_url=cfg.api_url, api_key=cfg.api_key)
	try:
		project = client.get_project_config()
		targets = project["targetBranches"]
		if targets and not args.force and not is_target_branch(branch, targets):
			print(f"Branch {branch!r} is not a target branch ({', '.join(targets)}); use --force to sync anyway.")
			return EXIT_OK

		if args.dry_run:
			print(f"Would sync {len(texts)} string(s) on {branch!r} to {', '.join(project['targetLocales'])}")
			return EXIT_OK

		batch = client.submit_translation(branch, texts, project["targetLocales"])
		print(f"Submitted {batch.get('totalStrings', len(texts))} string(s), {batch.get('newStrings', 0)} new")

		translations = batch.get("translations")
		if batch.get("noChanges") or batch.get("status") == "UP_TO_DATE" or (batch.get("status") == "COMPLETED" and translations):
			print("Translations are up to date.")
		else:
			def _progress(value) -> None:
				logger.info("Translation progress: %s%%", value)

			done = client.wait_for_completion(batch["batchId"], timeout=args.timeout, on_progress=_progress)
			translations = done["translations"]
	except VocoderError as e:
		return report_service_error("Sync", e)

	if args.output and translations:
		atomic_write(pathlib.Path(args.output), json.dumps(translations, indent=2, ensure_ascii=False) + NEWLINE)
		print(f"Wrote translations to {args.output}")
	return EXIT_OK


def parse_locales(value: Optional[str]) -> Optional[List[str]]:
	if not value:
		return None
	locales = [locale.strip() for locale in value.split(",") if locale.strip()]
	return locales or None


def _interactive_terminal() -> bool:
	return sys.stdin.isatty() and sys.stdout.isatty() and os.environ.get("CI") != "true"


def offer_browser(url: str, ask: Callable[[str], str] = input) -> None:
	try:
		ask("Press Enter to open this URL in your browser...")
	except EOFError:
		return
	if webbrowser.open(url):
		print("Opened your browser for verification.")
	else:
		print("Could not open a browser automatically. Use the URL above.")


def run_init(args: argparse.Namespace) -> int:
	base = pathlib.Path(args.root).resolve()
	api_url = args.api_url or _merged_config(args, base).api_url

	client = VocoderClient(api_url=api_url)
	try:
		session = client.start_init_session(
			project_name=args.project_name,
			source_locale=args.source_locale,
			target_locales=parse_locales(args.target_locales),
		)
		print(f"\nAuthorize setup URL: {session['verificationUrl']}")
		print(f"First copy your one-time code: {session['userCode']}\n")
		if not args.no_browser and _interactive_terminal():
			offer_browser(session["verificationUrl"])

		def _pending(message: str) -> None:
			logger.info("Waiting for browser authorization... (%s)", message)

		credentials = client.wait_for_authorization(session, on_pending=_pending)
	except VocoderError as e:
		return report_service_error("Setup", e)

	if args.no_write_env:
		print("Setup completed, but no files were written. Set this manually:")
		print(f"  {ENV_API_KEY}={credentials['apiKey']}")
	else:
		env_path = base / ".env"
		upsert_env_value(env_path, ENV_API_KEY, credentials["apiKey"], allow_overwrite=args.yes)
		print("Vocoder initialized successfully.")
		print(f"  Wrote {ENV_API_KEY} to {env_path}")

	if credentials.get("projectName"):
		print(f"\nProject: {credentials['projectName']} ({credentials.get('projectId', '?')})")
	if credentials.get("organizationName"):
		print(f"Organization: {credentials['organizationName']}")
	return EXIT_OK


def run(args: argparse.Namespace) -> int:
	level = logging.INFO if getattr(args, "verbose", False) else logging.getLogger(ROOT_LOGGER_NAME).level
	try:
		with temporarily(level):
			return args.func(args)
	except ConfigError as e:
		logger.error("%s", e)
		return EXIT_USAGE


def build_arg_parser() -> argparse.ArgumentParser:
	common = argparse.ArgumentParser(add_help=False)
	common.add_argument("--include", action="append", default=[], help="Glob pattern(s) to include (repeatable)")
	common.add_argument("--exclude", action="append", default=[], help="Glob pattern(s) to exclude (repeatable)")
	common.add_argument("--root", default=".", help="Project root (default: current directory)")
	common.add_argument("--verbose", action="store_true", help="Detailed output")

	ap = argparse.ArgumentParser(prog="vocoder", description="Wrap and sync translatable strings.")
	sub = ap.add_subparsers(dest="command", required=True)

	w = sub.add_parser("wrap", parents=[common], help="Wrap unwrapped user-facing strings")
	w.add_argument("--confidence", choices=[c.value for c in Confidence], default="high", help="Minimum confidence (default: high)")
	w.add_argument("--dry-run", action="store_true", help="Report only; no writes")
	w.add_argument("--diff", action="store_true", help="Print unified diff for changes")
	w.add_argument("--interactive", action="store_true", help="Confirm each string interactively")
	w.add_argument("--no-backup", action="store_true", help="Do not write .bak backups")
	w.add_argument("--threads", type=int, default=os.cpu_count() or 4, help="Parallel file workers")
	w.add_argument("--max-file-size", type=int, default=2*1024*1024, help="Skip files larger than this many bytes (0 to disable)")
	w.add_argument("--report", metavar="PATH", help="Write a JSON report of wrapped/skipped candidates")
	w.set_defaults(func=run_wrap)

	e = sub.add_parser("extract", parents=[common], help="List strings that are already wrapped")
	e.add_argument("--json", action="store_true", help="Machine-readable output")
	e.set_defaults(func=run_extract)

	s = sub.add_parser("sync", parents=[common], help="Submit wrapped strings and fetch translations")
	s.add_argument("--branch", help="Override branch detection")
	s.add_argument("--force", action="store_true", help="Sync even if not a target branch")
	s.add_argument("--dry-run", action="store_true", help="Show what would be synced without doing it")
	s.add_argument("--timeout", type=float, default=60.0, help="Seconds to wait for translations")
	s.add_argument("--output", metavar="PATH", help="Write returned translations as JSON")
	s.set_defaults(func=run_sync)

	i = sub.add_parser("init", parents=[common], help="Authorize this project in a browser and save its API key")
	i.add_argument("--api-url", help="Service URL (default: configured or https://vocoder.app)")
	i.add_argument("--project-name", help="Name for a newly created project")
	i.add_argument("--source-locale", help="Source locale, e.g. en")
	i.add_argument("--target-locales", help="Comma-separated target locales, e.g. fr,de")
	i.add_argument("--yes", action="store_true", help="Overwrite an existing VOCODER_API_KEY in .env")
	i.add_argument("--no-write-env", action="store_true", help="Print the API key instead of writing .env")
	i.add_argument("--no-browser", action="store_true", help="Never offer to open a browser")
	i.set_defaults(func=run_init)

	return ap


def main(argv: Optional[List[str]] = None):
	args = build_arg_parser().parse_args(argv)
	sys.exit(run(args))


if __name__ == "__main__":
	main()
