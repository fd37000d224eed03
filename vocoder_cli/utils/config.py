import json
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import dotenv_values, find_dotenv, load_dotenv, set_key

from .files import DEFAULT_INCLUDE
from .logging import get_logger, mask_token

logger = get_logger(__name__)

CONFIG_FILE_NAME = "vocoder.config.json"

DEFAULT_API_URL = "https://vocoder.app"
DEFAULT_BRANCH = "main"

ENV_API_KEY = "VOCODER_API_KEY"
ENV_API_URL = "VOCODER_API_URL"
ENV_EXTRACTION_PATTERN = "VOCODER_EXTRACTION_PATTERN"
ENV_BRANCH = "VOCODER_BRANCH"

# CI providers expose the branch under their own names.
CI_BRANCH_VARS = (
    "GITHUB_REF_NAME",
    "VERCEL_GIT_COMMIT_REF",
    "BRANCH",
    "CI_COMMIT_REF_NAME",
    "BITBUCKET_BRANCH",
    "CIRCLE_BRANCH",
)


class ConfigError(Exception):
    """Invalid or unusable configuration."""


@dataclass
class MergedConfig:
    include: List[str]
    exclude: List[str]
    api_url: str
    api_key: Optional[str] = None
    config_file: Optional[Path] = None
    sources: Dict[str, str] = field(default_factory=dict)


def load_env(dotenv_path: Optional[Path] = None) -> None:
    """Load a .env file into os.environ without overriding what is already set."""
    path = dotenv_path or find_dotenv(usecwd=True)
    if path:
        load_dotenv(dotenv_path=path, override=False)


def upsert_env_value(path: Path, key: str, value: str, allow_overwrite: bool = False) -> None:
    """Set ``key=value`` in the .env file at ``path``, creating the file if needed.

    A different existing value is only replaced with ``allow_overwrite``.
    """
    path = Path(path)
    if path.exists():
        current = dotenv_values(path).get(key)
        if current is not None and current != value and not allow_overwrite:
            raise ConfigError(f"{key} already exists in {path}. Re-run with --yes to overwrite.")
    set_key(str(path), key, value, quote_mode="never")
    logger.info("Wrote %s=%s to %s", key, mask_token(value), path)


def find_config_file(start_dir: Optional[Path] = None) -> Optional[Path]:
    """Search upward from ``start_dir`` for vocoder.config.json."""
    current = Path(start_dir or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def _as_pattern_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [p for p in value if isinstance(p, str) and p]
    raise ConfigError(f"Config: {key} must be a string or a list of strings")


def validate_config_file(raw: Any) -> Dict[str, Any]:
    """Normalize a parsed config file; raise ConfigError on wrong types."""
    if not isinstance(raw, dict):
        raise ConfigError("Config: top-level value must be an object")
    validated: Dict[str, Any] = {}

    if raw.get("include"):
        validated["include"] = _as_pattern_list(raw["include"], "include")
    if raw.get("exclude"):
        validated["exclude"] = _as_pattern_list(raw["exclude"], "exclude")

    if raw.get("apiKey"):
        if not isinstance(raw["apiKey"], str):
            raise ConfigError("Config: apiKey must be a string")
        validated["apiKey"] = raw["apiKey"]

    if raw.get("apiUrl"):
        if not isinstance(raw["apiUrl"], str):
            raise ConfigError("Config: apiUrl must be a string")
        if not raw["apiUrl"].startswith("http"):
            raise ConfigError("Config: apiUrl must start with http:// or https://")
        validated["apiUrl"] = raw["apiUrl"].rstrip("/")

    return validated


def load_config_file(start_dir: Optional[Path] = None):
    """Return (validated config, path) or (None, None) if no file exists."""
    path = find_config_file(start_dir)
    if path is None:
        return None, None
    try:
        raw = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to load JSON config file {path}: {e}") from e
    return validate_config_file(raw), path


def get_merged_config(
    include: Optional[List[str]] = None,
    exclude: Optional[List[str]] = None,
    start_dir: Optional[Path] = None,
) -> MergedConfig:
    """
    Merge configuration with priority:
      1. CLI flags
      2. vocoder.config.json
      3. environment (VOCODER_*; .env is loaded first)
      4. defaults
    """
    load_env()
    file_cfg, file_path = load_config_file(start_dir)
    file_cfg = file_cfg or {}
    if file_path is not None:
        logger.info("Using config from %s", file_path)

    sources: Dict[str, str] = {}

    if include:
        merged_include, sources["include"] = list(include), "cli"
    elif file_cfg.get("include"):
        merged_include, sources["include"] = file_cfg["include"], "config file"
    elif os.environ.get(ENV_EXTRACTION_PATTERN):
        merged_include, sources["include"] = [os.environ[ENV_EXTRACTION_PATTERN]], "environment"
    else:
        merged_include, sources["include"] = list(DEFAULT_INCLUDE), "default"

    if exclude:
        merged_exclude, sources["exclude"] = list(exclude), "cli"
    elif file_cfg.get("exclude"):
        merged_exclude, sources["exclude"] = file_cfg["exclude"], "config file"
    else:
        merged_exclude, sources["exclude"] = [], "default"

    api_key = file_cfg.get("apiKey")
    if api_key:
        sources["api_key"] = "config file"
    elif os.environ.get(ENV_API_KEY):
        api_key, sources["api_key"] = os.environ[ENV_API_KEY], "environment"
    else:
        sources["api_key"] = "unset"

    if file_cfg.get("apiUrl"):
        api_url, sources["api_url"] = file_cfg["apiUrl"], "config file"
    elif os.environ.get(ENV_API_URL):
        api_url, sources["api_url"] = os.environ[ENV_API_URL].rstrip("/"), "environment"
    else:
        api_url, sources["api_url"] = DEFAULT_API_URL, "default"

    logger.info(
        "Config sources: include=%s exclude=%s api_key=%s (%s) api_url=%s",
        sources["include"],
        sources["exclude"],
        sources["api_key"],
        mask_token(api_key),
        sources["api_url"],
    )
    return MergedConfig(
        include=merged_include,
        exclude=merged_exclude,
        api_url=api_url,
        api_key=api_key,
        config_file=file_path,
        sources=sources,
    )


def validate_api_config(cfg: MergedConfig) -> None:
    """Requirements for commands that talk to the service."""
    if not cfg.api_key:
        raise ConfigError(
            f"{ENV_API_KEY} is required. Set it in your .env file, environment or {CONFIG_FILE_NAME}."
        )
    if not cfg.api_key.startswith("vc_"):
        raise ConfigError("Invalid API key format. Expected format: vc_...")
    if not cfg.api_url.startswith("http"):
        raise ConfigError("Invalid API URL")


def detect_branch(override: Optional[str] = None, cwd: Optional[Path] = None) -> str:
    """--branch flag, then VOCODER_BRANCH/CI variables, then git, then "main"."""
    if override:
        return override
    for var in (ENV_BRANCH,) + CI_BRANCH_VARS:
        value = os.environ.get(var)
        if value:
            return value
    try:
        out = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        logger.warning("Could not detect git branch; using %s", DEFAULT_BRANCH)
        return DEFAULT_BRANCH
    return out.stdout.strip() or DEFAULT_BRANCH


def _branch_regex(pattern: str) -> str:
    out = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return "".join(out)


def match_branch_pattern(branch: str, pattern: str) -> bool:
    """Glob match where ``*`` stays inside one ``/`` segment and ``**`` crosses them."""
    return re.fullmatch(_branch_regex(pattern), branch) is not None


def is_target_branch(branch: str, target_branches: List[str]) -> bool:
    """True if ``branch`` matches any of the project's target branch patterns."""
    return any(match_branch_pattern(branch, pattern) for pattern in target_branches)
