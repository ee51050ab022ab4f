"""gatekeep.toml: loading, validation, overrides and starter templates."""

import json
import tomllib
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gatekeep.providers.config import LlmConfig
from gatekeep.rules.models import Rule

DEFAULT_CONFIG_PATH = Path("gatekeep.toml")
DEFAULT_MAX_FILES_PER_TASK = 5


class ConfigError(Exception):
    """The configuration file or an override is invalid."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ReviewConfig(BaseModel):
    """The ``[review]`` table."""

    max_files_per_task: int = Field(
        default=DEFAULT_MAX_FILES_PER_TASK,
        ge=1,
        description="Default number of files one task reviews (rules may override)",
    )
    max_parallel_workers: int | None = Field(
        default=None, ge=1, description="Concurrency bound; unset runs every task at once"
    )
    resources: list[str] = Field(
        default_factory=list, description="Resources added to every rule (file://, skill://, sh://)"
    )

    model_config = ConfigDict(extra="forbid")


class Config(BaseModel):
    """A whole gatekeep.toml."""

    llm: LlmConfig = Field(default_factory=LlmConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)
    rules: list[Rule] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    def apply_overrides(self, overrides: list[str]) -> "Config":
        """Return a copy with ``key.path=value`` overrides applied.

        Values are parsed as JSON when possible (``5``, ``true``, ``["a"]``) and
        taken as plain strings otherwise.

        Raises:
            ConfigError: On a malformed override, an unknown key, or a result that
                no longer validates
        """
        if not overrides:
            return self

        data = self.model_dump(mode="json")
        for override in overrides:
            key, sep, raw = override.partition("=")
            if not sep or not key:
                raise ConfigError(f"Invalid override format (expected key=value): {override}")
            _set_path(data, key, _parse_value(raw))

        try:
            return Config.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config after overrides:\n{format_errors(e)}") from e


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _set_path(data: dict[str, Any], key: str, value: Any) -> None:
    parts = key.split(".")
    current: Any = data
    for part in parts[:-1]:
        if isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        elif isinstance(current, dict) and part in current:
            current = current[part]
        else:
            raise ConfigError(f"Unknown config key: {key}")
    if isinstance(current, list) and parts[-1].isdigit() and int(parts[-1]) < len(current):
        current[int(parts[-1])] = value
    elif isinstance(current, dict):
        current[parts[-1]] = value
    else:
        raise ConfigError(f"Cannot set '{parts[-1]}' on a non-table value: {key}")


def format_errors(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "(root)"
        lines.append(f"- {location}: {item['msg']}")
    return "\n".join(lines)


def load_config(path: Path = DEFAULT_CONFIG_PATH, overrides: list[str] | None = None) -> Config:
    """Read and validate a config file.

    Args:
        path: TOML file to read
        overrides: ``key.path=value`` overrides applied after loading

    Returns:
        The validated config

    Raises:
        ConfigError: If the file is missing, is not TOML, or does not validate
    """
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except FileNotFoundError as e:
        raise ConfigError(
            f"Config file not found: {path}. Run 'gatekeep init' to create one."
        ) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}:\n{format_errors(e)}") from e
    return config.apply_overrides(overrides or [])


# --- Templates ---


class Template(StrEnum):
    """Starter configs written by ``gatekeep init``."""

    fast = "fast"
    full = "full"


_LLM_AND_REVIEW = """\
[llm]
# pydantic-ai "provider:model" string. With base_url set, the model is served
# through that OpenAI-compatible endpoint and the API key comes from
# --api-key or GATEKEEP_LLM_API_KEY. Set base_url = "" to use the provider's
# own endpoint and environment variables instead.
model = "openai:google/gemini-3-flash-preview"
base_url = "https://openrouter.ai/api/v1"

[llm.headers]
HTTP-Referer = "https://github.com/gatekeep-dev/gatekeep"
X-Title = "gatekeep"

[llm.body]
parallel_tool_calls = true

[review]
max_files_per_task = 5
# max_parallel_workers = 4
resources = []
"""

FAST_TEMPLATE = (
    _LLM_AND_REVIEW
    + '''
[[rules]]
name = "Prefer async/await over promise chains"
description = "Example rule: edit or replace it"
instruction = """
For js/ts files:
Reject any Promise chain, prefer async/await.
"""
scope = ["src/**/*.ts"]
blocking = true
tip = "Rewrite .then()/.catch() chains with async/await."
'''
)

FULL_TEMPLATE = (
    _LLM_AND_REVIEW
    + '''
[[rules]]
name = "No Code Duplication"
description = "Prevent duplicate code across files"
instruction = """
Ensure modified content does not duplicate code from other files.
- If duplicating an existing function, the code should call that function instead.
- If duplicating a code block, a shared function should be extracted.

Ignore acceptable duplication:
- Trivial code (simple one-liners, common patterns like error handling)
- Test code and test utilities
- Similar but contextually different logic (e.g., different validation rules)
- Common patterns like builder methods, getters/setters
- Standard boilerplate (e.g., CLI argument parsing, config loading)
- Factory methods or templates that intentionally duplicate configuration

Focus on substantial logic duplication:
- Business logic duplicated across multiple files (>30 lines)
- Complex algorithms or calculations repeated
- Data transformation logic that's identical
"""
scope = ["**/*"]
# Reads many other files, so keep tasks small
max_files_per_task = 3
blocking = true
tip = "Extract common code into shared functions or modules."

[[rules]]
name = "No Magic Numbers"
description = "Prevent hardcoded numeric literals"
instruction = """
Reject unexplained numeric literals in production code.

Allowed numbers (not magic):
- 0, 1, -1 in common contexts (indexing, loop increments, exit codes, boolean-like values)
- Numbers in test files
- Numbers in configuration files
- Numbers with nearby explanatory comments (within 3 lines)
- HTTP status codes (200, 404, etc.)
- Common time values with clear context (60 for seconds/minutes, 24 for hours, 1000 for ms)
- Collection sizes in obvious contexts

Reject as magic numbers:
- Business logic constants without explanation (thresholds, multipliers, limits)
- Arbitrary timeouts or delays without context
- Numeric configuration values hardcoded in logic
- Calculation constants without explanation
"""
scope = ["**/*"]
# Only looks at changed lines, so tasks can be large
max_files_per_task = 10
blocking = true
tip = "Define constants with descriptive names or add explanatory comments."

[[rules]]
name = "No Hardcoded Credentials"
description = "Prevent credential leaks"
instruction = """
Reject hardcoded credentials in code.

Forbidden:
- API keys, tokens, secrets (e.g., "sk-...", "Bearer ...", actual secret values)
- Passwords or password hashes
- Private keys or certificates
- OAuth client secrets
- Database connection strings with credentials

Allowed:
- Placeholder/example values (e.g., "your-api-key", "sk-xxxxxx", "<API_KEY>")
- Environment variable names (e.g., "API_KEY", "DATABASE_URL")
- Public URLs and endpoints
- Email addresses and contact information
- Test/mock credentials in test files clearly marked as fake
- Documentation examples with obvious placeholders
"""
scope = ["**/*"]
max_files_per_task = 10
blocking = true
tip = """
Use environment variables or configuration files for credentials.
Replace real values with placeholders in examples.
"""
'''
)

TEMPLATES = {Template.fast: FAST_TEMPLATE, Template.full: FULL_TEMPLATE}


def write_template(path: Path, template: Template = Template.fast, override: bool = False) -> None:
    """Write a starter config.

    Raises:
        ConfigError: If the file exists and ``override`` is False, or cannot be written
    """
    if path.exists() and not override:
        raise ConfigError(f"{path} already exists. Use --override to replace it.")
    try:
        path.write_text(TEMPLATES[template], encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot write {path}: {e}") from e
