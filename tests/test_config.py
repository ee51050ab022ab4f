"""Tests for gatekeep.config."""

import tomllib
from pathlib import Path

import pytest

from gatekeep.config import (
    TEMPLATES,
    Config,
    ConfigError,
    Template,
    load_config,
    write_template,
)
from gatekeep.providers.config import DEFAULT_MODEL

MINIMAL = """
[[rules]]
name = "No TODOs"
instruction = "Reject TODO comments."
scope = ["src/**/*.py"]
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "gatekeep.toml"
    path.write_text(MINIMAL)
    return path


class TestLoadConfig:
    """Test load_config."""

    def test_defaults_filled(self, config_file: Path) -> None:
        """Omitted tables take their defaults."""
        config = load_config(config_file)
        assert config.llm.model == DEFAULT_MODEL
        assert config.review.max_files_per_task == 5
        assert config.review.max_parallel_workers is None
        assert [rule.name for rule in config.rules] == ["No TODOs"]
        assert config.rules[0].blocking is True

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file points at gatekeep init."""
        with pytest.raises(ConfigError, match="gatekeep init"):
            load_config(tmp_path / "absent.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """TOML syntax errors are ConfigErrors."""
        path = tmp_path / "gatekeep.toml"
        path.write_text("[rules\n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path)

    def test_validation_errors_listed(self, tmp_path: Path) -> None:
        """Schema errors name the offending key."""
        path = tmp_path / "gatekeep.toml"
        path.write_text("[review]\nmax_files_per_task = 0\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert "review.max_files_per_task" in exc_info.value.message

    def test_unknown_key_rejected(self, tmp_path: Path) -> None:
        """Typos in table keys are caught."""
        path = tmp_path / "gatekeep.toml"
        path.write_text("[review]\nmax_file_per_task = 3\n")
        with pytest.raises(ConfigError, match="max_file_per_task"):
            load_config(path)


class TestOverrides:
    """Test Config.apply_overrides."""

    def test_scalar_overrides(self, config_file: Path) -> None:
        """JSON values are parsed; other values stay strings."""
        config = load_config(
            config_file,
            ["review.max_files_per_task=3", "llm.model=openai:gpt-4.1", "llm.temperature=0.2"],
        )
        assert config.review.max_files_per_task == 3
        assert config.llm.model == "openai:gpt-4.1"
        assert config.llm.temperature == 0.2

    def test_list_index_override(self, config_file: Path) -> None:
        """Rules can be addressed by index."""
        config = load_config(config_file, ["rules.0.blocking=false"])
        assert config.rules[0].blocking is False

    def test_list_value(self, config_file: Path) -> None:
        """A JSON array replaces a list."""
        config = load_config(config_file, ['review.resources=["file://STYLE.md"]'])
        assert config.review.resources == ["file://STYLE.md"]

    def test_malformed_override(self) -> None:
        """An override needs key=value."""
        with pytest.raises(ConfigError, match="expected key=value"):
            Config().apply_overrides(["llm.model"])

    def test_unknown_path(self) -> None:
        """Unknown intermediate tables are rejected."""
        with pytest.raises(ConfigError, match="Unknown config key"):
            Config().apply_overrides(["nope.key=1"])

    def test_invalid_result(self) -> None:
        """Overrides must still validate."""
        with pytest.raises(ConfigError, match="Invalid config after overrides"):
            Config().apply_overrides(["review.max_files_per_task=0"])

    def test_no_overrides_returns_same(self) -> None:
        """An empty list is a no-op."""
        config = Config()
        assert config.apply_overrides([]) is config


class TestTemplates:
    """Test the starter templates."""

    @pytest.mark.parametrize("template", list(Template))
    def test_templates_validate(self, template: Template) -> None:
        """Every template is valid TOML and a valid config."""
        config = Config.model_validate(tomllib.loads(TEMPLATES[template]))
        assert config.rules

    def test_full_template_presets(self) -> None:
        """The full template ships the three preset rules with their chunk sizes."""
        config = Config.model_validate(tomllib.loads(TEMPLATES[Template.full]))
        assert [(r.name, r.max_files_per_task) for r in config.rules] == [
            ("No Code Duplication", 3),
            ("No Magic Numbers", 10),
            ("No Hardcoded Credentials", 10),
        ]

    def test_write_template(self, tmp_path: Path) -> None:
        """init writes a loadable file."""
        path = tmp_path / "gatekeep.toml"
        write_template(path, Template.fast)
        assert load_config(path).rules[0].name == "Prefer async/await over promise chains"

    def test_write_refuses_existing(self, tmp_path: Path) -> None:
        """An existing file is kept unless override is set."""
        path = tmp_path / "gatekeep.toml"
        path.write_text("# mine\n")
        with pytest.raises(ConfigError, match="already exists"):
            write_template(path)
        write_template(path, Template.full, override=True)
        assert "No Magic Numbers" in path.read_text()
