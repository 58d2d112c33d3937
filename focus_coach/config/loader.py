"""
Configuration management and loading.

Settings live in the key/value settings table as strings. They are decoded
once into a typed, validated ``AppConfig`` instead of being re-parsed at
every read site. A YAML file can be used to seed or override them.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

PROVIDERS = ("ollama", "openai", "claude")

DEFAULT_SETTINGS: Dict[str, str] = {
    "monthly_budget": "100",
    "budget_warnings": "true",
    "budget_warning_threshold": "80",
    "feedback_frequency": "3",
    "auto_feedback": "true",
    "feedback_tone": "supportive",
    "default_llm": "ollama",
    "default_personality": "Coach",
    "ollama_base_url": "http://localhost:11434",
    "ollama_model": "mistral",
    "openai_model": "gpt-4",
    "claude_model": "claude-3-sonnet-20240229",
    "openai_api_key": "",
    "claude_api_key": "",
}

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class BudgetConfig:
    """Budget limits for LLM spend."""
    monthly_limit: float
    warnings_enabled: bool = True
    warning_threshold_percent: float = 80.0

    def __post_init__(self):
        """Validate budget values."""
        if self.monthly_limit <= 0:
            raise ValueError("monthly_budget must be > 0")
        if not 0 <= self.warning_threshold_percent <= 100:
            raise ValueError("budget_warning_threshold must be between 0 and 100")


@dataclass(frozen=True)
class FeedbackConfig:
    """Scheduling and tone for coaching feedback."""
    enabled: bool = True
    frequency: int = 3
    tone: str = "supportive"
    personality: str = "Coach"

    def __post_init__(self):
        # zero or negative means no scheduled feedback
        if self.frequency > 24:
            raise ValueError("feedback_frequency must be at most 24")


@dataclass(frozen=True)
class ProviderConfig:
    """Provider selection, models and credentials."""
    default_provider: str = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "mistral"
    openai_model: str = "gpt-4"
    claude_model: str = "claude-3-sonnet-20240229"
    openai_api_key: Optional[str] = None
    claude_api_key: Optional[str] = None

    def __post_init__(self):
        if self.default_provider not in PROVIDERS:
            raise ValueError(f"default_llm must be one of: {list(PROVIDERS)}")


@dataclass(frozen=True)
class AppConfig:
    """Complete, typed application configuration."""
    budget: BudgetConfig
    feedback: FeedbackConfig
    providers: ProviderConfig

    @classmethod
    def from_settings(cls, raw: Mapping[str, str]) -> "AppConfig":
        """Decode raw settings strings, falling back to defaults for missing keys.

        Args:
            raw: Settings as stored (all values are strings)

        Returns:
            Validated AppConfig

        Raises:
            ValueError: If any value cannot be parsed or fails validation
        """
        values = dict(DEFAULT_SETTINGS)
        values.update({k: v for k, v in raw.items() if v is not None})

        return cls(
            budget=BudgetConfig(
                monthly_limit=_parse_float(values, "monthly_budget"),
                warnings_enabled=_parse_bool(values, "budget_warnings"),
                warning_threshold_percent=_parse_float(values, "budget_warning_threshold"),
            ),
            feedback=FeedbackConfig(
                enabled=_parse_bool(values, "auto_feedback"),
                frequency=_parse_int(values, "feedback_frequency"),
                tone=values["feedback_tone"].strip() or DEFAULT_SETTINGS["feedback_tone"],
                personality=values["default_personality"].strip() or DEFAULT_SETTINGS["default_personality"],
            ),
            providers=ProviderConfig(
                default_provider=values["default_llm"].strip().lower(),
                ollama_base_url=values["ollama_base_url"].rstrip("/"),
                ollama_model=values["ollama_model"],
                openai_model=values["openai_model"],
                claude_model=values["claude_model"],
                openai_api_key=values["openai_api_key"].strip() or None,
                claude_api_key=values["claude_api_key"].strip() or None,
            ),
        )


def _parse_bool(values: Mapping[str, str], key: str) -> bool:
    value = str(values[key]).strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"'{key}' must be a boolean, got {values[key]!r}")


def _parse_int(values: Mapping[str, str], key: str) -> int:
    try:
        return int(str(values[key]).strip())
    except ValueError:
        raise ValueError(f"'{key}' must be an integer, got {values[key]!r}")


def _parse_float(values: Mapping[str, str], key: str) -> float:
    try:
        return float(str(values[key]).strip())
    except ValueError:
        raise ValueError(f"'{key}' must be a number, got {values[key]!r}")


def load_settings_file(path: str) -> Dict[str, str]:
    """Load settings overrides from a YAML file.

    Strict validation ensures no silent misconfigurations: unknown keys and
    non-scalar values are rejected, and the result must decode into a valid
    AppConfig.

    Args:
        path: Path to YAML settings file

    Returns:
        Mapping of setting key to string value, ready for the settings store

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in settings file {path}: {e}")

    if not raw_config:
        raise ValueError("Settings file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Settings file must contain a mapping")

    unknown_keys = set(raw_config.keys()) - set(DEFAULT_SETTINGS)
    if unknown_keys:
        raise ValueError(f"Unknown settings keys: {unknown_keys}")

    settings = {}
    for key, value in raw_config.items():
        if isinstance(value, (dict, list)):
            raise ValueError(f"'{key}' must be a scalar value")
        if isinstance(value, bool):
            settings[key] = "true" if value else "false"
        elif value is None:
            settings[key] = ""
        else:
            settings[key] = str(value)

    # Fail fast on values that would not decode later
    AppConfig.from_settings(settings)
    return settings
