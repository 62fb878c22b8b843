"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# settings.yaml section -> {yaml key: Settings field}
_YAML_SECTIONS: dict[str, dict[str, str]] = {
    "server": {"host": "host", "port": "port"},
    "tutor": {
        "base_url": "tutor_base_url",
        "model": "tutor_model",
        "temperature": "tutor_temperature",
        "max_tokens": "tutor_max_tokens",
        "timeout_seconds": "tutor_timeout_seconds",
        "context_turns": "tutor_context_turns",
        "feedback_language": "feedback_language",
    },
    "storage": {
        "redis_url": "redis_url",
        "session_ttl_days": "session_ttl_days",
        "analytics_ttl_days": "analytics_ttl_days",
        "lock_timeout_seconds": "lock_timeout_seconds",
        "lock_wait_seconds": "lock_wait_seconds",
    },
    "limits": {
        "max_attempts": "rate_limit_max_attempts",
        "window_seconds": "rate_limit_window_seconds",
        "history_limit": "history_limit",
    },
    "quiz": {
        "size": "quiz_size",
        "correct_points": "quiz_correct_points",
        "completion_bonus": "quiz_completion_bonus",
        "review_limit": "review_limit",
    },
    "leaderboard": {"size": "leaderboard_size"},
}


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


def flatten_yaml_settings(data: dict) -> dict[str, Any]:
    """Map nested settings.yaml sections onto flat Settings field names."""
    flattened = {}
    for section, keys in _YAML_SECTIONS.items():
        values = data.get(section) or {}
        for yaml_key, field_name in keys.items():
            flattened[field_name] = values.get(yaml_key)
    return {k: v for k, v in flattened.items() if v is not None}


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return flatten_yaml_settings(data)


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Tutor (any OpenAI-compatible chat completion endpoint)
    openai_api_key: str = Field(description="API key for the tutor endpoint")
    tutor_base_url: str = Field(default="https://api.groq.com/openai/v1")
    tutor_model: str = Field(default="llama-3.3-70b-versatile")
    tutor_temperature: float = Field(default=0.7)
    tutor_max_tokens: int = Field(default=1000)
    tutor_timeout_seconds: float = Field(default=30.0)
    tutor_context_turns: int = Field(default=10)
    feedback_language: str = Field(default="Indonesian")

    # Storage (None selects the in-memory store)
    redis_url: str | None = Field(default=None)
    session_ttl_days: int = Field(default=30)
    analytics_ttl_days: int = Field(default=90)
    lock_timeout_seconds: float = Field(default=10.0)
    lock_wait_seconds: float = Field(default=5.0)

    # Admission
    rate_limit_max_attempts: int = Field(default=20)
    rate_limit_window_seconds: int = Field(default=60)
    history_limit: int = Field(default=20)

    # Quiz / review
    quiz_size: int = Field(default=5)
    quiz_correct_points: int = Field(default=5)
    quiz_completion_bonus: int = Field(default=25)
    review_limit: int = Field(default=10)
    leaderboard_size: int = Field(default=10)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_days * 86400

    @property
    def analytics_ttl_seconds(self) -> int:
        return self.analytics_ttl_days * 86400

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
