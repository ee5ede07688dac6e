"""User configuration stored in ~/Downfolio/config.yaml."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol

import yaml

from downfolio.errors import ConfigSaveError
from downfolio.models.document import Provider
from downfolio.utils.parse_result import ParseResult

logger = logging.getLogger(__name__)

Config = dict[str, str]

API_KEY_NAMES: dict[Provider, str] = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
}

MODEL_KEY_NAMES: dict[Provider, str] = {
    Provider.OPENAI: "OPENAI_MODEL",
    Provider.ANTHROPIC: "ANTHROPIC_MODEL",
}

SECURE_MODE = 0o600
_GROUP_OTHER_BITS = 0o077


@dataclass(frozen=True)
class LLMSettings:
    openai_fallback_model: str = "gpt-4o-mini"
    anthropic_fallback_model: str = "claude-sonnet-4-5"
    openai_temperature: float = 0.7
    max_tokens: int = 2000
    timeout: float | None = None

    def fallback_model(self, provider: Provider) -> str:
        if provider is Provider.OPENAI:
            return self.openai_fallback_model
        return self.anthropic_fallback_model


class EnvironmentProvider(Protocol):
    def get(self, key: str) -> str | None: ...


class OsEnvironment:
    """Reads the real process environment."""

    def get(self, key: str) -> str | None:
        return os.environ.get(key)


class MappingEnvironment:
    """Fixed environment, for tests and embedding."""

    def __init__(self, values: Mapping[str, str] | None = None):
        self._values = dict(values or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)


class ConfigStore:
    """Key-value config persisted as YAML with owner-only permissions."""

    def __init__(self, path: str | Path, env: EnvironmentProvider | None = None):
        self.path = Path(path)
        self.env = env if env is not None else OsEnvironment()

    def load_result(self) -> ParseResult[Config]:
        """Read the config file, reporting whether it had to fall back to {}."""
        if not self.path.exists():
            return ParseResult.ok({})

        if not self._has_secure_permissions():
            logger.warning(
                "Config file %s has insecure permissions. "
                'API keys should be protected. Run: chmod 600 "%s"',
                self.path,
                self.path,
            )

        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.error("Error loading config from %s: %s", self.path, e)
            return ParseResult.fallback({}, str(e))

        if raw is None:
            return ParseResult.ok({})
        if not isinstance(raw, dict):
            error = f"expected a mapping, got {type(raw).__name__}"
            logger.error("Error loading config from %s: %s", self.path, error)
            return ParseResult.fallback({}, error)

        return ParseResult.ok({str(k): str(v) for k, v in raw.items() if v is not None})

    def load(self) -> Config:
        return self.load_result().value

    def save(self, config: Config) -> None:
        """Overwrite the config file, then restrict it to the owner."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                yaml.safe_dump(dict(config), default_flow_style=False, sort_keys=False),
                encoding="utf-8",
            )
        except OSError as e:
            raise ConfigSaveError(f"Failed to save config: {e}") from e

        try:
            os.chmod(self.path, SECURE_MODE)
        except OSError as e:
            logger.warning("Could not set secure permissions on %s: %s", self.path, e)

    def get_value(self, key: str) -> str | None:
        return self.load().get(key)

    def set_value(self, key: str, value: str) -> None:
        config = self.load()
        config[key] = value
        self.save(config)

    def all(self) -> Config:
        return self.load()

    def get_api_key(self, provider: Provider) -> str | None:
        """Environment variable first, then the stored value. Never raises."""
        name = API_KEY_NAMES[Provider(provider)]
        from_env = self.env.get(name)
        if from_env:
            return from_env
        return self.load().get(name) or None

    def get_default_model(self, provider: Provider) -> str | None:
        return self.load().get(MODEL_KEY_NAMES[Provider(provider)]) or None

    def _has_secure_permissions(self) -> bool:
        if os.name == "nt":
            return True
        try:
            mode = self.path.stat().st_mode
        except OSError:
            return False
        return (mode & _GROUP_OTHER_BITS) == 0
