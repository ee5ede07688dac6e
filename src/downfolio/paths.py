"""Profile directory layout (~/Downfolio by default)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

HOME_ENV_VAR = "DOWNFOLIO_HOME"
DEFAULT_HOME = Path.home() / "Downfolio"

REGISTRY_FILE = "storage.json"


@dataclass(frozen=True)
class AppPaths:
    base: Path = DEFAULT_HOME

    @property
    def config_file(self) -> Path:
        return self.base / "config.yaml"

    @property
    def templates_dir(self) -> Path:
        return self.base / "Templates"

    @property
    def jobs_dir(self) -> Path:
        return self.base / "Jobs"

    @property
    def output_dir(self) -> Path:
        return self.base / "Output"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> AppPaths:
        """Resolve the profile directory, honouring DOWNFOLIO_HOME."""
        env = os.environ if env is None else env
        override = env.get(HOME_ENV_VAR)
        if override:
            return cls(base=Path(override).expanduser())
        return cls()

    def ensure(self) -> None:
        """Create the full directory tree. Safe to call repeatedly."""
        for directory in (self.base, self.templates_dir, self.jobs_dir, self.output_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def is_initialized(self) -> bool:
        return self.base.exists()
