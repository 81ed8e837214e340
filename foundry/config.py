"""Configuration — where the state, roots and external config live.

Layers, lowest first: built-in defaults, an optional YAML file
(``~/.config/cc-foundry/config.yaml`` or ``$CCF_CONFIG``), then environment
variables. Only base directories can move; the ``.claude`` layout beneath
them and the naming convention are fixed.

Example config.yaml::

    home: /home/me
    project_dir: /work/repo
    state_file: /home/me/.claude-code-foundry.json
    claude_config: /home/me/.claude.json
    config_size_limit_mb: 50
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping

import yaml

from foundry.doctor import DEFAULT_CONFIG_SIZE_LIMIT_MB
from foundry.errors import ConfigError
from foundry.naming import InstallLocation, location_root
from foundry.state import STATE_FILE

CONFIG_ENV = "CCF_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/cc-foundry/config.yaml")
CLAUDE_CONFIG_FILE = ".claude.json"

# Environment variable -> config field
ENV_OVERRIDES = {
    "CCF_HOME": "home",
    "CCF_PROJECT_DIR": "project_dir",
    "CCF_STATE_FILE": "state_file",
    "CCF_CLAUDE_CONFIG": "claude_config",
}

_PATH_FIELDS = {"home", "project_dir", "state_file", "claude_config"}


@dataclass
class FoundryConfig:
    home: Path
    project_dir: Path
    state_file: Path
    claude_config: Path
    config_size_limit_mb: float = DEFAULT_CONFIG_SIZE_LIMIT_MB

    @classmethod
    def defaults(cls, home: Path | None = None, project_dir: Path | None = None) -> FoundryConfig:
        home = home or Path.home()
        return cls(
            home=home,
            project_dir=project_dir or Path.cwd(),
            state_file=home / STATE_FILE,
            claude_config=home / CLAUDE_CONFIG_FILE,
        )

    @property
    def user_root(self) -> Path:
        return location_root(self.home)

    @property
    def project_root(self) -> Path:
        return location_root(self.project_dir)

    @property
    def roots(self) -> list[Path]:
        return [self.user_root, self.project_root]

    def root_for(self, location: InstallLocation) -> Path:
        if location is InstallLocation.USER:
            return self.user_root
        return self.project_root


def load_config(path: str | Path | None = None, env: Mapping[str, str] | None = None) -> FoundryConfig:
    """Build the effective configuration.

    Args:
        path: Explicit config file. Must exist if given.
        env: Environment mapping (defaults to ``os.environ``).

    Raises:
        ConfigError: The file is not valid YAML, not a mapping, or has
            unknown keys or bad values.
    """
    env = os.environ if env is None else env
    values: dict[str, object] = {}

    config_path = Path(path) if path else Path(env.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH)
    config_path = config_path.expanduser()
    if path and not config_path.is_file():
        raise ConfigError(f"config file not found: {config_path}")
    if config_path.is_file():
        values.update(_read_config_file(config_path))

    for var, name in ENV_OVERRIDES.items():
        if env.get(var):
            values[name] = env[var]

    # Paths derived from home follow a relocated home unless set explicitly.
    home = _as_path(values.pop("home")) if "home" in values else None
    project_dir = (
        _as_path(values.pop("project_dir")) if "project_dir" in values else None
    )
    config = FoundryConfig.defaults(home=home, project_dir=project_dir)

    for name, value in values.items():
        if name in _PATH_FIELDS:
            setattr(config, name, _as_path(value))
        elif name == "config_size_limit_mb":
            try:
                config.config_size_limit_mb = float(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"config_size_limit_mb must be a number, got {value!r}") from e

    return config


def _read_config_file(path: Path) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    known = {f.name for f in fields(FoundryConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"{path}: unknown config key(s): {', '.join(unknown)}")
    return data


def _as_path(value: object) -> Path:
    """Expand ``~`` and anchor relative paths at the current directory."""
    return Path(os.path.abspath(Path(str(value)).expanduser()))
