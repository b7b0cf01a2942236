"""YAML configuration for the household consolidation tools."""

import os
from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_PATH = PROJECT_ROOT / "config" / "church_households.yml"
CONFIG_ENV_VAR = "CHURCH_HOUSEHOLDS_CONFIG"

DEFAULTS = {
    "paths": {"database": "church_households.db", "logs_dir": "logs"},
    "logging": {"level": "INFO", "file": "church_households.log", "rotate": False},
    "consolidation": {"eligible_category": "member"},
    "debug": False,
}


class HHConfig:
    def __init__(self, data, base_dir: Path | None = None):
        self.base_dir = base_dir or PROJECT_ROOT
        self.paths = {**DEFAULTS["paths"], **(data.get("paths") or {})}
        self.logging = {**DEFAULTS["logging"], **(data.get("logging") or {})}
        self.consolidation = {
            **DEFAULTS["consolidation"],
            **(data.get("consolidation") or {}),
        }
        self.debug = bool(data.get("debug", DEFAULTS["debug"]))

    @property
    def eligible_category(self) -> str:
        return self.consolidation["eligible_category"]

    def resolve_path(self, key: str) -> Path:
        """Return a configured path, relative entries anchored at ``base_dir``."""
        path = Path(self.paths[key])
        if not path.is_absolute():
            path = self.base_dir / path
        return path


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else CONFIG_PATH


def load_config(path: Path | None = None) -> HHConfig:
    path = path or config_path()
    if not path.exists():
        # Installed copy or no checkout: defaults, relative to the working directory
        return HHConfig({}, base_dir=Path.cwd())

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    # The checkout config is anchored at the project root, others at their own directory
    base_dir = PROJECT_ROOT if path.resolve() == CONFIG_PATH else path.resolve().parent
    return HHConfig(data, base_dir=base_dir)


_config_cache = None


def get_config() -> HHConfig:
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache


def reset_config() -> None:
    """Drop the cached config so the next ``get_config`` re-reads the file."""
    global _config_cache
    _config_cache = None
