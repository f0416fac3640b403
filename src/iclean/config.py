"""JSON-backed user configuration for iclean."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from iclean.guard import PathGuard
from iclean.scanner import DEFAULT_THRESHOLD

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ICLEAN_CONFIG"


def default_config_path() -> Path:
    """Return the config file location, honouring ICLEAN_CONFIG and XDG_CONFIG_HOME."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "iclean" / "config.json"


class Config(BaseModel):
    """User settings."""

    threshold_bytes: int = Field(
        DEFAULT_THRESHOLD, gt=0, description="Minimum file size reported by scans"
    )
    protected_paths: list[str] = Field(
        default_factory=list,
        description="Extra locations never scanned or deleted (supports ~ expansion)",
    )
    trash_dir: Optional[str] = Field(None, description="Trash location override")

    def make_guard(self) -> PathGuard:
        """Build a PathGuard with the system locations plus the user's extras."""
        return PathGuard(extra=[os.path.expanduser(p) for p in self.protected_paths])

    def trash_path(self) -> Path | None:
        return Path(self.trash_dir).expanduser() if self.trash_dir else None

    def save(self, path: Path | None = None) -> bool:
        """Write the configuration to disk."""
        target = path or default_config_path()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(self.model_dump_json(indent=2) + "\n", encoding="utf-8")
            return True
        except OSError as e:
            log.warning("Could not save config to %s: %s", target, e)
            return False


def load_config(path: Path | None = None) -> Config:
    """
    Load the configuration, falling back to defaults.

    Args:
        path: Config file (default: see default_config_path)

    Returns:
        Config loaded from disk, or defaults if the file is missing or invalid
    """
    source = path or default_config_path()
    if not source.exists():
        return Config()

    try:
        data = json.loads(source.read_text(encoding="utf-8"))
        return Config.model_validate(data)
    except (json.JSONDecodeError, OSError, ValidationError) as e:
        log.warning("Could not load config from %s: %s", source, e)
        return Config()
