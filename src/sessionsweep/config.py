"""Configuration loader — reads optional YAML config and merges with defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

CONFIG_PATH = Path("~/.config/sessionsweep/config.yaml")

DEFAULTS = {
    "projects_dir": "~/.claude/projects",
    "data_dir": "~/.local/share/sessionsweep",
    "port": 3456,
    "scan_mode": "fast",
    "head_lines": 30,
    "tail_lines": 10,
    "batch_size": 50,
    "prune_every": 10,
    "trash_retention_days": 30,
}


@dataclass
class SweepConfig:
    projects_dir: Path
    data_dir: Path
    port: int
    scan_mode: str
    head_lines: int
    tail_lines: int
    batch_size: int
    prune_every: int
    trash_retention_days: int

    @property
    def cache_path(self) -> Path:
        return self.data_dir / "cache.db"

    @property
    def trash_dir(self) -> Path:
        return self.data_dir / "trash"

    @property
    def journal_path(self) -> Path:
        return self.data_dir / "trash-manifest.json"


def load_config(config_path: Path | None = None) -> SweepConfig:
    """Load config from ~/.config/sessionsweep/config.yaml, merged with defaults.

    Expand ~ in paths. Create the data directory if it doesn't exist.
    If no config file exists, return defaults (don't error).
    """
    if config_path is None:
        config_path = CONFIG_PATH

    config_path = config_path.expanduser()

    merged = dict(DEFAULTS)

    if config_path.is_file():
        with open(config_path) as f:
            user_config = yaml.safe_load(f)
        if isinstance(user_config, dict):
            for key in DEFAULTS:
                if key in user_config:
                    merged[key] = user_config[key]

    scan_mode = str(merged["scan_mode"])
    if scan_mode not in ("fast", "full"):
        scan_mode = DEFAULTS["scan_mode"]

    data_dir = Path(merged["data_dir"]).expanduser()
    data_dir.mkdir(parents=True, exist_ok=True)

    return SweepConfig(
        projects_dir=Path(merged["projects_dir"]).expanduser(),
        data_dir=data_dir,
        port=int(merged["port"]),
        scan_mode=scan_mode,
        head_lines=int(merged["head_lines"]),
        tail_lines=int(merged["tail_lines"]),
        batch_size=max(1, int(merged["batch_size"])),
        prune_every=int(merged["prune_every"]),
        trash_retention_days=int(merged["trash_retention_days"]),
    )
