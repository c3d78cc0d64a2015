import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import load_dotenv


class ConfigLoader:
    """Generic configuration loader for JSON config files."""

    @staticmethod
    def load_configs(
        config_path: str = "configs",
        config_files: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Load multiple JSON config files from a directory.

        Args:
            config_path: Path to config directory
            config_files: Dict mapping config keys to filenames
                          e.g., {"ingest": "snapstage.json"}

        Returns:
            Dict with loaded configs. Missing files or invalid JSON → empty dicts.
        """
        config_dir = Path(config_path)
        result: Dict[str, Any] = {}

        config_files = config_files or {}

        for key, filename in config_files.items():
            file_path = config_dir / filename
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    result[key] = json.load(f)
            except (FileNotFoundError, json.JSONDecodeError):
                result[key] = {}

        return result

    @staticmethod
    def load_single_config(
        config_path: str = "configs",
        filename: Optional[str] = None
    ) -> Dict[str, Any]:
        """Load a single JSON config file safely."""
        if not filename:
            return {}

        configs = ConfigLoader.load_configs(config_path, {"config": filename})
        return configs.get("config", {})


# Environment variables (or .env entries) that override path settings
ENV_OVERRIDES = {
    "SNAPSTAGE_SOURCE": "source_folder",
    "SNAPSTAGE_PRIMARY": "primary_folder",
    "SNAPSTAGE_SECONDARY": "secondary_folder",
    "SNAPSTAGE_PATTERN": "pattern",
}


@dataclass
class IngestConfig:
    """Settings for one ingestion run."""
    source_folder: Optional[str] = None
    primary_folder: Optional[str] = None
    secondary_folder: Optional[str] = None
    pattern: str = "*"
    recursive: bool = False
    organize_by_date: bool = False
    verify: bool = False
    move: bool = False
    dry_run: bool = False
    skip_same_size: bool = False
    read_remarks: bool = False
    remark: Optional[str] = None
    restamp_from_filename: bool = False
    verify_stages: bool = False
    show_progress: bool = False
    date_sources: list[str] = field(default_factory=lambda: ["metadata", "filename", "filesystem"])
    hash_algorithm: str = "md5"
    hash_workers: int = 1
    tool_timeout: Optional[float] = 30.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IngestConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config key(s): {', '.join(unknown)}")
        return cls(**data)


def load_ingest_config(
    config_path: str = "configs",
    filename: str = "snapstage.json",
    use_env: bool = True,
    **overrides: Any
) -> IngestConfig:
    """
    Build an IngestConfig from file, environment and keyword overrides.

    The JSON file holds a ``paths`` and an ``options`` section; both are
    flattened into one mapping. Precedence, lowest first: file, environment
    (``SNAPSTAGE_*``, with a ``.env`` file honoured), keyword overrides.
    Overrides set to None are ignored.
    """
    raw = ConfigLoader.load_single_config(config_path, filename)
    data: Dict[str, Any] = {}
    data.update(raw.get("paths", {}))
    data.update(raw.get("options", {}))

    if use_env:
        load_dotenv()
        for env_name, key in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                data[key] = value

    data.update({k: v for k, v in overrides.items() if v is not None})
    return IngestConfig.from_dict(data)
