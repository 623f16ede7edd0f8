# core/config.py
"""
Settings for the parameter cache: where the database file lives and how it is laid out.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from cerberus import Validator

from core.exceptions import SettingsError
from utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CACHE_FILE = Path("PluginData/fitcache/ParameterCache.yml")
DEFAULT_DATABASE_NAME = "ParameterCacheDatabase"
RECORD_POSITIONS = ("front", "end")

SETTINGS_SCHEMA: Dict[str, Any] = {
    'root_dir': {'type': 'string', 'required': False, 'empty': False},
    'cache_file': {'type': 'string', 'required': False, 'empty': False},
    'database_name': {
        'type': 'string',
        'required': False,
        'regex': r'[A-Za-z_][A-Za-z0-9_.\-]*',
    },
    'new_record_position': {
        'type': 'string',
        'required': False,
        'allowed': list(RECORD_POSITIONS),
    },
}


@dataclass(frozen=True)
class CacheSettings:
    root_dir: Path
    cache_file: Path = DEFAULT_CACHE_FILE
    database_name: str = DEFAULT_DATABASE_NAME
    new_record_position: str = "front"

    def __post_init__(self):
        if self.new_record_position not in RECORD_POSITIONS:
            raise SettingsError(
                f"new_record_position must be one of {RECORD_POSITIONS}, got '{self.new_record_position}'"
            )
        if not self.database_name:
            raise SettingsError("database_name must not be empty")
        object.__setattr__(self, "root_dir", Path(self.root_dir))
        object.__setattr__(self, "cache_file", Path(self.cache_file))

    @property
    def cache_path(self) -> Path:
        """Absolute location of the database file."""
        return self.root_dir / self.cache_file


def load_settings(path: Union[str, Path], root_dir: Optional[Union[str, Path]] = None) -> CacheSettings:
    """
    Load cache settings from a YAML file.

    Args:
        path: Settings file.
        root_dir: Base directory supplied by the host; overrides ``root_dir`` in the file.

    Raises:
        SettingsError: If the file cannot be read, fails validation, or no root directory is known.
    """
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise SettingsError(f"Failed to read settings YAML '{path}': {e}") from e
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SettingsError(f"Settings file '{path}' must contain a mapping")

    validator = Validator(SETTINGS_SCHEMA, allow_unknown=False)
    if not validator.validate(raw):
        logger.error("Settings schema validation errors: %s", validator.errors)
        raise SettingsError(f"Settings schema validation errors: {validator.errors}")
    doc: Dict[str, Any] = validator.document

    if root_dir is None:
        if 'root_dir' not in doc:
            raise SettingsError(f"No root_dir given in '{path}' or by the caller")
        root_dir = Path(doc['root_dir'])
        if not root_dir.is_absolute():
            root_dir = path.parent / root_dir

    kwargs: Dict[str, Any] = {k: doc[k] for k in ('cache_file', 'database_name', 'new_record_position') if k in doc}
    settings = CacheSettings(root_dir=Path(root_dir), **kwargs)
    logger.debug("Loaded cache settings from '%s': %s", path, settings)
    return settings
