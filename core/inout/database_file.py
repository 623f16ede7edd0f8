# core/inout/database_file.py
"""
Read and write the parameter cache database file.

The file is a YAML document whose top-level mapping wraps one named root
section. ruamel.yaml's round-trip mode is used so the order of templates,
kinds and record fields survives a load/save cycle.
"""
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from cerberus import Validator
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from utils.logging_config import get_logger

logger = get_logger(__name__)


def database_schema(database_name: str) -> Dict[str, Any]:
    """
    Cerberus schema requiring the ``database_name`` root section.

    Only the root is checked; entries of the wrong shape below it are skipped
    by the record store rather than discarding the whole database.
    """
    return {
        database_name: {'type': 'dict', 'required': True, 'nullable': True},
    }


def _yaml() -> YAML:
    yaml = YAML()
    yaml.indent(mapping=2, sequence=4, offset=2)
    return yaml


def read_database(path: Path, database_name: str) -> Optional[CommentedMap]:
    """
    Load the root section from a database file.

    Returns:
        The root section's mapping, or ``None`` if the file is missing, not
        valid YAML, or does not hold the named root section.

    Raises:
        OSError: If the file exists but cannot be read.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = _yaml().load(f)
    except (FileNotFoundError, NotADirectoryError):
        logger.debug("No database file at '%s'", path)
        return None
    except (YAMLError, UnicodeDecodeError) as e:
        logger.warning("Ignoring unparsable database file '%s': %s", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Ignoring database file '%s': top level is not a mapping", path)
        return None

    validator = Validator(database_schema(database_name), allow_unknown=True)
    if not validator.validate(data):
        logger.warning("Ignoring database file '%s': %s", path, validator.errors)
        return None

    root = data[database_name]
    return root if root is not None else CommentedMap()


def write_database(path: Path, database_name: str, sections: CommentedMap) -> None:
    """
    Write the root section to ``path``, replacing the file atomically.

    Missing parent directories are created. Any ``OSError`` propagates.
    """
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)

    document = CommentedMap()
    document[database_name] = sections

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            _yaml().dump(document, f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
