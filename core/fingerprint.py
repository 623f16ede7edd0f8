# core/fingerprint.py
"""
Version and checksum fingerprints of loaded Python modules.

A fingerprint identifies the exact code that produced a cached record: the
declared version string plus an MD5 checksum of the module's source file.
Versions and checksums are computed once per module and memoised for the
process.
"""
import hashlib
import importlib
import os
import sys
from importlib import metadata
from types import ModuleType
from typing import Dict, Iterable, NamedTuple, Optional, Tuple

from core.exceptions import FingerprintError
from utils.logging_config import get_logger

logger = get_logger(__name__)

UNVERSIONED = "0.0.0"

_checksum_memo: Dict[str, str] = {}
_version_memo: Dict[str, str] = {}
_group_memo: Dict[Tuple[str, ...], str] = {}


class ModuleFingerprint(NamedTuple):
    version: str
    checksum: str


def format_digest(digest: bytes) -> str:
    """Render a digest as dash-separated uppercase hex pairs, e.g. ``9E-10-7D``."""
    return "-".join(f"{b:02X}" for b in digest)


def file_checksum(path: str) -> str:
    """
    MD5 checksum of the exact bytes of a file.

    Raises:
        FingerprintError: If the file cannot be read.
    """
    md5 = hashlib.md5()
    try:
        with open(path, 'rb') as f:
            for chunk in iter(lambda: f.read(65536), b""):
                md5.update(chunk)
    except OSError as e:
        raise FingerprintError(f"Cannot read '{path}' for checksum: {e}") from e
    return format_digest(md5.digest())


def _distribution_version(module: ModuleType, top_name: str) -> Optional[str]:
    """Version of the installed distribution that actually ships ``module``'s file."""
    path = getattr(module, "__file__", None)
    if not path:
        return None
    path = os.path.realpath(path)
    for dist_name in metadata.packages_distributions().get(top_name, []):
        try:
            dist = metadata.distribution(dist_name)
        except metadata.PackageNotFoundError:
            continue
        for shipped in dist.files or []:
            if os.path.realpath(dist.locate_file(shipped)) == path:
                return dist.version
    return None


def module_version(module: ModuleType) -> str:
    """
    Declared version of a module, memoised per module name.

    Looks at the module's ``__version__``, then its top-level package's, then
    the installed distribution whose file list contains the module's file.
    """
    cached = _version_memo.get(module.__name__)
    if cached is not None:
        return cached

    version = getattr(module, "__version__", None)
    top_name = module.__name__.partition(".")[0]
    top = sys.modules.get(top_name)
    if version is None and top is not None:
        version = getattr(top, "__version__", None)
    if version is None:
        version = _distribution_version(module, top_name)
    if version is None:
        logger.debug("No version declared for module '%s'; using %s", module.__name__, UNVERSIONED)
        version = UNVERSIONED

    _version_memo[module.__name__] = str(version)
    return _version_memo[module.__name__]


def module_checksum(module: ModuleType) -> str:
    """Memoised checksum of the file a module was loaded from."""
    path: Optional[str] = getattr(module, "__file__", None)
    if not path:
        raise FingerprintError(f"Module '{module.__name__}' has no backing file")
    cached = _checksum_memo.get(module.__name__)
    if cached is None:
        cached = file_checksum(path)
        _checksum_memo[module.__name__] = cached
        logger.debug("Checksum of '%s' (%s): %s", module.__name__, path, cached)
    return cached


def modules_checksum(module_names: Iterable[str]) -> str:
    """
    Memoised MD5 checksum over the files of several modules, taken in name order.

    Raises:
        FingerprintError: If a module cannot be imported or its file cannot be read.
    """
    names = tuple(sorted(set(module_names)))
    cached = _group_memo.get(names)
    if cached is not None:
        return cached

    md5 = hashlib.md5()
    for name in names:
        try:
            module = importlib.import_module(name)
        except ImportError as e:
            raise FingerprintError(f"Cannot import '{name}' for checksum: {e}") from e
        path = getattr(module, "__file__", None)
        if not path:
            raise FingerprintError(f"Module '{name}' has no backing file")
        try:
            with open(path, 'rb') as f:
                md5.update(f.read())
        except OSError as e:
            raise FingerprintError(f"Cannot read '{path}' for checksum: {e}") from e

    cached = format_digest(md5.digest())
    _group_memo[names] = cached
    logger.debug("Checksum of %s: %s", ", ".join(names), cached)
    return cached


def fingerprint(module: ModuleType) -> ModuleFingerprint:
    """
    Compute the (version, checksum) fingerprint of a loaded module.

    Raises:
        FingerprintError: If the module's file cannot be located or read.
    """
    return ModuleFingerprint(module_version(module), module_checksum(module))


def producer_fingerprint(engine) -> ModuleFingerprint:
    """Fingerprint of the module declaring an engine behaviour's class."""
    module_name = type(engine).__module__
    module = sys.modules.get(module_name)
    if module is None:
        raise FingerprintError(f"Module '{module_name}' declaring {type(engine).__name__} is not loaded")
    return fingerprint(module)


def clear_fingerprint_cache() -> None:
    """Forget memoised versions and checksums so the next fingerprint re-reads module files."""
    _checksum_memo.clear()
    _version_memo.clear()
    _group_memo.clear()
