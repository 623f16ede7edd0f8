# core/cache/service.py
"""
Persistent cache of fitted engine parameters.

Fitting engine parameters is expensive, so results are kept in a YAML file
and reused across sessions. Each record is stamped with the version and
checksum of the module that produced it and of the cache's own modules;
a record whose stamps no longer match the running code is stale and must
be refit.

The host constructs one ``ParameterCache`` per session, calls ``open()`` at
startup and ``close()`` at shutdown, and hands the instance to whatever needs
cached parameters.
"""
from typing import Any, Callable, Dict, Mapping, Optional

from ruamel.yaml.comments import CommentedMap

from core.cache.keys import (
    ENGINE_CHECKSUM,
    ENGINE_VERSION,
    INSTANCE_ID,
    PRODUCER_CHECKSUM,
    PRODUCER_VERSION,
    RecordKey,
)
from core.cache.store import RecordStore, as_text, make_record
from core.config import CacheSettings
from core.fingerprint import ModuleFingerprint, modules_checksum, producer_fingerprint
from core.inout.database_file import read_database, write_database
from core.version import __version__
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Modules whose code decides how records are keyed, stamped, stored and matched
ENGINE_MODULES = (
    "core.behavior.engine",
    "core.cache.keys",
    "core.cache.service",
    "core.cache.store",
    "core.fingerprint",
    "core.inout.database_file",
)


class ParameterCache:
    """
    Load, query, update and persist cached engine parameter records.

    Lookups and stores load the database lazily if ``open()`` was not called.
    Not thread safe; callers must serialise ``store()`` themselves.
    """

    def __init__(self, settings: CacheSettings) -> None:
        self.settings = settings
        self._store: Optional[RecordStore] = None
        self._engine_fingerprint: Optional[ModuleFingerprint] = None
        self.clear_stats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def is_loaded(self) -> bool:
        return self._store is not None

    def load(self) -> None:
        """Read the database file, falling back to an empty store."""
        path = self.settings.cache_path
        sections = read_database(path, self.settings.database_name)
        if sections is None:
            self._store = RecordStore()
            logger.info("Starting with an empty parameter cache (%s)", path)
        else:
            self._store = RecordStore(sections)
            logger.info("Loaded %d cached records from '%s'", len(self._store), path)

    def save(self) -> None:
        """Write the whole store to the database file."""
        path = self.settings.cache_path
        try:
            write_database(path, self.settings.database_name, self._require_store().sections)
        except OSError as e:
            logger.error("Failed to save parameter cache to '%s': %s", path, e)
            raise
        logger.debug("Saved parameter cache to '%s'", path)

    def open(self) -> "ParameterCache":
        self.load()
        return self

    def close(self) -> None:
        """Save the store if it was ever loaded, then release it."""
        if self._store is None:
            return
        self.save()
        self._store = None

    def __enter__(self) -> "ParameterCache":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require_store(self) -> RecordStore:
        if self._store is None:
            self.load()
        return self._store

    # ------------------------------------------------------------------
    # Own identity
    # ------------------------------------------------------------------
    @property
    def engine_fingerprint(self) -> ModuleFingerprint:
        """Version and combined checksum of the cache's own modules, stamped into every record."""
        if self._engine_fingerprint is None:
            self._engine_fingerprint = ModuleFingerprint(__version__, modules_checksum(ENGINE_MODULES))
        return self._engine_fingerprint

    @property
    def engine_version(self) -> str:
        return self.engine_fingerprint.version

    @property
    def engine_checksum(self) -> str:
        return self.engine_fingerprint.checksum

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    def lookup(self, template_name: str, kind_name: str, instance_id: str = "") -> Optional[CommentedMap]:
        """
        Find the record stored for a composite key.

        Returns:
            The stored record, or ``None`` if there is none.

        Raises:
            CacheKeyError: If the key is malformed.
        """
        key = RecordKey(template_name, kind_name, instance_id)
        record = self._require_store().find(key)
        if record is None:
            self._stats['misses'] += 1
            logger.debug("Cache MISS for %s", key)
        else:
            self._stats['hits'] += 1
            logger.debug("Cache HIT for %s", key)
        return record

    def store(
        self,
        template_name: str,
        kind_name: str,
        instance_id: str,
        record: Mapping[str, Any],
        producer: ModuleFingerprint,
    ) -> CommentedMap:
        """
        Stamp a record with producer and cache fingerprints, store it and save.

        An existing record with the same key is replaced in place.

        Returns:
            The record as stored.
        """
        key = RecordKey(template_name, kind_name, instance_id)
        stamped = make_record(record)
        stamped[INSTANCE_ID] = key.instance_id
        stamped[PRODUCER_VERSION] = producer.version
        stamped[PRODUCER_CHECKSUM] = producer.checksum
        stamped[ENGINE_VERSION] = self.engine_version
        stamped[ENGINE_CHECKSUM] = self.engine_checksum

        store = self._require_store()
        previous = store.find(key)
        index = store.put(key, stamped, self.settings.new_record_position)
        try:
            self.save()
        except OSError:
            raise
        except Exception:
            # Undo a record the writer cannot represent
            if previous is not None:
                store.put(key, previous)
            else:
                store.discard(key, stamped)
            logger.error("Could not write record for %s; dropped it", key)
            raise
        self._stats['stores'] += 1
        logger.debug("Stored %s at index %d", key, index)
        return stamped

    def is_stale(self, record: Mapping[str, Any], producer: Optional[ModuleFingerprint] = None) -> bool:
        """
        Whether a record was produced by code other than what is running now.

        Args:
            record: A stored record.
            producer: Current fingerprint of the producing module, or ``None``
                if unknown; then only the cache's own fingerprint is checked.
        """
        stale = False
        if producer is not None:
            stale |= as_text(record.get(PRODUCER_VERSION)) != producer.version
            stale |= as_text(record.get(PRODUCER_CHECKSUM)) != producer.checksum
        stale |= as_text(record.get(ENGINE_VERSION)) != self.engine_version
        stale |= as_text(record.get(ENGINE_CHECKSUM)) != self.engine_checksum
        return stale

    # ------------------------------------------------------------------
    # Engine behaviour helpers
    # ------------------------------------------------------------------
    def lookup_for(self, engine) -> Optional[CommentedMap]:
        """Record cached for an engine behaviour, or ``None``."""
        key = engine.record_key()
        return self.lookup(key.template_name, key.kind_name, key.instance_id)

    def store_for(self, engine, record: Mapping[str, Any]) -> CommentedMap:
        """Store fitted parameters for an engine behaviour, stamped with its module's fingerprint."""
        key = engine.record_key()
        return self.store(key.template_name, key.kind_name, key.instance_id, record, producer_fingerprint(engine))

    def is_stale_for(self, engine, record: Mapping[str, Any]) -> bool:
        """Staleness check using the engine's declaring module; ``engine`` may be ``None``."""
        producer = producer_fingerprint(engine) if engine is not None else None
        return self.is_stale(record, producer)

    def fetch_or_fit(self, engine, fit: Optional[Callable[[], Mapping[str, Any]]] = None) -> CommentedMap:
        """
        Return a fresh cached record for ``engine``, fitting and storing a new one if needed.

        Args:
            engine: The engine behaviour.
            fit: Produces fitted parameters; defaults to ``engine.fit_parameters``.
        """
        record = self.lookup_for(engine)
        if record is not None and not self.is_stale_for(engine, record):
            return record
        if record is not None:
            self._stats['stale'] += 1
            logger.info("Cached parameters for %s are stale; refitting", engine.record_key())
        fit = fit or engine.fit_parameters
        return self.store_for(engine, fit())

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    def get_stats(self) -> Dict[str, int]:
        """Copy of the hit/miss/stale/store counters for this instance."""
        return dict(self._stats)

    def clear_stats(self) -> None:
        self._stats = {'hits': 0, 'misses': 0, 'stale': 0, 'stores': 0}
