# core/cache/keys.py
"""
Composite record keys and the invalidation field names stored in each record.
"""
from dataclasses import dataclass

from core.exceptions import CacheKeyError

INSTANCE_ID = "instanceId"
PRODUCER_VERSION = "producerVersion"
PRODUCER_CHECKSUM = "producerChecksum"
ENGINE_VERSION = "engineVersion"
ENGINE_CHECKSUM = "engineChecksum"

STAMP_FIELDS = (INSTANCE_ID, PRODUCER_VERSION, PRODUCER_CHECKSUM, ENGINE_VERSION, ENGINE_CHECKSUM)


@dataclass(frozen=True)
class RecordKey:
    """
    Identifies one cached record.

    ``template_name`` is the part the engine is attached to, ``kind_name`` the
    engine behaviour's class name and ``instance_id`` the id the user gave that
    engine. An empty ``instance_id`` is a valid, specific id and not a wildcard.
    """
    template_name: str
    kind_name: str
    instance_id: str = ""

    def __post_init__(self):
        for label in ("template_name", "kind_name"):
            value = getattr(self, label)
            if not isinstance(value, str) or not value:
                raise CacheKeyError(f"{label} must be a non-empty string, got {value!r}")
        if not isinstance(self.instance_id, str):
            raise CacheKeyError(f"instance_id must be a string, got {self.instance_id!r}")

    def __str__(self) -> str:
        return f"{self.template_name}/{self.kind_name}[{self.instance_id}]"
