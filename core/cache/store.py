# core/cache/store.py
"""
In-memory record tree of the parameter cache.

The tree is ``template_name -> kind_name -> [record, ...]``. Records are
ordered mappings; records sharing a kind are told apart by their
``instanceId`` field. Entries of the wrong shape in a loaded file are
skipped when searching, so one hand-edited entry does not hide the rest.
"""
from typing import Any, Iterator, List, Mapping, Optional, Tuple

import numpy as np
from ruamel.yaml.comments import CommentedMap, CommentedSeq

from core.cache.keys import INSTANCE_ID, RecordKey


def plain_value(value: Any) -> Any:
    """Convert numpy scalars/arrays, tuples and nested mappings into values YAML can represent."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Mapping):
        return make_record(value)
    if isinstance(value, (list, tuple)):
        return [plain_value(v) for v in value]
    return value


def as_text(value: Any) -> Optional[str]:
    """Stored scalars compare as text; a missing field stays ``None``."""
    return None if value is None else str(value)


def make_record(fields: Mapping[str, Any]) -> CommentedMap:
    """Copy a mapping of fitted parameters into a fresh record."""
    record = CommentedMap()
    for name, value in fields.items():
        record[str(name)] = plain_value(value)
    return record


def _matches(record: Any, instance_id: str) -> bool:
    return isinstance(record, Mapping) and as_text(record.get(INSTANCE_ID)) == instance_id


class RecordStore:
    """Ordered tree of cached records under the database root section."""

    def __init__(self, sections: Optional[CommentedMap] = None) -> None:
        self.sections = sections if sections is not None else CommentedMap()

    def records(self, template_name: str, kind_name: str) -> List[CommentedMap]:
        """Records stored under a template for one kind, in stored order."""
        template = self.sections.get(template_name)
        if not isinstance(template, Mapping):
            return []
        siblings = template.get(kind_name)
        if not isinstance(siblings, list):
            return []
        return [record for record in siblings if isinstance(record, Mapping)]

    def find(self, key: RecordKey) -> Optional[CommentedMap]:
        """First record of ``key.kind_name`` whose instance id matches, or ``None``."""
        for record in self.records(key.template_name, key.kind_name):
            if _matches(record, key.instance_id):
                return record
        return None

    def _siblings(self, key: RecordKey) -> CommentedSeq:
        template = self.sections.get(key.template_name)
        if not isinstance(template, Mapping):
            template = CommentedMap()
            self.sections[key.template_name] = template

        siblings = template.get(key.kind_name)
        if not isinstance(siblings, list):
            siblings = CommentedSeq()
            template[key.kind_name] = siblings
        return siblings

    def put(self, key: RecordKey, record: CommentedMap, position: str = "front") -> int:
        """
        Insert or replace the record for ``key``.

        A record with the same instance id is replaced where it stands. Without
        a match the record goes to the front of its kind's list, or to the end
        when ``position`` is ``"end"``.

        Returns:
            The record's index within its kind's list.
        """
        siblings = self._siblings(key)
        for index, existing in enumerate(siblings):
            if _matches(existing, key.instance_id):
                siblings[index] = record
                return index

        if position == "end":
            siblings.append(record)
            return len(siblings) - 1
        siblings.insert(0, record)
        return 0

    def discard(self, key: RecordKey, record: CommentedMap) -> None:
        """Remove exactly ``record`` from its kind's list, dropping sections it leaves empty."""
        template = self.sections.get(key.template_name)
        if not isinstance(template, Mapping):
            return
        siblings = template.get(key.kind_name)
        if not isinstance(siblings, list):
            return
        for index, existing in enumerate(siblings):
            if existing is record:
                del siblings[index]
                break
        if not siblings:
            del template[key.kind_name]
        if not template:
            del self.sections[key.template_name]

    def __iter__(self) -> Iterator[Tuple[RecordKey, CommentedMap]]:
        for template_name, kinds in self.sections.items():
            if not isinstance(kinds, Mapping):
                continue
            for kind_name, siblings in kinds.items():
                if not isinstance(siblings, list):
                    continue
                for record in siblings:
                    if not isinstance(record, Mapping):
                        continue
                    instance_id = as_text(record.get(INSTANCE_ID)) or ""
                    yield RecordKey(str(template_name), str(kind_name), instance_id), record

    def __len__(self) -> int:
        return sum(1 for _ in self)
