"""Record sealing: apply field classification across whole records.

SealingEngine walks a record (pydantic model, SQLModel row or dataclass) or
a list/tuple of them and, per field, encrypts, hashes or copies according to
the type's descriptor table (see kitadoc.models.classification).

    engine = SealingEngine()
    row = engine.seal(child, key, into=ChildRow)     # before INSERT/UPDATE
    child = engine.open(row, key, into=Child)        # after SELECT
    token = engine.lookup_token("Maria.Schmidt ", key)  # WHERE username_hmac = :token

Without ``into`` the result is a new record of the input's own type. Inputs
are never mutated, and a record either comes back fully sealed/opened or
not at all.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from kitadoc.models.classification import (
    Classification,
    FieldDescriptor,
    FieldKind,
    RecordMapping,
    build_mapping,
    describe,
    field_names,
    has_classified_fields,
    is_record,
)
from kitadoc.services.encryption import FieldCipher, LookupHasher, require_key
from kitadoc.services.errors import CipherError, DigestError, TransformError
from kitadoc.utils.timestamps import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

_NESTED_KINDS = (FieldKind.RECORD, FieldKind.RECORDS, FieldKind.OTHER)


class SealingEngine:
    """Seals records for storage and opens them after reading.

    Stateless apart from its two primitives; one instance can be shared
    across threads and requests. The key is passed on every call.
    """

    __slots__ = ("cipher", "hasher")

    def __init__(
        self,
        cipher: FieldCipher | None = None,
        hasher: LookupHasher | None = None,
    ) -> None:
        self.cipher = cipher or FieldCipher()
        self.hasher = hasher or LookupHasher()

    def seal(self, record: Any, key: bytes, into: type | None = None) -> Any:
        """Encrypt confidential fields and hash searchable ones.

        ``into`` names a distinct sealed row type; classified fields are
        routed to their declared target (and index) columns on it.
        """
        key = require_key(key)
        return self._apply(record, key, into, sealing=True)

    def open(self, record: Any, key: bytes, into: type | None = None) -> Any:
        """Decrypt confidential fields. Searchable fields stay tokens.

        ``into`` names the plaintext type whose classification applies
        when ``record`` is a sealed row of a different type.
        """
        key = require_key(key)
        return self._apply(record, key, into, sealing=False)

    def lookup_token(self, value: str, key: bytes) -> str:
        """Token to compare against a stored searchable/index column."""
        return self.hasher.digest(value, key)

    # -- traversal ---------------------------------------------------------

    def _apply(self, record: Any, key: bytes, into: type | None, sealing: bool) -> Any:
        if isinstance(record, list):
            return [self._apply(item, key, into, sealing) for item in record]
        if isinstance(record, tuple):
            return tuple(self._apply(item, key, into, sealing) for item in record)

        if not is_record(record):
            raise TransformError(
                f"cannot {'seal' if sealing else 'open'} {type(record).__name__}: "
                "expected a pydantic model, dataclass, or a list of them"
            )

        if into is None:
            return self._same_type(record, key, sealing)
        if sealing:
            mapping = build_mapping(type(record), into)
        else:
            mapping = build_mapping(into, type(record))
        return self._mapped(record, key, mapping, sealing)

    def _same_type(self, record: Any, key: bytes, sealing: bool) -> Any:
        record_type = type(record)
        names = field_names(record_type)
        updates: dict[str, Any] = {}

        for descriptor in describe(record_type):
            value = getattr(record, descriptor.name)
            if descriptor.is_classified:
                updates[descriptor.name] = self._field(record_type, descriptor, value, key, sealing)
                if sealing and descriptor.index is not None and descriptor.index in names:
                    updates[descriptor.index] = self._index_token(record_type, descriptor, value, key)
            elif descriptor.kind in _NESTED_KINDS:
                nested = self._walk_nested(value, key, sealing)
                if nested is not value:
                    updates[descriptor.name] = nested

        if isinstance(record, BaseModel):
            return record.model_copy(update=updates)
        return dataclasses.replace(record, **updates)

    def _mapped(self, record: Any, key: bytes, mapping: RecordMapping, sealing: bool) -> Any:
        plain_type = mapping.plain_type
        values: dict[str, Any] = {}

        for descriptor in mapping.fields:
            if descriptor.is_classified:
                source, target = descriptor.name, descriptor.target
                if not sealing:
                    source, target = target, source
                value = getattr(record, source)
                values[target] = self._field(plain_type, descriptor, value, key, sealing)
                if sealing and descriptor.index is not None:
                    values[descriptor.index] = self._index_token(plain_type, descriptor, value, key)
            elif mapping.copies(descriptor):
                value = getattr(record, descriptor.name)
                values[descriptor.name] = self._walk_nested(value, key, sealing)

        result_type = mapping.sealed_type if sealing else mapping.plain_type
        try:
            return result_type(**values)
        except ValidationError as exc:
            locations = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
            raise TransformError(
                f"could not build {result_type.__name__} from {type(record).__name__}; "
                f"invalid fields: {', '.join(locations)}"
            ) from None

    def _walk_nested(self, value: Any, key: bytes, sealing: bool) -> Any:
        """Seal/open records held by a plain field; anything else comes back as-is."""
        if is_record(value):
            if has_classified_fields(type(value)):
                return self._same_type(value, key, sealing)
            return value
        if isinstance(value, (list, tuple)) and any(is_record(item) for item in value):
            items = [self._walk_nested(item, key, sealing) for item in value]
            return items if isinstance(value, list) else tuple(items)
        return value

    # -- single fields -----------------------------------------------------

    def _field(
        self,
        record_type: type,
        descriptor: FieldDescriptor,
        value: Any,
        key: bytes,
        sealing: bool,
    ) -> Any:
        if value is None:
            return None
        try:
            if sealing:
                return self._seal_value(record_type, descriptor, value, key)
            return self._open_value(record_type, descriptor, value, key)
        except (CipherError, DigestError) as exc:
            logger.warning(
                "Failed to %s field %s.%s",
                "seal" if sealing else "open",
                record_type.__name__,
                descriptor.name,
            )
            raise TransformError(
                str(exc), record_type=record_type.__name__, field=descriptor.name
            ) from exc

    def _seal_value(self, record_type: type, descriptor: FieldDescriptor, value: Any, key: bytes) -> str:
        text = _as_text(record_type, descriptor, value)
        if descriptor.classification is Classification.SEARCHABLE:
            return self.hasher.digest(text, key)
        return self.cipher.seal(text, key)

    def _open_value(self, record_type: type, descriptor: FieldDescriptor, value: Any, key: bytes) -> Any:
        if not isinstance(value, str):
            raise TransformError(
                f"sealed value must be str, got {type(value).__name__}",
                record_type=record_type.__name__,
                field=descriptor.name,
            )
        if descriptor.classification is Classification.SEARCHABLE:
            return value

        text = self.cipher.open(value, key)
        if descriptor.kind is not FieldKind.TIMESTAMP:
            return text
        if text == "":
            return None
        try:
            return parse_timestamp(text)
        except ValueError as exc:
            raise TransformError(
                str(exc), record_type=record_type.__name__, field=descriptor.name
            ) from None

    def _index_token(self, record_type: type, descriptor: FieldDescriptor, value: Any, key: bytes) -> str | None:
        if value is None:
            return None
        try:
            return self.hasher.digest(_as_text(record_type, descriptor, value), key)
        except DigestError as exc:
            raise TransformError(
                str(exc), record_type=record_type.__name__, field=descriptor.index
            ) from exc


def _as_text(record_type: type, descriptor: FieldDescriptor, value: Any) -> str:
    """Plaintext value to the string the primitives operate on."""
    if descriptor.kind is FieldKind.TIMESTAMP and isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, str) and (descriptor.kind is FieldKind.TEXT or value == ""):
        return value
    expected = "datetime" if descriptor.kind is FieldKind.TIMESTAMP else "str"
    raise TransformError(
        f"classified field expected {expected}, got {type(value).__name__}",
        record_type=record_type.__name__,
        field=descriptor.name,
    )
