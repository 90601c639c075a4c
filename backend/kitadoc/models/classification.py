"""Field classification: which record fields hold PII and how they are stored.

Classification is declared on the plaintext record type and never changes
per instance::

    class Teacher(BaseModel):
        first_name: Annotated[str, CONFIDENTIAL]
        username: Annotated[str, confidential(target="username", index="username_hmac")]
        role: str  # plain

Dataclasses may use ``Annotated`` too, or ``field(metadata={"pii": CONFIDENTIAL})``.

describe() turns that metadata into an explicit descriptor table, once per
type. build_mapping() pairs a plaintext type with a distinct sealed row type
and checks every classified field has somewhere to go. Both are cached, so
introspection happens at most once per type (or pair of types).

Changing a field's classification after rows exist requires re-sealing those
rows; nothing here does that.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any, Union

from pydantic import BaseModel

from kitadoc.services.errors import ClassificationError

PII_METADATA_KEY = "pii"


class Classification(str, Enum):
    PLAIN = "plain"  # copied as-is
    CONFIDENTIAL = "confidential"  # AES-GCM ciphertext, reversible
    SEARCHABLE = "searchable"  # HMAC token, one-way


class FieldKind(str, Enum):
    TEXT = "text"
    TIMESTAMP = "timestamp"
    RECORD = "record"
    RECORDS = "records"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class PII:
    """Classification marker placed in a field's ``Annotated`` metadata.

    ``target`` names the column on a distinct sealed type (default: same
    name). ``index`` names an extra column on the sealed type that receives
    the lookup token of a confidential field, so it stays both recoverable
    and searchable.
    """

    classification: Classification
    target: str | None = None
    index: str | None = None


CONFIDENTIAL = PII(Classification.CONFIDENTIAL)
SEARCHABLE = PII(Classification.SEARCHABLE)


def confidential(*, target: str | None = None, index: str | None = None) -> PII:
    return PII(Classification.CONFIDENTIAL, target=target, index=index)


def searchable(*, target: str | None = None) -> PII:
    return PII(Classification.SEARCHABLE, target=target)


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    name: str
    classification: Classification
    kind: FieldKind
    target: str
    index: str | None = None
    nested_type: type | None = None  # element type for RECORD / RECORDS

    @property
    def is_classified(self) -> bool:
        return self.classification is not Classification.PLAIN


@dataclass(frozen=True, slots=True)
class RecordMapping:
    """Routing between a plaintext type and the row type it is sealed into."""

    plain_type: type
    sealed_type: type
    fields: tuple[FieldDescriptor, ...]  # descriptors of plain_type
    sealed_fields: frozenset[str]

    def copies(self, descriptor: FieldDescriptor) -> bool:
        """Plain fields only travel when both sides declare them."""
        return descriptor.name in self.sealed_fields


def is_record_type(tp: Any) -> bool:
    return isinstance(tp, type) and (
        issubclass(tp, BaseModel) or dataclasses.is_dataclass(tp)
    )


def is_record(value: Any) -> bool:
    return is_record_type(type(value))


def _strip_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _kind_of(annotation: Any) -> tuple[FieldKind, type | None]:
    annotation = _strip_optional(annotation)
    if typing.get_origin(annotation) is Annotated:
        annotation = _strip_optional(typing.get_args(annotation)[0])

    if annotation is str:
        return FieldKind.TEXT, None
    if annotation is datetime:
        return FieldKind.TIMESTAMP, None
    if is_record_type(annotation):
        return FieldKind.RECORD, annotation

    origin = typing.get_origin(annotation)
    if origin in (list, tuple):
        args = [a for a in typing.get_args(annotation) if a is not Ellipsis]
        if len(args) == 1 and is_record_type(args[0]):
            return FieldKind.RECORDS, args[0]
    return FieldKind.OTHER, None


def _marker(metadata: typing.Iterable[Any]) -> PII | None:
    markers = [m for m in metadata if isinstance(m, PII)]
    if len(markers) > 1:
        raise ClassificationError("field carries more than one PII marker")
    return markers[0] if markers else None


def _union_markers(annotation: Any) -> list[Any]:
    """Markers on Annotated members of a Union, e.g. Optional[Annotated[str, CONFIDENTIAL]]."""
    origin = typing.get_origin(annotation)
    if origin is not Union and origin is not types.UnionType:
        return []
    return [
        extra
        for member in typing.get_args(annotation)
        if typing.get_origin(member) is Annotated
        for extra in typing.get_args(member)[1:]
    ]


def _contains_marker(annotation: Any) -> bool:
    args = typing.get_args(annotation)
    if typing.get_origin(annotation) is Annotated and any(isinstance(a, PII) for a in args[1:]):
        return True
    return any(_contains_marker(a) for a in args)


def _raw_fields(record_type: type) -> list[tuple[str, Any, PII | None]]:
    """(name, annotation, marker) for every field of a model or dataclass."""
    if issubclass(record_type, BaseModel):
        return [
            (name, info.annotation, _marker([*info.metadata, *_union_markers(info.annotation)]))
            for name, info in record_type.model_fields.items()
        ]

    hints = typing.get_type_hints(record_type, include_extras=True)
    raw = []
    for f in dataclasses.fields(record_type):
        annotation = hints.get(f.name, Any)
        inner, extras = annotation, ()
        if typing.get_origin(annotation) is Annotated:
            inner, *extras = typing.get_args(annotation)
        extras = [*extras, *_union_markers(inner)]
        declared = f.metadata.get(PII_METADATA_KEY)
        raw.append((f.name, annotation, _marker([*extras, *([declared] if declared else [])])))
    return raw


@lru_cache(maxsize=None)
def describe(record_type: type) -> tuple[FieldDescriptor, ...]:
    """Build (once) the descriptor table for a record type.

    Raises ClassificationError if a classified field is neither a string
    nor a datetime, or if the type is not a pydantic model or dataclass.
    """
    if not is_record_type(record_type):
        raise ClassificationError(
            f"{getattr(record_type, '__name__', record_type)!s} is not a pydantic model or dataclass"
        )

    descriptors = []
    for name, annotation, marker in _raw_fields(record_type):
        kind, nested = _kind_of(annotation)
        if marker is None:
            if _contains_marker(annotation):
                raise ClassificationError(
                    "PII marker is nested inside a container type; mark the field itself",
                    record_type=record_type.__name__,
                    field=name,
                )
            descriptors.append(
                FieldDescriptor(
                    name=name,
                    classification=Classification.PLAIN,
                    kind=kind,
                    target=name,
                    nested_type=nested,
                )
            )
            continue

        if kind not in (FieldKind.TEXT, FieldKind.TIMESTAMP):
            raise ClassificationError(
                f"field is classified {marker.classification.value} but is not a str or datetime",
                record_type=record_type.__name__,
                field=name,
            )
        if marker.index is not None and marker.classification is not Classification.CONFIDENTIAL:
            raise ClassificationError(
                "only confidential fields take a separate lookup index column",
                record_type=record_type.__name__,
                field=name,
            )
        descriptors.append(
            FieldDescriptor(
                name=name,
                classification=marker.classification,
                kind=kind,
                target=marker.target or name,
                index=marker.index,
            )
        )
    return tuple(descriptors)


def classification_of(record_type: type, field_name: str) -> Classification:
    for descriptor in describe(record_type):
        if descriptor.name == field_name:
            return descriptor.classification
    return Classification.PLAIN


def has_classified_fields(record_type: type) -> bool:
    """True if sealing this type (or a record nested in it) changes anything."""
    return _has_classified_fields(record_type, frozenset())


def _has_classified_fields(record_type: type, seen: frozenset[type]) -> bool:
    if record_type in seen:
        return False
    seen = seen | {record_type}
    for descriptor in describe(record_type):
        if descriptor.is_classified:
            return True
        if descriptor.nested_type is not None and _has_classified_fields(descriptor.nested_type, seen):
            return True
    return False


def field_names(record_type: type) -> frozenset[str]:
    if issubclass(record_type, BaseModel):
        return frozenset(record_type.model_fields)
    return frozenset(f.name for f in dataclasses.fields(record_type))


@lru_cache(maxsize=None)
def build_mapping(plain_type: type, sealed_type: type) -> RecordMapping:
    """Pair a plaintext type with its sealed row type (once per pair).

    Every classified field must name an existing column on the sealed
    type, and so must every index column. Plain fields that exist on only
    one side are skipped when copying.
    """
    descriptors = describe(plain_type)
    if not is_record_type(sealed_type):
        raise ClassificationError(
            f"{getattr(sealed_type, '__name__', sealed_type)!s} is not a pydantic model or dataclass"
        )
    sealed_fields = field_names(sealed_type)

    for descriptor in descriptors:
        if not descriptor.is_classified:
            continue
        if descriptor.target not in sealed_fields:
            raise ClassificationError(
                f"no column {descriptor.target!r} on {sealed_type.__name__}",
                record_type=plain_type.__name__,
                field=descriptor.name,
            )
        if descriptor.index is not None and descriptor.index not in sealed_fields:
            raise ClassificationError(
                f"no index column {descriptor.index!r} on {sealed_type.__name__}",
                record_type=plain_type.__name__,
                field=descriptor.name,
            )

    return RecordMapping(
        plain_type=plain_type,
        sealed_type=sealed_type,
        fields=descriptors,
        sealed_fields=sealed_fields,
    )
