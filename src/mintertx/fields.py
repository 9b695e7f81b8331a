"""Canonical field encoding for Minter records.

A record is an ordered list of typed fields described by FieldSpec
descriptors. Each record encodes as an RLP list of its field values in
declared order; array fields encode as nested lists whose elements are
either byte strings or nested records.

Integer-like fields (``allow_less``) are stored as minimal big-endian byte
strings: no leading zero byte, and zero is the empty string. Values are
validated when a record is constructed, so a constructed record always
encodes. Decoding is strict: non-canonical RLP, wrong arity, bad widths
and leading zero bytes in integer fields all raise DecodeError.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import rlp
from rlp.exceptions import DecodingError as RLPDecodingError

from mintertx.exceptions import DecodeError, SchemaError

logger = logging.getLogger(__name__)

BytesLike = (bytes, bytearray, memoryview)


@dataclass(frozen=True)
class FieldSpec:
    """Describes one field of a record."""

    name: str
    length: Optional[int] = None
    allow_less: bool = False
    allow_zero: bool = False
    default: bytes = b""
    alias: Optional[str] = None
    # Array element: a FieldSpec for scalar elements, or a Record subclass
    # for elements encoded as nested records.
    element: Union["FieldSpec", type, None] = None
    mutable: bool = False
    # Converts human-entered text (addresses, coin symbols) to raw bytes
    parse: Optional[Callable[[str], bytes]] = None

    @property
    def is_array(self) -> bool:
        return self.element is not None

    @property
    def default_raw(self):
        return [] if self.is_array else bytes(self.default)


def int_to_bytes(value: int) -> bytes:
    """Minimal big-endian encoding; zero is the empty string."""
    if value < 0:
        raise SchemaError(f"Negative integers cannot be encoded: {value}")
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def to_bytes(value: Any) -> bytes:
    """Convert an application value into raw field bytes.

    ints become minimal big-endian bytes, ``0x``-prefixed strings are hex
    decoded, other strings are UTF-8 encoded and None is empty.
    """
    if value is None:
        return b""
    if isinstance(value, bool):
        return int_to_bytes(int(value))
    if isinstance(value, int):
        return int_to_bytes(value)
    if isinstance(value, BytesLike):
        return bytes(value)
    if isinstance(value, str):
        if value[:2].lower() == "0x":
            digits = value[2:]
            if len(digits) % 2:
                digits = "0" + digits
            try:
                return bytes.fromhex(digits)
            except ValueError as e:
                raise SchemaError(f"Invalid hex string: {value!r}") from e
        return value.encode("utf-8")
    raise SchemaError(f"Cannot convert {type(value).__name__} to bytes")


def _scalar_bytes(spec: FieldSpec, value: Any) -> bytes:
    if spec.parse is not None and isinstance(value, str):
        return spec.parse(value)
    return to_bytes(value)


def _check_scalar(spec: FieldSpec, value: bytes, strict: bool) -> bytes:
    """Validate raw bytes against a scalar spec, returning the stored form.

    In strict (decode) mode a leading zero byte in an integer field is an
    error; otherwise it is stripped.
    """
    if spec.allow_less and value[:1] == b"\x00":
        if strict:
            raise SchemaError(
                f"Field '{spec.name}' has a leading zero byte", spec.name
            )
        value = value.lstrip(b"\x00")

    if spec.length is None:
        return value

    if spec.allow_less:
        if len(value) > spec.length:
            raise SchemaError(
                f"Field '{spec.name}' too long: {len(value)} > {spec.length} bytes",
                spec.name,
            )
    elif not (spec.allow_zero and len(value) == 0) and len(value) != spec.length:
        raise SchemaError(
            f"Field '{spec.name}' must be {spec.length} bytes, got {len(value)}",
            spec.name,
        )
    return value


def _element_raw(spec: FieldSpec, item: Any, strict: bool):
    element = spec.element
    if isinstance(element, FieldSpec):
        if strict and not isinstance(item, BytesLike):
            raise SchemaError(
                f"Field '{spec.name}' elements must be byte strings", spec.name
            )
        return _check_scalar(element, _scalar_bytes(element, item), strict)

    if isinstance(item, element):
        return item.raw
    if strict:
        if not isinstance(item, list):
            raise SchemaError(
                f"Field '{spec.name}' elements must be lists", spec.name
            )
        return element._from_raw(item, strict=True).raw
    return element(item).raw


def check_field(spec: FieldSpec, value: Any, strict: bool = False):
    """Validate one field value and return its raw form.

    Scalars return bytes; arrays return a list of element raw values.
    """
    if spec.is_array:
        if value is None:
            return []
        if isinstance(value, (str, *BytesLike)) or not isinstance(value, Iterable):
            raise SchemaError(f"Field '{spec.name}' must be a list", spec.name)
        return [_element_raw(spec, item, strict) for item in value]

    if strict and not isinstance(value, BytesLike):
        raise SchemaError(f"Field '{spec.name}' must be a byte string", spec.name)
    return _check_scalar(spec, _scalar_bytes(spec, value), strict)


class Record:
    """An ordered, named tuple of raw field values.

    Subclasses declare ``FIELDS``. A record can be built from a mapping of
    field names (or aliases) to values, from a positional list of raw
    values, or from its encoded bytes.
    """

    FIELDS: tuple[FieldSpec, ...] = ()

    def __init__(self, data: Union[Mapping[str, Any], list, bytes, None] = None):
        values: dict[str, Any] = {}
        object.__setattr__(self, "_values", values)

        if data is None:
            data = {}
        if isinstance(data, BytesLike):
            decoded = _rlp_decode(bytes(data))
            self._load_raw(decoded, strict=True)
        elif isinstance(data, (list, tuple)):
            self._load_raw(list(data), strict=False)
        elif isinstance(data, Mapping):
            self._load_mapping(data)
        else:
            raise SchemaError(
                f"Cannot build {type(self).__name__} from {type(data).__name__}"
            )

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in cls.FIELDS]

    @classmethod
    def field_spec(cls, name: str) -> FieldSpec:
        for spec in cls.FIELDS:
            if name in (spec.name, spec.alias):
                return spec
        raise SchemaError(f"Unknown field '{name}' for {cls.__name__}", name)

    @classmethod
    def _from_raw(cls, raw: list, strict: bool = True) -> "Record":
        record = cls.__new__(cls)
        object.__setattr__(record, "_values", {})
        record._load_raw(raw, strict=strict)
        return record

    @classmethod
    def deserialize(cls, data: bytes) -> "Record":
        return decode(data, cls)

    def _load_mapping(self, data: Mapping[str, Any]) -> None:
        seen: set[str] = set()
        for key in data:
            spec = self.field_spec(key)
            if spec.name in seen:
                raise SchemaError(
                    f"Field '{spec.name}' given more than once", spec.name
                )
            seen.add(spec.name)

        for spec in self.FIELDS:
            if spec.name in data:
                value = data[spec.name]
            elif spec.alias and spec.alias in data:
                value = data[spec.alias]
            else:
                self._values[spec.name] = spec.default_raw
                continue
            self._values[spec.name] = check_field(spec, value)

    def _load_raw(self, raw: list, strict: bool) -> None:
        if strict and not isinstance(raw, list):
            raise DecodeError(f"{type(self).__name__} must decode to a list")
        if len(raw) > len(self.FIELDS):
            error = DecodeError if strict else SchemaError
            raise error(
                f"Wrong number of fields for {type(self).__name__}: "
                f"{len(raw)} > {len(self.FIELDS)}"
            )
        for i, spec in enumerate(self.FIELDS):
            if i >= len(raw):
                # Only trailing fields may be omitted
                self._values[spec.name] = spec.default_raw
                continue
            if not strict:
                self._values[spec.name] = check_field(spec, raw[i])
                continue
            try:
                self._values[spec.name] = check_field(spec, raw[i], strict=True)
            except SchemaError as e:
                raise DecodeError(str(e), e.field or spec.name) from e

    def __getattr__(self, name: str):
        values = self.__dict__.get("_values", {})
        if name in values:
            return values[name]
        for spec in type(self).FIELDS:
            if spec.alias == name:
                return values[spec.name]
        raise AttributeError(f"{type(self).__name__} has no field '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return
        spec = self.field_spec(name)
        if not spec.mutable:
            raise AttributeError(f"Field '{spec.name}' is read-only")
        self._values[spec.name] = check_field(spec, value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return type(self) is type(other) and self.raw == other.raw

    def __repr__(self) -> str:
        parts = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"{type(self).__name__}({parts})"

    @property
    def raw(self) -> list:
        """Field values in declared order, arrays as nested lists."""
        return [_copy_raw(self._values[spec.name]) for spec in self.FIELDS]

    def int_value(self, name: str) -> int:
        spec = self.field_spec(name)
        return int.from_bytes(self._values[spec.name], "big")

    def to_dict(self) -> dict[str, Any]:
        result = {}
        for spec in self.FIELDS:
            value = self._values[spec.name]
            if spec.is_array and not isinstance(spec.element, FieldSpec):
                value = [spec.element._from_raw(item).to_dict() for item in value]
            result[spec.name] = _copy_raw(value)
        return result

    def serialize(self) -> bytes:
        return encode(self)


def _copy_raw(value):
    if isinstance(value, list):
        return [_copy_raw(v) for v in value]
    return value


def _rlp_decode(data: bytes):
    try:
        return rlp.decode(data, strict=True)
    except RLPDecodingError as e:
        raise DecodeError(f"Malformed RLP: {e}") from e


def encode(record: Record, trim_defaults: bool = False) -> bytes:
    """Encode a record as an RLP list of its fields.

    With ``trim_defaults``, trailing fields equal to their default are
    omitted. Interior fields are always present.
    """
    raw = record.raw
    if trim_defaults:
        while raw and raw[-1] == record.FIELDS[len(raw) - 1].default_raw:
            raw.pop()
    return rlp.encode(raw)


def decode(data: bytes, schema: type[Record]) -> Record:
    """Decode bytes produced by encode() into a record of ``schema``."""
    if not isinstance(data, BytesLike):
        raise DecodeError(f"Expected bytes, got {type(data).__name__}")
    decoded = _rlp_decode(bytes(data))
    if not isinstance(decoded, list):
        raise DecodeError(f"{schema.__name__} must decode to a list, got a byte string")
    record = schema._from_raw(decoded, strict=True)
    logger.debug("Decoded %s with %d fields", schema.__name__, len(decoded))
    return record
