"""
Typed JSON decoding.

DecodeState walks a JSON document with a cursor and builds values of the
type a TypeDescriptor describes. Literals are read with the standard
library scanner (json.JSONDecoder.raw_decode), so number and string
syntax and the resulting syntax errors are exactly those of the json
module. Objects and arrays are walked here so that every nested open
slot can be routed through the discriminator.

The hook used by the discriminator is DecodeState.value(descriptor):
decode the next value at the cursor as the described type.

JSON null decodes to None whatever the target type.
"""

from __future__ import annotations

import json
import re
from decimal import Decimal
from json.decoder import scanstring
from typing import Any, Iterator

from pydantic import BaseModel, ValidationError

from tagson import discriminator
from tagson.cache import PointerTypeCache, default_pointer_cache
from tagson.config import DISABLED, DiscriminatorConfig, Resolver
from tagson.errors import UnknownFieldError, UnmarshalTypeError, UnsupportedScalarKindError, UnsupportedTypeError
from tagson.introspect import describe_type, struct_fields
from tagson.stypes import (
    ANY,
    COMPLEX_KINDS,
    FLOAT32_MAX,
    FLOAT_KINDS,
    INTEGER_RANGES,
    Array,
    Interface,
    Kind,
    Map,
    Pointer,
    Scalar,
    Slice,
    Struct,
    TypeDescriptor,
)

_WHITESPACE = re.compile(r"[ \t\n\r]*")

_DEFAULT_DECODER = json.JSONDecoder()
_NUMBER_DECODER = json.JSONDecoder(parse_float=Decimal)

_BUILTIN_PY_TYPES = (int, float, str, bool)


def json_kind(value) -> str:
    """Name the JSON kind of a generically decoded value, for error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


class DecodeState:
    """
    Cursor over one JSON document plus the options of its decoder.

    Attributes:
        data: The text being decoded.
        off: Cursor position in ``data``.
        origin: Absolute offset of ``data[0]`` in the original document;
            non-zero for the scratch copies made during lookahead.
        discriminator: Type/value field names and the resolver.
        cache: Pointer cache used for type resolution.
    """

    def __init__(
        self,
        data: str,
        *,
        disallow_unknown_fields: bool = False,
        use_number: bool = False,
        discriminator: DiscriminatorConfig = DISABLED,
        cache: PointerTypeCache | None = None,
        origin: int = 0,
    ):
        self.data = data
        self.off = 0
        self.origin = origin
        self.disallow_unknown_fields = disallow_unknown_fields
        self.use_number = use_number
        self.discriminator = discriminator
        self.cache = cache or default_pointer_cache
        self._decoder = _NUMBER_DECODER if use_number else _DEFAULT_DECODER

    def clone(self, data: str, origin: int) -> DecodeState:
        """A fresh state over ``data`` carrying this state's options."""
        return DecodeState(
            data,
            disallow_unknown_fields=self.disallow_unknown_fields,
            use_number=self.use_number,
            discriminator=self.discriminator,
            cache=self.cache,
            origin=origin,
        )

    def release(self) -> None:
        self.data = ""
        self.off = 0

    # =========================================================================
    # Tokens
    # =========================================================================

    def offset(self, off: int | None = None) -> int:
        """Absolute document offset of ``off`` (default: the cursor)."""
        return self.origin + (self.off if off is None else off)

    def skip_space(self) -> None:
        self.off = _WHITESPACE.match(self.data, self.off).end()

    def peek(self) -> str:
        """Skip whitespace and return the next character ('' at end of input)."""
        self.skip_space()
        return self.data[self.off:self.off + 1]

    def expect(self, char: str, what: str) -> None:
        if self.peek() != char:
            raise json.JSONDecodeError(f"Expecting {what}", self.data, self.off)
        self.off += 1

    def literal(self) -> Any:
        """Decode the next value generically (dicts, lists, scalars)."""
        self.skip_space()
        value, self.off = self._decoder.raw_decode(self.data, self.off)
        return value

    def skip_value(self) -> None:
        self.literal()

    def key(self) -> str:
        if self.peek() != '"':
            raise json.JSONDecodeError(
                "Expecting property name enclosed in double quotes", self.data, self.off
            )
        key, self.off = scanstring(self.data, self.off + 1)
        return key

    def members(self) -> Iterator[str]:
        """
        Iterate the keys of the object at the cursor.

        After each key is yielded the cursor sits on its value, which the
        caller must consume before resuming the iteration.
        """
        self.expect("{", "'{'")
        if self.peek() == "}":
            self.off += 1
            return
        while True:
            key = self.key()
            self.expect(":", "':' delimiter")
            yield key
            char = self.peek()
            self.off += 1
            if char == "}":
                return
            if char != ",":
                raise json.JSONDecodeError("Expecting ',' delimiter", self.data, self.off - 1)

    def _at_null(self) -> bool:
        return self.data.startswith("null", self.off)

    def _mismatch(self, descriptor: TypeDescriptor) -> UnmarshalTypeError:
        start = self.off
        found = json_kind(self.literal())
        return UnmarshalTypeError(found, descriptor.type_name(), self.offset(start))

    # =========================================================================
    # Values
    # =========================================================================

    def value(self, descriptor: TypeDescriptor) -> Any:
        """Decode the next value at the cursor as ``descriptor``."""
        self.skip_space()
        if isinstance(descriptor, Interface):
            return self.interface(descriptor)
        if self._at_null():
            self.off += 4
            return None
        if isinstance(descriptor, Pointer):
            return self.value(descriptor.to)
        if isinstance(descriptor, Struct):
            return self.struct(descriptor)
        if isinstance(descriptor, Map):
            return self.object_map(descriptor)
        if isinstance(descriptor, (Array, Slice)):
            return self.array(descriptor)
        if isinstance(descriptor, Scalar):
            return self.scalar(descriptor)
        raise UnsupportedTypeError(descriptor)

    def interface(self, slot: Interface) -> Any:
        """Decode a value stored in an open slot."""
        start = self.off
        char = self.peek()
        if self.discriminator.enabled and char == "{":
            return discriminator.decode_interface(self, slot)
        if self.discriminator.enabled and char == "[":
            # Elements of an untagged array are open slots too.
            value = self.array(Slice(element=ANY))
        else:
            value = self.literal()
        if not slot.accepts(value):
            raise UnmarshalTypeError(json_kind(value), slot.type_name(), self.offset(start))
        return value

    def struct(self, descriptor: Struct) -> Any:
        if self.peek() != "{":
            raise self._mismatch(descriptor)
        start = self.off
        cls = descriptor.struct_type
        fields = dict(struct_fields(cls, self.cache))
        type_field = self.discriminator.type_field if self.discriminator.enabled else None

        kwargs = {}
        for key in self.members():
            if key == type_field:
                self.skip_value()
                continue
            field = fields.get(key)
            if field is None:
                if self.disallow_unknown_fields:
                    raise UnknownFieldError(key, descriptor.type_name())
                self.skip_value()
                continue
            kwargs[key] = self.value(field)

        try:
            if issubclass(cls, BaseModel):
                return cls.model_validate(kwargs)
            return cls(**kwargs)
        except (TypeError, ValidationError) as e:
            raise UnmarshalTypeError("object", descriptor.type_name(), self.offset(start), str(e)) from e

    def object_map(self, descriptor: Map) -> Any:
        if self.peek() != "{":
            raise self._mismatch(descriptor)
        key_type = descriptor.key.deref()
        type_field = self.discriminator.type_field if self.discriminator.enabled else None

        result = {}
        for key in self.members():
            if key == type_field:
                self.skip_value()
                continue
            result[self._map_key(key, key_type)] = self.value(descriptor.element)

        if descriptor.declared is not None:
            return descriptor.declared(result)
        return result

    def _map_key(self, key: str, key_type: TypeDescriptor) -> Any:
        if not isinstance(key_type, Scalar):
            raise UnsupportedTypeError(key_type)
        if key_type.kind == Kind.STRING:
            return key if key_type.py_type is str else key_type.py_type(key)
        try:
            number = int(key)
        except ValueError:
            raise UnmarshalTypeError("string", key_type.type_name(), self.offset(), f"map key {key!r}") from None
        self._check_integer(number, key_type)
        return number if key_type.py_type is int else key_type.py_type(number)

    def array(self, descriptor: Array | Slice) -> Any:
        if self.peek() != "[":
            raise self._mismatch(descriptor)
        start = self.off
        self.off += 1

        items = []
        if self.peek() == "]":
            self.off += 1
        else:
            while True:
                items.append(self.value(descriptor.element))
                char = self.peek()
                self.off += 1
                if char == "]":
                    break
                if char != ",":
                    raise json.JSONDecodeError("Expecting ',' delimiter", self.data, self.off - 1)

        if isinstance(descriptor, Array):
            if len(items) != descriptor.length:
                raise UnmarshalTypeError(
                    "array",
                    descriptor.type_name(),
                    self.offset(start),
                    f"expected {descriptor.length} elements, got {len(items)}",
                )
            return descriptor.py_type(items)
        if descriptor.declared is not None:
            return descriptor.declared(items)
        return items

    def scalar(self, descriptor: Scalar) -> Any:
        kind = descriptor.kind
        if kind in COMPLEX_KINDS:
            raise UnsupportedScalarKindError(kind, "complex numbers have no JSON representation")

        start = self.off
        value = self.literal()

        if kind == Kind.STRING:
            ok = isinstance(value, str)
        elif kind == Kind.BOOL:
            ok = isinstance(value, bool)
        elif kind in INTEGER_RANGES:
            ok = isinstance(value, int) and not isinstance(value, bool)
            if ok:
                self._check_integer(value, descriptor, start)
        elif kind in FLOAT_KINDS:
            ok = isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)
            if ok:
                value = float(value)
                if kind == Kind.FLOAT32 and abs(value) > FLOAT32_MAX:
                    raise UnmarshalTypeError(
                        f"number {value}", descriptor.type_name(), self.offset(start), "overflow"
                    )
        else:
            ok = False

        if not ok:
            raise UnmarshalTypeError(json_kind(value), descriptor.type_name(), self.offset(start))
        if descriptor.py_type in _BUILTIN_PY_TYPES:
            return value
        return descriptor.py_type(value)

    def _check_integer(self, value: int, descriptor: Scalar, start: int | None = None) -> None:
        low, high = INTEGER_RANGES.get(descriptor.kind, INTEGER_RANGES[Kind.INT])
        if not low <= value <= high:
            raise UnmarshalTypeError(
                f"number {value}", descriptor.type_name(), self.offset(start), "overflow"
            )


class Decoder:
    """
    Decodes JSON documents into typed Python values.

    Example:
        >>> dec = Decoder()
        >>> dec.set_discriminator("_t", "_v", {"CMYK": CMYK})
        >>> group = dec.decode(data, ColorGroup)
    """

    def __init__(
        self,
        *,
        disallow_unknown_fields: bool = False,
        use_number: bool = False,
        cache: PointerTypeCache | None = None,
    ):
        """
        Args:
            disallow_unknown_fields: Fail when an object member has no
                matching struct field instead of skipping it.
            use_number: Decode non-integer numbers in open slots as
                decimal.Decimal, preserving their literal precision.
            cache: Pointer cache for type resolution. Defaults to the
                process-wide cache.
        """
        self.disallow_unknown_fields = disallow_unknown_fields
        self.use_number = use_number
        self.cache = cache or default_pointer_cache
        self.discriminator = DISABLED

    def set_discriminator(
        self,
        type_field: str,
        value_field: str,
        resolver: Resolver | None = None,
    ) -> None:
        """Enable type tags; empty field names disable them."""
        self.discriminator = DiscriminatorConfig(type_field, value_field, resolver)

    def decode(self, data: str | bytes, type_=Any) -> Any:
        """
        Decode one JSON document.

        Args:
            data: The document, as text or UTF-8 bytes.
            type_: Annotation or TypeDescriptor to decode into. Defaults to
                an open slot.

        Raises:
            json.JSONDecodeError: On malformed JSON.
            TagsonError: When the document does not fit ``type_`` or a
                type tag cannot be honored.
        """
        if isinstance(data, (bytes, bytearray)):
            data = data.decode("utf-8")
        descriptor = describe_type(type_, self.cache)
        state = DecodeState(
            data,
            disallow_unknown_fields=self.disallow_unknown_fields,
            use_number=self.use_number,
            discriminator=self.discriminator,
            cache=self.cache,
        )
        value = state.value(descriptor)
        state.skip_space()
        if state.off != len(data):
            raise json.JSONDecodeError("Extra data", data, state.off)
        return value

    def load(self, fp, type_=Any) -> Any:
        return self.decode(fp.read(), type_)
