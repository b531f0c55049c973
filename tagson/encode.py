"""
Typed JSON encoding.

EncodeState appends the JSON form of a value to a buffer, walking it
along its TypeDescriptor. Open slots are handed to the discriminator,
and every struct and map asks the discriminator whether its type member
comes first. Strings and floats are rendered by the standard library
json module; output is compact (no whitespace).

The hook used by the discriminator is EncodeState.reflect_value(value,
descriptor): append ``value`` encoded as ``descriptor``.
"""

from __future__ import annotations

import json
from typing import Any

from tagson import discriminator
from tagson.cache import PointerTypeCache, default_pointer_cache
from tagson.config import DISABLED, DiscriminatorConfig, EncodeMode
from tagson.errors import UnsupportedScalarKindError, UnsupportedTypeError, UnsupportedValueError
from tagson.introspect import describe_type, describe_value, struct_fields
from tagson.stypes import (
    COMPLEX_KINDS,
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


class EncodeState:
    """
    Output buffer and options for one encode call.

    Attributes:
        discriminator: Type/value field names.
        mode: When to write type tags.
        need_tag: Set when the next struct or map is the value of an open
            slot; cleared by the struct or map that writes the tag.
    """

    def __init__(
        self,
        discriminator: DiscriminatorConfig = DISABLED,
        mode: EncodeMode = EncodeMode.IF_REQUIRED,
        cache: PointerTypeCache | None = None,
    ):
        self.discriminator = discriminator
        self.mode = EncodeMode(mode)
        self.cache = cache or default_pointer_cache
        self.need_tag = False
        self._parts: list[str] = []

    def write(self, text: str) -> None:
        self._parts.append(text)

    def write_string(self, text: str) -> None:
        self._parts.append(json.dumps(text, ensure_ascii=False))

    def getvalue(self) -> str:
        return "".join(self._parts)

    def reflect_value(self, value: Any, descriptor: TypeDescriptor) -> None:
        """Append ``value`` encoded as ``descriptor``."""
        if isinstance(descriptor, Interface):
            self.interface(value)
            return
        if value is None:
            self.write("null")
            return
        if isinstance(descriptor, Pointer):
            self.reflect_value(value, descriptor.to)
        elif isinstance(descriptor, Struct):
            self.struct(value, descriptor)
        elif isinstance(descriptor, Map):
            self.object_map(value, descriptor)
        elif isinstance(descriptor, (Array, Slice)):
            self.array(value, descriptor)
        elif isinstance(descriptor, Scalar):
            self.scalar(value, descriptor)
        else:
            raise UnsupportedTypeError(descriptor)

    def interface(self, value: Any) -> None:
        if self.discriminator.enabled:
            discriminator.encode_interface(self, value)
        elif value is None:
            self.write("null")
        else:
            self.reflect_value(value, describe_value(value, self.cache))

    def struct(self, value: Any, descriptor: Struct) -> None:
        if not isinstance(value, descriptor.struct_type):
            raise UnsupportedValueError(value, f"expected {descriptor.type_name()}")
        self.write("{")
        comma = discriminator.object_tag(self, descriptor)
        for name, field in struct_fields(descriptor.struct_type, self.cache):
            if comma:
                self.write(",")
            self.write_string(name)
            self.write(":")
            self.reflect_value(getattr(value, name), field)
            comma = True
        self.write("}")

    def object_map(self, value: Any, descriptor: Map) -> None:
        if not isinstance(value, dict):
            raise UnsupportedValueError(value, f"expected {descriptor.type_name()}")
        key_type = descriptor.key.deref()
        self.write("{")
        comma = discriminator.object_tag(self, descriptor)
        for key, item in value.items():
            if comma:
                self.write(",")
            self.write_string(self._map_key(key, key_type))
            self.write(":")
            self.reflect_value(item, descriptor.element)
            comma = True
        self.write("}")

    def _map_key(self, key: Any, key_type: TypeDescriptor) -> str:
        if isinstance(key, str) and key_type.kind == Kind.STRING:
            return str.__str__(key)
        if isinstance(key, int) and not isinstance(key, bool) and key_type.kind in INTEGER_RANGES:
            return str(int(key))
        raise UnsupportedValueError(key, f"invalid key for {key_type.type_name()}")

    def array(self, value: Any, descriptor: Array | Slice) -> None:
        if not isinstance(value, (list, tuple)):
            raise UnsupportedValueError(value, f"expected {descriptor.type_name()}")
        if isinstance(descriptor, Array) and len(value) != descriptor.length:
            raise UnsupportedValueError(value, f"expected {descriptor.length} elements")
        self.write("[")
        for i, item in enumerate(value):
            if i:
                self.write(",")
            self.reflect_value(item, descriptor.element)
        self.write("]")

    def scalar(self, value: Any, descriptor: Scalar) -> None:
        kind = descriptor.kind
        if kind in COMPLEX_KINDS:
            raise UnsupportedScalarKindError(kind, "complex numbers have no JSON representation")
        if kind == Kind.STRING and isinstance(value, str):
            self.write_string(str.__str__(value))
        elif kind == Kind.BOOL and isinstance(value, bool):
            self.write("true" if value else "false")
        elif kind in INTEGER_RANGES and isinstance(value, int) and not isinstance(value, bool):
            low, high = INTEGER_RANGES[kind]
            if not low <= value <= high:
                raise UnsupportedValueError(value, f"overflows {descriptor.type_name()}")
            self.write(str(int(value)))
        elif kind in FLOAT_KINDS and isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                self.write(json.dumps(float(value), allow_nan=False))
            except ValueError as e:
                raise UnsupportedValueError(value, str(e)) from e
        else:
            raise UnsupportedValueError(value, f"expected {descriptor.type_name()}")


class Encoder:
    """
    Encodes typed Python values as JSON.

    Example:
        >>> enc = Encoder()
        >>> enc.set_discriminator("_t", "_v")
        >>> enc.encode(["Red", 8388608], list[Any])
        '[{"_t":"string","_v":"Red"},{"_t":"int","_v":8388608}]'
    """

    def __init__(self, *, cache: PointerTypeCache | None = None):
        self.cache = cache or default_pointer_cache
        self.discriminator = DISABLED
        self.mode = EncodeMode.IF_REQUIRED

    def set_discriminator(
        self,
        type_field: str,
        value_field: str,
        mode: EncodeMode = EncodeMode.IF_REQUIRED,
    ) -> None:
        """Enable type tags; empty field names disable them."""
        self.discriminator = DiscriminatorConfig(type_field, value_field)
        self.mode = EncodeMode(mode)

    def encode(self, obj: Any, type_=None) -> str:
        """
        Encode ``obj`` as a JSON document.

        Args:
            obj: The value to encode.
            type_: Static type of ``obj``. When omitted, the type is taken
                from the value itself (so a top-level ``dict`` with mixed
                values is a ``map[string]any`` and its values are tagged).

        Raises:
            TagsonError: When the value or one of its members has no JSON
                form.
        """
        if type_ is None:
            descriptor = describe_value(obj, self.cache) if obj is not None else describe_type(Any)
        else:
            descriptor = describe_type(type_, self.cache)
        state = EncodeState(self.discriminator, self.mode, self.cache)
        discriminator.encode_root(state, obj, descriptor)
        return state.getvalue()

    def dump(self, obj: Any, fp, type_=None) -> None:
        fp.write(self.encode(obj, type_))
