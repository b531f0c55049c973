"""
Type descriptors for the tagson codec.

A TypeDescriptor is the resolved, structural description of a type. It is
what the grammar resolver produces from a discriminator string, what the
introspection helpers produce from Python annotations and runtime values,
and what the encoder and decoder dispatch on.

The set of variants is closed:

- Scalar: bool, the sized integer and float kinds, string, complex
- Interface: an open slot (any value, optionally bounded by classes)
- Array: fixed length, homogeneous element type (runtime: tuple)
- Slice: variable length, homogeneous element type (runtime: list)
- Map: key and element types (runtime: dict)
- Pointer: nullable indirection to another descriptor
- Struct: a dataclass or pydantic model class

Descriptors are frozen pydantic models, so they are hashable and compare
by value. That is what lets the pointer cache and the scalar table hand
out one shared instance per distinct type.

Type names:
    Every descriptor renders the type name used on the wire:

    >>> Array(length=3, element=SCALAR_TYPES["int"]).type_name()
    '[3]int'
    >>> Map(key=SCALAR_TYPES["string"], element=ANY).type_name()
    'map[string]any'

    Declared (user-defined) types render as their class name, or as
    ``module.qualname`` when a path-qualified name is requested.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Kinds
# =============================================================================


class Kind(str, Enum):
    """The structural kind of a type."""

    BOOL = "bool"
    INT = "int"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT = "uint"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    UINTPTR = "uintptr"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    COMPLEX64 = "complex64"
    COMPLEX128 = "complex128"
    STRING = "string"
    INTERFACE = "interface"
    ARRAY = "array"
    SLICE = "slice"
    MAP = "map"
    POINTER = "ptr"
    STRUCT = "struct"
    CHAN = "chan"
    FUNC = "func"
    INVALID = "invalid"

    def __str__(self) -> str:
        return self.value


# Value ranges for the sized integer kinds, enforced on decode.
INTEGER_RANGES: dict[Kind, tuple[int, int]] = {
    Kind.INT: (-(2**63), 2**63 - 1),
    Kind.INT8: (-(2**7), 2**7 - 1),
    Kind.INT16: (-(2**15), 2**15 - 1),
    Kind.INT32: (-(2**31), 2**31 - 1),
    Kind.INT64: (-(2**63), 2**63 - 1),
    Kind.UINT: (0, 2**64 - 1),
    Kind.UINT8: (0, 2**8 - 1),
    Kind.UINT16: (0, 2**16 - 1),
    Kind.UINT32: (0, 2**32 - 1),
    Kind.UINT64: (0, 2**64 - 1),
    Kind.UINTPTR: (0, 2**64 - 1),
}

FLOAT_KINDS = frozenset({Kind.FLOAT32, Kind.FLOAT64})
COMPLEX_KINDS = frozenset({Kind.COMPLEX64, Kind.COMPLEX128})

# Kinds that never have a JSON representation.
UNSUPPORTED_KINDS = frozenset({Kind.CHAN, Kind.FUNC, Kind.INVALID})

FLOAT32_MAX = 3.4028234663852886e38


def declared_name(cls: type, with_path: bool = False) -> str:
    """Render a user-declared class as a type name."""
    if with_path and cls.__module__ != "builtins":
        return f"{cls.__module__}.{cls.__qualname__}"
    return cls.__name__


# =============================================================================
# Base Class
# =============================================================================


class TypeDescriptor(BaseModel):
    """
    Abstract base class for all type descriptors.

    Each subclass fixes its ``kind`` (Scalar carries one of the scalar
    kinds) and implements type_name().
    """

    model_config = ConfigDict(frozen=True)

    kind: Kind

    def type_name(self, with_path: bool = False) -> str:
        """Render the wire type name of this descriptor."""
        raise NotImplementedError

    def deref(self) -> TypeDescriptor:
        """Return the descriptor with every pointer indirection removed."""
        return self

    @property
    def is_object(self) -> bool:
        """True for kinds that are written as JSON objects with their own members."""
        return self.kind in (Kind.STRUCT, Kind.MAP)

    def __str__(self) -> str:
        return self.type_name()


# =============================================================================
# Variants
# =============================================================================


class Scalar(TypeDescriptor):
    """
    A primitive type, possibly declared under its own name.

    ``py_type`` is the Python class values are built with: int for every
    integer kind, float, bool, str, complex, or a user subclass of one of
    those (a named scalar such as ``class Celsius(float)``).
    """

    name: str
    py_type: type

    def type_name(self, with_path: bool = False) -> str:
        if self.py_type.__module__ == "builtins":
            return self.name
        return declared_name(self.py_type, with_path)


class Interface(TypeDescriptor):
    """
    An open slot whose concrete type is only known at runtime.

    An empty ``bounds`` accepts any value. Otherwise a value fits the slot
    only if it is an instance of one of the bound classes (a Union member,
    an abstract base class or a Protocol).
    """

    kind: Literal[Kind.INTERFACE] = Kind.INTERFACE
    name: str = "any"
    bounds: tuple[type, ...] = ()

    def type_name(self, with_path: bool = False) -> str:
        return self.name

    def accepts(self, value) -> bool:
        if not self.bounds:
            return True
        return isinstance(value, self.bounds)


class Array(TypeDescriptor):
    """A fixed-length homogeneous sequence, materialized as a tuple."""

    kind: Literal[Kind.ARRAY] = Kind.ARRAY
    length: int = Field(ge=0)
    element: TypeDescriptor
    declared: Optional[type] = None

    def type_name(self, with_path: bool = False) -> str:
        if self.declared is not None:
            return declared_name(self.declared, with_path)
        return f"[{self.length}]{self.element.type_name(with_path)}"

    @property
    def py_type(self) -> type:
        return self.declared or tuple


class Slice(TypeDescriptor):
    """A variable-length homogeneous sequence, materialized as a list."""

    kind: Literal[Kind.SLICE] = Kind.SLICE
    element: TypeDescriptor
    declared: Optional[type] = None

    def type_name(self, with_path: bool = False) -> str:
        if self.declared is not None:
            return declared_name(self.declared, with_path)
        return f"[]{self.element.type_name(with_path)}"

    @property
    def py_type(self) -> type:
        return self.declared or list


class Map(TypeDescriptor):
    """A JSON object with homogeneous values, materialized as a dict."""

    kind: Literal[Kind.MAP] = Kind.MAP
    key: TypeDescriptor
    element: TypeDescriptor
    declared: Optional[type] = None

    def type_name(self, with_path: bool = False) -> str:
        if self.declared is not None:
            return declared_name(self.declared, with_path)
        return f"map[{self.key.type_name(with_path)}]{self.element.type_name(with_path)}"

    @property
    def py_type(self) -> type:
        return self.declared or dict


class Pointer(TypeDescriptor):
    """
    A nullable indirection.

    Pointers are transparent for values: a Pointer decodes to whatever
    its target decodes to, or None for JSON null. Build them through a
    PointerTypeCache so each target has exactly one Pointer instance.
    """

    kind: Literal[Kind.POINTER] = Kind.POINTER
    to: TypeDescriptor

    def type_name(self, with_path: bool = False) -> str:
        return f"*{self.to.type_name(with_path)}"

    def deref(self) -> TypeDescriptor:
        return self.to.deref()


class Struct(TypeDescriptor):
    """A dataclass or pydantic model class; members are its fields."""

    kind: Literal[Kind.STRUCT] = Kind.STRUCT
    struct_type: type

    def type_name(self, with_path: bool = False) -> str:
        return declared_name(self.struct_type, with_path)


# =============================================================================
# Scalar Name Table
# =============================================================================


def _scalar(kind: Kind, py_type: type) -> Scalar:
    return Scalar(kind=kind, name=kind.value, py_type=py_type)


# The dynamic type, under every spelling the table accepts.
ANY = Interface()

# Registry mapping built-in type names to their descriptors. The grammar
# resolver consults this before any user-supplied resolver.
SCALAR_TYPES: dict[str, TypeDescriptor] = {
    "uint": _scalar(Kind.UINT, int),
    "uint8": _scalar(Kind.UINT8, int),
    "uint16": _scalar(Kind.UINT16, int),
    "uint32": _scalar(Kind.UINT32, int),
    "uint64": _scalar(Kind.UINT64, int),
    "uintptr": _scalar(Kind.UINTPTR, int),
    "int": _scalar(Kind.INT, int),
    "int8": _scalar(Kind.INT8, int),
    "int16": _scalar(Kind.INT16, int),
    "int32": _scalar(Kind.INT32, int),
    "int64": _scalar(Kind.INT64, int),
    "float32": _scalar(Kind.FLOAT32, float),
    "float64": _scalar(Kind.FLOAT64, float),
    "bool": _scalar(Kind.BOOL, bool),
    "string": _scalar(Kind.STRING, str),
    "any": ANY,
    "interface{}": ANY,
    # Registered so that these names fail as unsupported when materialized
    # instead of failing as unknown names.
    "complex64": _scalar(Kind.COMPLEX64, complex),
    "complex128": _scalar(Kind.COMPLEX128, complex),
}

INT = SCALAR_TYPES["int"]
FLOAT64 = SCALAR_TYPES["float64"]
BOOL = SCALAR_TYPES["bool"]
STRING = SCALAR_TYPES["string"]
COMPLEX128 = SCALAR_TYPES["complex128"]
