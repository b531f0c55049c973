"""
Mapping Python types and values to type descriptors.

Two entry points feed the codec:

- describe_type(): static side. Turns an annotation (``int``,
  ``list[Any]``, ``dict[str, CMYK]``, ``Optional[Node]``, a dataclass,
  a pydantic model) into a TypeDescriptor. Used for decode targets,
  struct fields and resolver results.
- describe_value(): runtime side. Types a value found in an open slot
  so the encoder can name it: ``(220, 20, 60)`` is ``[3]int``,
  ``["a", "b"]`` is ``[]string``, ``{"a": 1}`` is ``map[string]int``.
  Containers with mixed or no members get ``any`` as their element type.

Annotation mapping:
    Any, object            -> open slot
    Union[A, B]            -> open slot bounded by A and B
    abstract class/Protocol -> open slot bounded by the class
    Optional[T]            -> pointer to T
    list[T], dict[K, V]    -> slice, map
    tuple[T, T, T]         -> array of length 3
    int/float/str/bool     -> the matching scalar; subclasses are named scalars
    Annotated[int, INT8]   -> the descriptor found in the metadata
"""

from __future__ import annotations

import asyncio
import collections.abc
import dataclasses
import functools
import inspect
import queue
import types
import typing
from typing import Any, Iterable, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from tagson.cache import PointerTypeCache, default_pointer_cache
from tagson.errors import UnsupportedScalarKindError, UnsupportedTypeError, UnsupportedValueError
from tagson.stypes import (
    ANY,
    BOOL,
    COMPLEX128,
    FLOAT64,
    INT,
    STRING,
    Array,
    Interface,
    Kind,
    Map,
    Scalar,
    Slice,
    Struct,
    TypeDescriptor,
)

_NONE_TYPE = type(None)

_BUILTIN_SCALARS: dict[type, TypeDescriptor] = {
    bool: BOOL,
    int: INT,
    float: FLOAT64,
    str: STRING,
    complex: COMPLEX128,
}

_CHAN_TYPES = (queue.Queue, queue.SimpleQueue, asyncio.Queue, collections.abc.Iterator)
_FUNC_TYPES = (
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    functools.partial,
)


# =============================================================================
# Struct Helpers
# =============================================================================


def is_struct_type(cls) -> bool:
    """True for dataclasses and pydantic models."""
    if not isinstance(cls, type):
        return False
    return dataclasses.is_dataclass(cls) or issubclass(cls, BaseModel)


def is_struct_value(value) -> bool:
    return is_struct_type(type(value))


def struct_fields(
    cls: type, cache: PointerTypeCache | None = None
) -> tuple[tuple[str, TypeDescriptor], ...]:
    """
    Enumerate a struct type's fields in declaration order.

    Returns (field name, descriptor) pairs, memoized in ``cache``. Dataclass
    fields declared with ``init=False`` are not part of the JSON form.
    """
    cache = cache or default_pointer_cache
    fields = cache.load_fields(cls)
    if fields is not None:
        return fields

    if issubclass(cls, BaseModel):
        fields = tuple(
            (name, _describe_field(field.annotation, field.metadata, cache))
            for name, field in cls.model_fields.items()
        )
    else:
        hints = get_type_hints(cls, include_extras=True)
        fields = tuple(
            (f.name, describe_type(hints.get(f.name, Any), cache))
            for f in dataclasses.fields(cls)
            if f.init
        )
    return cache.store_fields(cls, fields)


def _describe_field(annotation, metadata: list, cache: PointerTypeCache) -> TypeDescriptor:
    # pydantic moves Annotated metadata off the annotation.
    for meta in metadata:
        if isinstance(meta, TypeDescriptor):
            return meta
    return describe_type(annotation, cache)


def _container_args(cls: type, base: type) -> tuple:
    # class Colors(list[int]) carries its parameters on __orig_bases__.
    for orig in getattr(cls, "__orig_bases__", ()):
        if get_origin(orig) is base:
            return get_args(orig)
    return ()


def _is_open_class(cls: type) -> bool:
    return inspect.isabstract(cls) or bool(getattr(cls, "_is_protocol", False))


# =============================================================================
# Static Types
# =============================================================================


def describe_type(annotation, cache: PointerTypeCache | None = None) -> TypeDescriptor:
    """
    Describe a Python annotation.

    Args:
        annotation: A class, a typing construct, or a TypeDescriptor
            (returned unchanged).
        cache: Pointer cache used for ``Optional[...]``. Defaults to the
            process-wide cache.

    Raises:
        UnsupportedScalarKindError: For callables and queue/iterator types.
        UnsupportedTypeError: For anything else without a JSON form.
    """
    if isinstance(annotation, TypeDescriptor):
        return annotation
    if annotation is Any or annotation is object:
        return ANY

    cache = cache or default_pointer_cache
    origin = get_origin(annotation)

    if origin is typing.Annotated:
        base, *metadata = get_args(annotation)
        return _describe_field(base, metadata, cache)
    if origin is Union or origin is types.UnionType:
        return _describe_union(annotation, cache)
    if origin is list:
        (element,) = get_args(annotation) or (Any,)
        return Slice(element=describe_type(element, cache))
    if origin is dict:
        key, element = get_args(annotation) or (str, Any)
        return Map(key=_map_key(describe_type(key, cache), annotation), element=describe_type(element, cache))
    if origin is tuple:
        return _describe_tuple(annotation, cache)
    if origin is collections.abc.Callable:
        raise UnsupportedScalarKindError(Kind.FUNC, repr(annotation))

    if not isinstance(annotation, type):
        raise UnsupportedTypeError(annotation)
    return _describe_class(annotation, cache)


def _describe_union(annotation, cache: PointerTypeCache) -> TypeDescriptor:
    args = get_args(annotation)
    members = [arg for arg in args if arg is not _NONE_TYPE]

    # Optional[T] is a nullable T.
    if len(members) == 1:
        return cache.pointer_to(describe_type(members[0], cache))

    bounds = []
    for arg in args:
        bound = get_origin(arg) or arg
        if not isinstance(bound, type):
            raise UnsupportedTypeError(annotation)
        bounds.append(bound)
    return Interface(bounds=tuple(bounds))


def _describe_tuple(annotation, cache: PointerTypeCache, declared: type | None = None) -> TypeDescriptor:
    args = get_args(annotation)
    if not args or (len(args) == 2 and args[1] is Ellipsis) or args == ((),):
        raise UnsupportedTypeError(annotation)
    if any(arg != args[0] for arg in args):
        # Arrays are homogeneous.
        raise UnsupportedTypeError(annotation)
    return Array(length=len(args), element=describe_type(args[0], cache), declared=declared)


def _map_key(key: TypeDescriptor, annotation) -> TypeDescriptor:
    if isinstance(key, Scalar) and (key.kind == Kind.STRING or (key.py_type is not bool and issubclass(key.py_type, int))):
        return key
    raise UnsupportedTypeError(annotation)


def _describe_class(cls: type, cache: PointerTypeCache) -> TypeDescriptor:
    if cls in _BUILTIN_SCALARS:
        return _BUILTIN_SCALARS[cls]

    # Named scalars: int/float/str/complex subclasses, including IntEnum and StrEnum.
    if issubclass(cls, int):
        return Scalar(kind=Kind.INT, name=cls.__name__, py_type=cls)
    if issubclass(cls, float):
        return Scalar(kind=Kind.FLOAT64, name=cls.__name__, py_type=cls)
    if issubclass(cls, str):
        return Scalar(kind=Kind.STRING, name=cls.__name__, py_type=cls)
    if issubclass(cls, complex):
        return Scalar(kind=Kind.COMPLEX128, name=cls.__name__, py_type=cls)

    if issubclass(cls, list):
        (element,) = _container_args(cls, list) or (Any,)
        return Slice(element=describe_type(element, cache), declared=None if cls is list else cls)
    if issubclass(cls, dict):
        key, element = _container_args(cls, dict) or (str, Any)
        return Map(
            key=_map_key(describe_type(key, cache), cls),
            element=describe_type(element, cache),
            declared=None if cls is dict else cls,
        )
    if issubclass(cls, tuple):
        args = _container_args(cls, tuple)
        if not args:
            raise UnsupportedTypeError(cls)
        return _describe_tuple(tuple[args], cache, declared=cls)

    if is_struct_type(cls):
        return Struct(struct_type=cls)
    if issubclass(cls, _CHAN_TYPES):
        raise UnsupportedScalarKindError(Kind.CHAN, cls.__qualname__)
    if issubclass(cls, _FUNC_TYPES):
        raise UnsupportedScalarKindError(Kind.FUNC, cls.__qualname__)
    if _is_open_class(cls):
        return Interface(name=cls.__name__, bounds=(cls,))

    raise UnsupportedTypeError(cls)


# =============================================================================
# Runtime Values
# =============================================================================


def value_kind(value) -> Kind:
    """Classify a runtime value without building its descriptor."""
    if isinstance(value, bool):
        return Kind.BOOL
    if isinstance(value, int):
        return Kind.INT
    if isinstance(value, float):
        return Kind.FLOAT64
    if isinstance(value, str):
        return Kind.STRING
    if isinstance(value, complex):
        return Kind.COMPLEX128
    if isinstance(value, tuple):
        return Kind.ARRAY
    if isinstance(value, list):
        return Kind.SLICE
    if isinstance(value, dict):
        return Kind.MAP
    if is_struct_value(value):
        return Kind.STRUCT
    if isinstance(value, _CHAN_TYPES):
        return Kind.CHAN
    if callable(value):
        return Kind.FUNC
    return Kind.INVALID


def _common(descriptors: Iterable[TypeDescriptor | None]) -> TypeDescriptor:
    # The shared descriptor of all members, or the open type when they differ.
    common = None
    for descriptor in descriptors:
        if descriptor is None:
            return ANY
        if common is None:
            common = descriptor
        elif descriptor != common:
            return ANY
    return common or ANY


def _describe_member(value, cache: PointerTypeCache) -> TypeDescriptor | None:
    if value is None:
        return None
    return describe_value(value, cache)


def describe_value(value, cache: PointerTypeCache | None = None) -> TypeDescriptor:
    """
    Describe the runtime type of a value held in an open slot.

    Raises:
        UnsupportedScalarKindError: For callables, queues, iterators and
            objects with no JSON form.
        UnsupportedValueError: For dicts whose keys are not all strings
            or all integers.
        UnsupportedTypeError: For tuple subclasses that do not declare
            their element types (named tuples included), whose names could
            not be decoded.
    """
    cls = type(value)
    if cls in _BUILTIN_SCALARS:
        return _BUILTIN_SCALARS[cls]

    cache = cache or default_pointer_cache

    if cls is tuple:
        element = _common(_describe_member(item, cache) for item in value)
        return Array(length=len(value), element=element)
    if cls is list:
        return Slice(element=_common(_describe_member(item, cache) for item in value))
    if cls is dict:
        if not value:
            return Map(key=STRING, element=ANY)
        key = _common(describe_value(k, cache) for k in value)
        if key == ANY or key.kind == Kind.BOOL:
            raise UnsupportedValueError(value, "map keys must all be strings or all be integers")
        return Map(
            key=_map_key(key, cls),
            element=_common(_describe_member(item, cache) for item in value.values()),
        )

    kind = value_kind(value)
    if kind in (Kind.CHAN, Kind.FUNC, Kind.INVALID):
        raise UnsupportedScalarKindError(kind, cls.__qualname__)

    if kind == Kind.SLICE and not _container_args(cls, list):
        # Declared without parameters: elements are open slots, as on decode.
        return Slice(element=ANY, declared=cls)
    return describe_type(cls, cache)
