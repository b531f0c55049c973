"""
tagson - typed JSON with type tags for dynamically typed values.

tagson encodes and decodes Python values along their static types
(dataclasses, pydantic models, ``list[T]``, ``dict[K, V]``, fixed
``tuple[T, T, T]`` arrays, ``Optional[T]``, scalars). Values stored in
open slots (``Any``, ``object``, a ``Union``, an abstract class) carry a
type tag, so they come back as their original concrete type:

    >>> from dataclasses import dataclass
    >>> from typing import Any
    >>> import tagson
    >>>
    >>> @dataclass
    ... class CMYK:
    ...     Cyan: int
    ...     Magenta: int
    ...     Yellow: int
    ...     Key: int
    >>>
    >>> config = tagson.DiscriminatorConfig("_t", "_v", resolver={"CMYK": CMYK})
    >>> data = tagson.dumps([(220, 20, 60), "Red", CMYK(0, 92, 58, 12)], list[Any], discriminator=config)
    >>> data
    '[{"_t":"[3]int","_v":[220,20,60]},{"_t":"string","_v":"Red"},{"_t":"CMYK","Cyan":0,"Magenta":92,"Yellow":58,"Key":12}]'
    >>> tagson.loads(data, list[Any], discriminator=config)
    [(220, 20, 60), 'Red', CMYK(Cyan=0, Magenta=92, Yellow=58, Key=12)]

Wire format:
    Structs and maps get the type field as their first member. Every
    other value is wrapped in a two-member object holding the type field
    and the value field. Type names follow a small grammar: ``int``,
    ``[]string``, ``[3]int``, ``map[string]int``, ``*CMYK``, or the
    declared class name.

Encode modes:
    >>> from tagson import EncodeMode
    >>> tagson.dumps(obj, discriminator=config, mode=EncodeMode.ROOT_VALUE | EncodeMode.ALL_OBJECTS)

    IF_REQUIRED (default) tags values in open slots only, ROOT_VALUE also
    tags the outermost value, ALL_OBJECTS tags every struct and map, and
    WITH_PATH writes declared names as ``module.qualname`` (resolvable
    with tagson.import_resolver).
"""

from __future__ import annotations

from typing import Any

from tagson.cache import PointerTypeCache, default_pointer_cache
from tagson.config import DISABLED, SHORT_TAGS, DiscriminatorConfig, EncodeMode, Resolver
from tagson.decode import Decoder
from tagson.encode import Encoder
from tagson.errors import (
    InvalidDiscriminatorTypeError,
    InvalidDiscriminatorTypeFieldValueError,
    MalformedDiscriminatorObjectError,
    MissingDiscriminatorError,
    TagsonError,
    UnknownFieldError,
    UnmarshalTypeError,
    UnsupportedDiscriminatorKindError,
    UnsupportedScalarKindError,
    UnsupportedTypeError,
    UnsupportedValueError,
)
from tagson.grammar import import_resolver, parse_type_name, registry_resolver
from tagson.introspect import describe_type, describe_value
from tagson.stypes import SCALAR_TYPES, Kind, TypeDescriptor


def dumps(
    obj,
    type_=None,
    *,
    discriminator: DiscriminatorConfig | None = None,
    mode: EncodeMode = EncodeMode.IF_REQUIRED,
) -> str:
    """
    Encode ``obj`` as a JSON string.

    Args:
        obj: The value to encode.
        type_: Static type of ``obj``; inferred from the value when omitted.
        discriminator: Type/value field names. Tags are off when omitted.
        mode: When to write type tags.

    Example:
        >>> dumps(group, discriminator=SHORT_TAGS)
        '{"ID":1,"Name":"Reds","Colors":[{"_t":"string","_v":"Red"}]}'
    """
    encoder = Encoder()
    if discriminator is not None:
        encoder.set_discriminator(discriminator.type_field, discriminator.value_field, mode)
    return encoder.encode(obj, type_)


def dump(obj, fp, type_=None, **kwargs) -> None:
    """Encode ``obj`` and write it to the text stream ``fp``."""
    fp.write(dumps(obj, type_, **kwargs))


def loads(
    s: str | bytes,
    type_=Any,
    *,
    discriminator: DiscriminatorConfig | None = None,
    disallow_unknown_fields: bool = False,
    use_number: bool = False,
):
    """
    Decode a JSON document into ``type_``.

    Args:
        s: The document.
        type_: Annotation to decode into; an open slot by default.
        discriminator: Type/value field names and the resolver for
            declared type names. Tags are not interpreted when omitted.
        disallow_unknown_fields: Fail on object members with no matching
            struct field.
        use_number: Decode non-integer numbers in open slots as Decimal.

    Example:
        >>> loads(data, ColorGroup, discriminator=DiscriminatorConfig("_t", "_v", {"CMYK": CMYK}))
    """
    decoder = Decoder(disallow_unknown_fields=disallow_unknown_fields, use_number=use_number)
    if discriminator is not None:
        decoder.set_discriminator(
            discriminator.type_field, discriminator.value_field, discriminator.resolver
        )
    return decoder.decode(s, type_)


def load(fp, type_=Any, **kwargs):
    """Read a JSON document from ``fp`` and decode it into ``type_``."""
    return loads(fp.read(), type_, **kwargs)


__all__ = [
    # Core API
    "dumps",
    "dump",
    "loads",
    "load",
    "Encoder",
    "Decoder",
    # Configuration
    "DiscriminatorConfig",
    "EncodeMode",
    "Resolver",
    "DISABLED",
    "SHORT_TAGS",
    # Types
    "TypeDescriptor",
    "Kind",
    "SCALAR_TYPES",
    "describe_type",
    "describe_value",
    "parse_type_name",
    "registry_resolver",
    "import_resolver",
    "PointerTypeCache",
    "default_pointer_cache",
    # Errors
    "TagsonError",
    "MalformedDiscriminatorObjectError",
    "MissingDiscriminatorError",
    "InvalidDiscriminatorTypeFieldValueError",
    "InvalidDiscriminatorTypeError",
    "UnsupportedDiscriminatorKindError",
    "UnsupportedScalarKindError",
    "UnmarshalTypeError",
    "UnknownFieldError",
    "UnsupportedTypeError",
    "UnsupportedValueError",
]
