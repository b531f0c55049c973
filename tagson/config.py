"""
Discriminator configuration.

A DiscriminatorConfig names the two object members that carry a type tag
and, for decoding, the resolver consulted for names the built-in scalar
table does not know. EncodeMode controls when the encoder writes tags.

    >>> from tagson import Encoder, EncodeMode
    >>> enc = Encoder()
    >>> enc.set_discriminator("_t", "_v", EncodeMode.ROOT_VALUE | EncodeMode.WITH_PATH)

The feature is only active when both field names are non-empty; an empty
name disables discriminator processing for that encoder or decoder.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

# A resolver maps a type name to a Python type (or TypeDescriptor), or
# returns None when it does not know the name. A mapping of names to types
# can be used anywhere a resolver is accepted.
ResolverFn = Callable[[str], Any]
Resolver = Union[ResolverFn, Mapping[str, Any]]


class EncodeMode(enum.IntFlag):
    """
    When the encoder writes a type tag. Flags combine with ``|``.

    IF_REQUIRED: only for values stored in open slots (the default).
    ROOT_VALUE: also for the outermost value of the document.
    ALL_OBJECTS: for every struct and map value, reached through an open
        slot or not.
    WITH_PATH: qualify declared type names as ``module.qualname``.
    """

    IF_REQUIRED = 0
    ROOT_VALUE = 1
    ALL_OBJECTS = 2
    WITH_PATH = 4

    @property
    def root(self) -> bool:
        return bool(self & EncodeMode.ROOT_VALUE)

    @property
    def all_objects(self) -> bool:
        return bool(self & EncodeMode.ALL_OBJECTS)

    @property
    def with_path(self) -> bool:
        return bool(self & EncodeMode.WITH_PATH)


@dataclass(frozen=True)
class DiscriminatorConfig:
    """
    Field names of the type tag and the optional decode-side resolver.

    Attributes:
        type_field: Object member holding the type name.
        value_field: Object member holding the value of non-object types
            (scalars, arrays, slices).
        resolver: Fallback for type names missing from the scalar table.

    Example:
        >>> config = DiscriminatorConfig("_t", "_v", resolver={"CMYK": CMYK})
        >>> loads(data, ColorGroup, discriminator=config)
    """

    type_field: str = ""
    value_field: str = ""
    resolver: Optional[Resolver] = None

    @property
    def enabled(self) -> bool:
        return bool(self.type_field) and bool(self.value_field)

    def lookup(self, name: str) -> Any:
        """Ask the resolver for ``name``; None when unknown or no resolver is set."""
        if self.resolver is None:
            return None
        if isinstance(self.resolver, Mapping):
            return self.resolver.get(name)
        return self.resolver(name)


# Discriminator processing off.
DISABLED = DiscriminatorConfig()

# The short member names used throughout the documentation.
SHORT_TAGS = DiscriminatorConfig(type_field="_t", value_field="_v")
