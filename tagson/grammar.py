"""
Type-name grammar.

parse_type_name() turns a discriminator string into a TypeDescriptor.
Names are matched in this order:

    [N]Elem        array of N elements
    []Elem         slice
    map[Key]Elem   map
    Name           scalar table first, then the resolver

A leading ``*`` on the whole name wraps the result in a pointer; a
leading ``*`` on an element or key name wraps that sub-type. Element and
key names must be simple names: ``[]map[string]int`` is rejected rather
than parsed recursively.

Resolvers:
    registry_resolver() and import_resolver() build resolvers for the
    common cases: a fixed set of classes, and path-qualified names written
    by an encoder in WITH_PATH mode.
"""

from __future__ import annotations

import importlib
import logging
import re
from typing import Any, Iterable

from tagson.cache import PointerTypeCache, default_pointer_cache
from tagson.config import DiscriminatorConfig, Resolver
from tagson.errors import InvalidDiscriminatorTypeError, UnsupportedTypeError
from tagson.introspect import describe_type
from tagson.stypes import SCALAR_TYPES, Array, Kind, Map, Scalar, Slice, TypeDescriptor, declared_name

logger = logging.getLogger(__name__)

ARRAY_PATTERN = re.compile(r"^\*?\[(\d+)\](.+)$")
SLICE_PATTERN = re.compile(r"^\*?\[\](.+)$")
MAP_PATTERN = re.compile(r"^\*?map\[([^\]]+)\](.+)$")


def _indirect(type_name: str) -> tuple[str, bool]:
    # "*T" -> ("T", True); a lone "*" is left alone and fails lookup.
    if len(type_name) > 1 and type_name[0] == "*":
        return type_name[1:], True
    return type_name, False


def _lookup(
    type_name: str,
    config: DiscriminatorConfig,
    cache: PointerTypeCache,
) -> TypeDescriptor | None:
    """Resolve a simple name, honoring a leading ``*``."""
    name, pointer = _indirect(type_name)

    descriptor = SCALAR_TYPES.get(name)
    if descriptor is None:
        found = config.lookup(name)
        if found is None:
            return None
        try:
            descriptor = describe_type(found, cache)
        except UnsupportedTypeError as e:
            raise InvalidDiscriminatorTypeError(
                type_name, f"resolver returned an unsupported type {found!r} for"
            ) from e

    if pointer:
        descriptor = cache.pointer_to(descriptor)
    return descriptor


def _is_valid_key(key: TypeDescriptor) -> bool:
    key = key.deref()
    if not isinstance(key, Scalar):
        return False
    return key.kind == Kind.STRING or (key.py_type is not bool and issubclass(key.py_type, int))


def parse_type_name(
    type_name: str,
    resolver: Resolver | DiscriminatorConfig | None = None,
    cache: PointerTypeCache | None = None,
) -> TypeDescriptor:
    """
    Resolve a discriminator type name.

    Args:
        type_name: The name found in the type field, e.g. ``"[3]int"``,
            ``"map[string]*CMYK"`` or ``"*CMYK"``.
        resolver: Callable or mapping consulted for names missing from the
            scalar table, or a DiscriminatorConfig carrying one.
        cache: Pointer cache for ``*`` names. Defaults to the process-wide
            cache.

    Returns:
        The resolved TypeDescriptor.

    Raises:
        InvalidDiscriminatorTypeError: If the name, an element name or a
            key name does not resolve, or the array length is malformed.
        UnsupportedScalarKindError: If the resolver returns a callable or
            channel-like type.

    Example:
        >>> parse_type_name("[3]int")
        Array(kind=<Kind.ARRAY: 'array'>, length=3, element=..., declared=None)
        >>> parse_type_name("CMYK", {"CMYK": CMYK}).struct_type
        <class 'CMYK'>
    """
    if isinstance(resolver, DiscriminatorConfig):
        config = resolver
    else:
        config = DiscriminatorConfig(resolver=resolver)
    cache = cache or default_pointer_cache

    array_length = -1
    element_name = ""
    key_name = ""

    if m := ARRAY_PATTERN.match(type_name):
        try:
            array_length = int(m.group(1))
        except ValueError as e:
            raise InvalidDiscriminatorTypeError(type_name, "invalid array length in") from e
        element_name = m.group(2)
    elif m := SLICE_PATTERN.match(type_name):
        element_name = m.group(1)
    elif m := MAP_PATTERN.match(type_name):
        key_name = m.group(1)
        element_name = m.group(2)

    if not element_name:
        descriptor = _lookup(type_name, config, cache)
        if descriptor is None:
            raise InvalidDiscriminatorTypeError(type_name)
        logger.debug("resolved discriminator type %r", type_name)
        return descriptor

    element = _lookup(element_name, config, cache)

    if key_name:
        key = _lookup(key_name, config, cache)
        if key is None or not _is_valid_key(key):
            raise InvalidDiscriminatorTypeError(key_name, "invalid map key type")
        if element is None:
            raise InvalidDiscriminatorTypeError(element_name, "invalid map element type")
        descriptor = Map(key=key, element=element)
    else:
        if element is None:
            raise InvalidDiscriminatorTypeError(element_name, "invalid array/slice element type")
        if array_length > -1:
            descriptor = Array(length=array_length, element=element)
        else:
            descriptor = Slice(element=element)

    if type_name.startswith("*"):
        descriptor = cache.pointer_to(descriptor)

    logger.debug("resolved discriminator type %r", type_name)
    return descriptor


# =============================================================================
# Resolvers
# =============================================================================


def registry_resolver(*types: type) -> dict[str, type]:
    """
    Build a resolver for a fixed set of classes.

    Each class is registered under its bare name and under its
    ``module.qualname``, so payloads written with or without WITH_PATH
    both resolve.

    Example:
        >>> dec.set_discriminator("_t", "_v", registry_resolver(CMYK, ColorGroup))
    """
    registry: dict[str, type] = {}
    for cls in types:
        registry[declared_name(cls)] = cls
        registry[declared_name(cls, with_path=True)] = cls
    return registry


def import_resolver(type_name: str, modules: Iterable[str] | None = None) -> Any:
    """
    Resolve a ``module.qualname`` type name by importing the module.

    Warning:
        Without ``modules`` this imports whatever module the payload
        names. Do not use it unrestricted on untrusted input.

    Args:
        type_name: Path-qualified name, as written in WITH_PATH mode.
        modules: Module names (and their submodules) that may be
            imported. Names outside them resolve to None.

    Returns None when the name has no module part, the module is not
    allowed or cannot be imported, or the attribute does not exist.

    Example:
        >>> resolver = functools.partial(import_resolver, modules=["myapp.models"])
        >>> dec.set_discriminator("_t", "_v", resolver)
    """
    if modules is not None:
        modules = tuple(modules)
    module_name, _, qualname = type_name.rpartition(".")
    while module_name:
        if modules is not None and not _allowed_module(module_name, modules):
            return None
        try:
            obj = importlib.import_module(module_name)
        except ImportError:
            # Nested classes: "pkg.mod.Outer.Inner" -> module "pkg.mod".
            module_name, _, head = module_name.rpartition(".")
            qualname = f"{head}.{qualname}"
            continue
        for part in qualname.split("."):
            obj = getattr(obj, part, None)
            if obj is None:
                return None
        return obj
    return None


def _allowed_module(module_name: str, modules: Iterable[str]) -> bool:
    return any(module_name == m or module_name.startswith(f"{m}.") for m in modules)
