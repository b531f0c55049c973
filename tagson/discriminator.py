"""
Type tags for values stored in open slots.

Decoding (decode_interface):
    1. lookahead() scans a scratch copy of the tagged object for the type
       field and the position of the value field. The caller's cursor does
       not move.
    2. parse_type_name() resolves the type name.
    3. The value is decoded from the scratch copy: the whole object for
       structs and maps (the tag sits among the struct's own members), only
       the value field for everything else.
    4. The result is checked against the slot, and the caller's cursor
       skips the whole object.

Encoding (encode_interface, object_tag, encode_root):
    Structs and maps reached through an open slot get the type field as
    their first member:

        {"_t":"CMYK","Cyan":0,"Magenta":92,"Yellow":58,"Key":12}

    Any other value is wrapped:

        {"_t":"[3]int","_v":[220,20,60]}

    EncodeMode.ALL_OBJECTS tags every struct and map, and
    EncodeMode.ROOT_VALUE tags the outermost value.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any, Iterator

from tagson.errors import (
    InvalidDiscriminatorTypeFieldValueError,
    MalformedDiscriminatorObjectError,
    MissingDiscriminatorError,
    UnsupportedDiscriminatorKindError,
    UnsupportedScalarKindError,
)
from tagson.grammar import parse_type_name
from tagson.introspect import describe_value, value_kind
from tagson.stypes import COMPLEX_KINDS, UNSUPPORTED_KINDS, Interface, TypeDescriptor

if TYPE_CHECKING:
    from tagson.decode import DecodeState
    from tagson.encode import EncodeState

logger = logging.getLogger(__name__)


# =============================================================================
# Lookahead
# =============================================================================


@contextlib.contextmanager
def scratch_state(state: DecodeState) -> Iterator[DecodeState]:
    """
    A decode state over a private copy of the input from the cursor on.

    The copy carries the caller's options and is released on exit,
    whether the body succeeds or raises.
    """
    scratch = state.clone(state.data[state.off:], origin=state.offset())
    try:
        yield scratch
    finally:
        scratch.release()


def lookahead(state: DecodeState) -> tuple[str, int | None]:
    """
    Find the type name and value position of the object at the cursor.

    Consumes the object from ``state``, which should be a scratch state.

    Returns:
        (type name, offset of the value field's value in ``state.data``
        or None when the object has no value field).

    Raises:
        MalformedDiscriminatorObjectError: On out-of-phase tokens.
        InvalidDiscriminatorTypeFieldValueError: If the type field is not a
            string.
        MissingDiscriminatorError: If the object has no type field.
    """
    config = state.discriminator
    type_name = None
    value_off = None

    if state.peek() != "{":
        raise MalformedDiscriminatorObjectError("expected '{'", state.offset())
    state.off += 1

    first = True
    while True:
        char = state.peek()
        if char == "}" and first:
            state.off += 1
            break
        if char != '"':
            raise MalformedDiscriminatorObjectError("expected object key", state.offset())
        key = state.key()

        if state.peek() != ":":
            raise MalformedDiscriminatorObjectError("expected ':' after object key", state.offset())
        state.off += 1
        state.skip_space()

        val_off = state.off
        value = state.literal()
        if key == config.type_field:
            if not isinstance(value, str):
                raise InvalidDiscriminatorTypeFieldValueError(state.offset(val_off))
            type_name = value
        elif key == config.value_field:
            value_off = val_off

        char = state.peek()
        if char == "}":
            state.off += 1
            break
        if char != ",":
            raise MalformedDiscriminatorObjectError(
                "expected ',' or '}' after object value", state.offset()
            )
        state.off += 1
        first = False

    if not type_name:
        raise MissingDiscriminatorError()
    return type_name, value_off


# =============================================================================
# Decode
# =============================================================================


def _materialize(
    scratch: DecodeState,
    descriptor: TypeDescriptor,
    type_name: str,
    value_off: int | None,
) -> Any:
    target = descriptor.deref()
    if target.kind in UNSUPPORTED_KINDS or target.kind in COMPLEX_KINDS:
        raise UnsupportedScalarKindError(target.kind, type_name)

    if target.is_object:
        # The discriminator members sit among the object's own members.
        scratch.off = 0
    else:
        if value_off is None:
            raise MissingDiscriminatorError(
                f"missing discriminator value field {scratch.discriminator.value_field!r} "
                f"for type {type_name}"
            )
        scratch.off = value_off
    return scratch.value(descriptor)


def decode_interface(state: DecodeState, slot: Interface) -> Any:
    """
    Decode the tagged object at the cursor into a value for ``slot``.

    Raises:
        UnsupportedDiscriminatorKindError: If the decoded value is not an
            instance of the slot's bounds.
        UnsupportedScalarKindError: If the tag names a complex type or a
            type without a JSON form.
    """
    start = state.offset()
    with scratch_state(state) as scratch:
        type_name, value_off = lookahead(scratch)
        descriptor = parse_type_name(type_name, scratch.discriminator, scratch.cache)
        value = _materialize(scratch, descriptor, type_name, value_off)

    state.skip_value()
    logger.debug("decoded %s at offset %d", type_name, start)

    if not slot.accepts(value):
        raise UnsupportedDiscriminatorKindError(
            descriptor.deref().kind,
            f"{type_name} cannot be stored in {slot.type_name()}",
        )
    return value


# =============================================================================
# Encode
# =============================================================================


def _write_type_member(state: EncodeState, descriptor: TypeDescriptor) -> None:
    state.write_string(state.discriminator.type_field)
    state.write(":")
    state.write_string(descriptor.type_name(with_path=state.mode.with_path))


def write_wrapper(state: EncodeState, value: Any, descriptor: TypeDescriptor) -> None:
    """Write ``{"<type field>":"<name>","<value field>":<value>}``."""
    state.write("{")
    _write_type_member(state, descriptor)
    state.write(",")
    state.write_string(state.discriminator.value_field)
    state.write(":")
    state.reflect_value(value, descriptor)
    state.write("}")


def encode_interface(state: EncodeState, value: Any) -> None:
    """
    Write a value stored in an open slot, with its type tag.

    Raises:
        UnsupportedScalarKindError: For callables, queues, iterators and
            other values without a JSON form.
    """
    if value is None:
        state.write("null")
        return

    kind = value_kind(value)
    if kind in UNSUPPORTED_KINDS:
        raise UnsupportedScalarKindError(kind, type(value).__qualname__)

    descriptor = describe_value(value, state.cache)
    if descriptor.is_object:
        state.need_tag = True
        state.reflect_value(value, descriptor)
    else:
        write_wrapper(state, value, descriptor)


def object_tag(state: EncodeState, descriptor: TypeDescriptor) -> bool:
    """
    Write the type member at the start of a struct or map, if required.

    Called right after the opening brace of every struct and map. Clears
    the pending tag request.

    Returns:
        True if a member was written.
    """
    if not state.discriminator.enabled:
        return False
    if not state.need_tag and not state.mode.all_objects:
        return False
    _write_type_member(state, descriptor)
    state.need_tag = False
    return True


def encode_root(state: EncodeState, value: Any, descriptor: TypeDescriptor) -> None:
    """Write the outermost value, tagged when ROOT_VALUE mode asks for it."""
    if not (state.discriminator.enabled and state.mode.root) or value is None:
        state.reflect_value(value, descriptor)
        return

    if isinstance(descriptor, Interface):
        encode_interface(state, value)
    elif descriptor.deref().is_object:
        state.need_tag = True
        state.reflect_value(value, descriptor)
    else:
        write_wrapper(state, value, descriptor)
