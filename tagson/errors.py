"""
Error types raised by the tagson codec.

Every error is a ValueError subclass so callers that only care about
"the payload was bad" can catch ValueError. The discriminator errors
carry structured attributes (offset, type name, kind) for diagnostics.

Malformed JSON syntax is not reinterpreted: the standard library's
json.JSONDecodeError is raised unchanged.
"""

from __future__ import annotations

from typing import Optional


class TagsonError(ValueError):
    """Base class for all tagson errors."""


# =============================================================================
# Discriminator Errors
# =============================================================================


class MalformedDiscriminatorObjectError(TagsonError):
    """The tagged object's tokens were out of phase (missing ':', ',' or '}')."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (offset {offset})"
        super().__init__(f"tagson: malformed discriminator object: {message}")


class MissingDiscriminatorError(TagsonError):
    """The object was scanned completely without finding a required field."""

    def __init__(self, message: str = "missing discriminator"):
        super().__init__(f"tagson: {message}")


class InvalidDiscriminatorTypeFieldValueError(TagsonError):
    """The type field's value is not a JSON string."""

    def __init__(self, offset: int):
        self.offset = offset
        super().__init__(f"tagson: discriminator type at offset {offset} is not string")


class InvalidDiscriminatorTypeError(TagsonError):
    """A type name did not resolve through the scalar table or the resolver."""

    def __init__(self, type_name: str, message: Optional[str] = None):
        self.type_name = type_name
        super().__init__(f"tagson: {message or 'invalid discriminator type'}: {type_name}")


class UnsupportedDiscriminatorKindError(TagsonError):
    """A materialized value cannot be stored in the destination slot."""

    def __init__(self, kind, detail: Optional[str] = None):
        self.kind = kind
        message = f"tagson: unsupported discriminator kind: {kind}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class UnsupportedScalarKindError(TagsonError):
    """Channel, function, invalid or complex kinds, which JSON cannot carry."""

    def __init__(self, kind, detail: Optional[str] = None):
        self.kind = kind
        message = f"tagson: unsupported kind: {kind}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# =============================================================================
# Base Codec Errors
# =============================================================================


class UnmarshalTypeError(TagsonError):
    """A JSON value does not fit the type it is being decoded into."""

    def __init__(self, found: str, type_name: str, offset: int, detail: Optional[str] = None):
        self.found = found
        self.type_name = type_name
        self.offset = offset
        message = f"tagson: cannot unmarshal {found} into value of type {type_name} (offset {offset})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnknownFieldError(TagsonError):
    """An object member has no matching struct field and unknown fields are disallowed."""

    def __init__(self, field_name: str, type_name: str):
        self.field_name = field_name
        self.type_name = type_name
        super().__init__(f"tagson: unknown field {field_name!r} for type {type_name}")


class UnsupportedTypeError(TagsonError):
    """A Python annotation or class has no JSON representation."""

    def __init__(self, annotation):
        self.annotation = annotation
        super().__init__(f"tagson: unsupported type: {annotation!r}")


class UnsupportedValueError(TagsonError):
    """A value of a supported type cannot be encoded (e.g. NaN, wrong type for its field)."""

    def __init__(self, value, detail: str):
        self.value = value
        super().__init__(f"tagson: unsupported value {value!r}: {detail}")
