"""
Tests for decoding, with and without type tags.

Tests cover:
1. Tagged values in open slots
2. Lookahead errors (missing, non-string and malformed tags)
3. Unsupported kinds and bounded slots
4. Decoder options (unknown fields, use_number)
5. Plain typed decoding and base codec errors
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from io import StringIO
from typing import Any, Optional, Union

import pytest
from pydantic import BaseModel

from tagson import (
    Decoder,
    DiscriminatorConfig,
    InvalidDiscriminatorTypeError,
    InvalidDiscriminatorTypeFieldValueError,
    Kind,
    MalformedDiscriminatorObjectError,
    MissingDiscriminatorError,
    UnknownFieldError,
    UnmarshalTypeError,
    UnsupportedDiscriminatorKindError,
    UnsupportedScalarKindError,
    loads,
)


@dataclass
class CMYK:
    Cyan: int
    Magenta: int
    Yellow: int
    Key: int


class Point(BaseModel):
    x: int
    y: int


class Shape(ABC):
    @abstractmethod
    def area(self) -> float:
        ...


@dataclass
class Square(Shape):
    side: float

    def area(self) -> float:
        return self.side * self.side


@dataclass
class Drawing:
    title: str
    shape: Shape


CONFIG = DiscriminatorConfig("_t", "_v", resolver={"CMYK": CMYK, "Point": Point, "Square": Square})


def decode(data, type_=Any, **kwargs):
    """Decode with the short tag names and the test resolver."""
    return loads(data, type_, discriminator=CONFIG, **kwargs)


# =============================================================================
# 1. Tagged Values
# =============================================================================

class TestTaggedValues:
    """Tagged objects in open slots come back as their concrete type."""

    def test_wrapped_scalars(self):
        data = '[{"_t":"int","_v":1},{"_t":"string","_v":"a"},{"_t":"bool","_v":true},{"_t":"float64","_v":1.5}]'
        assert decode(data, list[Any]) == [1, "a", True, 1.5]

    def test_array_becomes_tuple(self):
        assert decode('{"_t":"[3]int","_v":[220,20,60]}') == (220, 20, 60)

    def test_slice_becomes_list(self):
        assert decode('{"_t":"[]string","_v":["a","b"]}') == ["a", "b"]

    def test_tagged_struct(self):
        """Struct members sit beside the tag; the tag is not a field."""
        data = '{"_t":"CMYK","Cyan":0,"Magenta":92,"Yellow":58,"Key":12}'
        assert decode(data) == CMYK(0, 92, 58, 12)

    def test_tagged_pydantic_model(self):
        assert decode('{"_t":"Point","x":1,"y":2}') == Point(x=1, y=2)

    def test_tagged_map(self):
        assert decode('{"_t":"map[string]int","a":1,"b":2}') == {"a": 1, "b": 2}

    def test_tagged_map_with_integer_keys(self):
        assert decode('{"_t":"map[int]string","1":"a"}') == {1: "a"}

    def test_pointer_tags_are_transparent(self):
        assert decode('{"_t":"*int","_v":5}') == 5
        assert decode('{"_t":"*int","_v":null}') is None
        assert decode('{"_t":"*CMYK","Cyan":1,"Magenta":2,"Yellow":3,"Key":4}') == CMYK(1, 2, 3, 4)

    def test_tag_after_value(self):
        """The type field does not have to come first."""
        assert decode('{"_v":1,"_t":"int"}') == 1

    def test_extra_members_are_ignored(self):
        assert decode('{"_t":"int","note":"x","_v":7}') == 7

    def test_whitespace(self):
        data = '[ { "_t" : "int" ,\n "_v" : 1 } , { "_t" : "string" , "_v" : "x" } ]'
        assert decode(data, list[Any]) == [1, "x"]

    def test_untagged_values_in_open_slots(self):
        assert decode('[1, "a", true, null]', list[Any]) == [1, "a", True, None]

    def test_untagged_nested_array(self):
        """Elements of an untagged array are open slots themselves."""
        data = '[[{"_t":"int","_v":1}, "b"]]'
        assert decode(data, list[Any]) == [[1, "b"]]

    def test_mixed_slice(self):
        data = '{"_t":"[]any","_v":[{"_t":"int","_v":1},{"_t":"string","_v":"a"}]}'
        assert decode(data) == [1, "a"]

    def test_tags_ignored_when_disabled(self):
        assert loads('{"_t":"int","_v":1}') == {"_t": "int", "_v": 1}

    def test_abstract_slot(self):
        data = '{"title":"t","shape":{"_t":"Square","side":2.0}}'
        drawing = decode(data, Drawing)
        assert drawing == Drawing("t", Square(2.0))
        assert drawing.shape.area() == 4.0

    def test_union_slot(self):
        assert decode('{"_t":"string","_v":"x"}', Union[int, str]) == "x"


# =============================================================================
# 2. Lookahead Errors
# =============================================================================

class TestLookaheadErrors:
    """Errors raised while scanning a tagged object."""

    def test_missing_type_field(self):
        with pytest.raises(MissingDiscriminatorError):
            decode('[{"_v":1}]', list[Any])

    def test_empty_type_field(self):
        with pytest.raises(MissingDiscriminatorError):
            decode('{"_t":"","_v":1}')

    def test_empty_object(self):
        with pytest.raises(MissingDiscriminatorError):
            decode("{}")

    def test_missing_value_field(self):
        """Non-object kinds need the value field."""
        with pytest.raises(MissingDiscriminatorError, match="_v"):
            decode('{"_t":"int"}')

    def test_type_field_not_string(self):
        """The error names the absolute offset of the offending value."""
        with pytest.raises(InvalidDiscriminatorTypeFieldValueError) as exc_info:
            decode('[{"_t":1,"_v":2}]', list[Any])
        assert exc_info.value.offset == 7
        assert "offset 7 is not string" in str(exc_info.value)

    def test_missing_colon(self):
        with pytest.raises(MalformedDiscriminatorObjectError):
            decode('[{"_t" "int"}]', list[Any])

    def test_trailing_comma(self):
        with pytest.raises(MalformedDiscriminatorObjectError):
            decode('{"_t":"int",}')

    def test_missing_comma(self):
        with pytest.raises(MalformedDiscriminatorObjectError):
            decode('{"_t":"int" "_v":1}')

    def test_unknown_type_name(self):
        with pytest.raises(InvalidDiscriminatorTypeError) as exc_info:
            decode('{"_t":"RGB","_v":1}')
        assert exc_info.value.type_name == "RGB"

    def test_nested_error_offset_is_absolute(self):
        """Offsets inside a tagged value refer to the whole document."""
        with pytest.raises(UnmarshalTypeError) as exc_info:
            decode('[{"_t":"int8","_v":300}]', list[Any])
        assert exc_info.value.offset == 19


# =============================================================================
# 3. Unsupported Kinds and Bounded Slots
# =============================================================================

class TestUnsupportedKinds:
    """Values that cannot be materialized or stored."""

    @pytest.mark.parametrize("name", ["complex64", "complex128"])
    def test_complex(self, name):
        with pytest.raises(UnsupportedScalarKindError) as exc_info:
            decode(f'{{"_t":"{name}","_v":1}}')
        assert exc_info.value.kind == Kind(name)

    def test_value_outside_union(self):
        with pytest.raises(UnsupportedDiscriminatorKindError):
            decode('{"_t":"float64","_v":1.5}', Union[int, str])

    def test_value_outside_abstract_bound(self):
        with pytest.raises(UnsupportedDiscriminatorKindError):
            decode('{"title":"t","shape":{"_t":"CMYK","Cyan":0,"Magenta":0,"Yellow":0,"Key":0}}', Drawing)

    def test_untagged_value_outside_union(self):
        with pytest.raises(UnmarshalTypeError):
            decode("1.5", Union[int, str])

    def test_integer_overflow(self):
        with pytest.raises(UnmarshalTypeError, match="overflow"):
            decode('{"_t":"uint8","_v":-1}')

    def test_float32_overflow(self):
        with pytest.raises(UnmarshalTypeError, match="overflow"):
            decode('{"_t":"float32","_v":1e39}')

    def test_array_length_mismatch(self):
        with pytest.raises(UnmarshalTypeError, match="expected 3 elements"):
            decode('{"_t":"[3]int","_v":[1,2]}')

    def test_wrong_value_kind(self):
        with pytest.raises(UnmarshalTypeError) as exc_info:
            decode('{"_t":"int","_v":"1"}')
        assert exc_info.value.found == "string"


# =============================================================================
# 4. Decoder Options
# =============================================================================

class TestDecoderOptions:
    """Options carry into tagged values."""

    TAGGED = '[{"_t":"CMYK","Cyan":0,"Magenta":0,"Yellow":0,"Key":0,"Extra":1}]'

    def test_unknown_fields_skipped(self):
        assert decode(self.TAGGED, list[Any]) == [CMYK(0, 0, 0, 0)]

    def test_disallow_unknown_fields(self):
        with pytest.raises(UnknownFieldError) as exc_info:
            decode(self.TAGGED, list[Any], disallow_unknown_fields=True)
        assert exc_info.value.field_name == "Extra"

    def test_use_number_untagged(self):
        result = decode("[1.5, 2]", list[Any], use_number=True)
        assert result == [Decimal("1.5"), 2]
        assert isinstance(result[0], Decimal)

    def test_use_number_tagged_float(self):
        """A float64 tag still yields a float."""
        result = decode('{"_t":"float64","_v":1.5}', use_number=True)
        assert result == 1.5
        assert isinstance(result, float)

    def test_decoder_object(self):
        decoder = Decoder(use_number=True)
        decoder.set_discriminator("kind", "value", {"CMYK": CMYK})
        assert decoder.decode('{"kind":"int","value":3}') == 3
        assert decoder.decode(b'{"kind":"[]string","value":["a"]}') == ["a"]

    def test_empty_field_name_disables(self):
        decoder = Decoder()
        decoder.set_discriminator("_t", "")
        assert decoder.decode('{"_t":"int","_v":1}') == {"_t": "int", "_v": 1}

    def test_load_from_stream(self):
        decoder = Decoder()
        decoder.set_discriminator("_t", "_v")
        assert decoder.load(StringIO('{"_t":"int","_v":1}')) == 1


# =============================================================================
# 5. Plain Typed Decoding
# =============================================================================

class TestTypedDecoding:
    """Decoding into static types, no tags involved."""

    def test_struct(self):
        assert loads('{"Cyan":1,"Magenta":2,"Yellow":3,"Key":4}', CMYK) == CMYK(1, 2, 3, 4)

    def test_missing_struct_field(self):
        with pytest.raises(UnmarshalTypeError):
            loads('{"Cyan":1}', CMYK)

    def test_optional(self):
        assert loads("null", Optional[int]) is None
        assert loads("3", Optional[int]) == 3

    def test_tuple(self):
        assert loads("[1,2,3]", tuple[int, int, int]) == (1, 2, 3)

    def test_map_with_integer_keys(self):
        assert loads('{"1":"a","2":"b"}', dict[int, str]) == {1: "a", 2: "b"}

    def test_bad_integer_key(self):
        with pytest.raises(UnmarshalTypeError):
            loads('{"x":"a"}', dict[int, str])

    def test_type_mismatch(self):
        with pytest.raises(UnmarshalTypeError) as exc_info:
            loads('"x"', int)
        assert exc_info.value.offset == 0
        assert exc_info.value.type_name == "int"

    def test_integers_do_not_fill_strings(self):
        with pytest.raises(UnmarshalTypeError):
            loads("[1]", list[str])

    def test_bytes_input(self):
        assert loads(b"[1, 2]", list[int]) == [1, 2]

    def test_extra_data(self):
        with pytest.raises(json.JSONDecodeError, match="Extra data"):
            loads("1 2", int)

    @pytest.mark.parametrize("data", ["[1,", '{"a" 1}', "[1 2]", "", "{"])
    def test_syntax_errors(self, data):
        """Malformed JSON raises the standard library error."""
        with pytest.raises(json.JSONDecodeError):
            loads(data, dict[str, int] if data.startswith("{") else list[int])
