"""
End-to-end tests: encode with type tags, decode back to the same values.

Tests cover:
1. The ColorGroup example (exact wire form and decode)
2. Round trips per kind through open slots
3. Round trips across encode modes and resolvers
"""

from collections import namedtuple
from dataclasses import dataclass
from typing import Any, Optional

import pytest
from pydantic import BaseModel

from tagson import (
    DiscriminatorConfig,
    EncodeMode,
    InvalidDiscriminatorTypeError,
    UnsupportedTypeError,
    dumps,
    import_resolver,
    loads,
    registry_resolver,
)


@dataclass
class CMYK:
    Cyan: int
    Magenta: int
    Yellow: int
    Key: int


@dataclass
class ColorGroup:
    ID: int
    Name: str
    Colors: list[Any]


class Swatch(BaseModel):
    label: str
    color: Any = None
    backup: Optional[CMYK] = None


class Hex(str):
    pass


@dataclass
class Leaf:
    a: int


class Leaves(list):
    pass


class Scores(list[int]):
    pass


class Pair(tuple):
    pass


Point = namedtuple("Point", "x y")

CONFIG = DiscriminatorConfig(
    "_t", "_v", resolver=registry_resolver(CMYK, ColorGroup, Swatch, Hex, Leaf, Leaves, Scores)
)

GROUP = ColorGroup(
    ID=1,
    Name="Reds",
    Colors=[(220, 20, 60), "Red", CMYK(Cyan=0, Magenta=92, Yellow=58, Key=12), 0x800000],
)

GROUP_JSON = (
    '{"ID":1,"Name":"Reds","Colors":['
    '{"_t":"[3]int","_v":[220,20,60]},'
    '{"_t":"string","_v":"Red"},'
    '{"_t":"CMYK","Cyan":0,"Magenta":92,"Yellow":58,"Key":12},'
    '{"_t":"int","_v":8388608}]}'
)


def roundtrip(obj, type_=Any, mode=EncodeMode.IF_REQUIRED, config=CONFIG):
    """Encode and decode ``obj`` with the same configuration."""
    data = dumps(obj, type_, discriminator=config, mode=mode)
    return loads(data, type_, discriminator=config)


# =============================================================================
# 1. ColorGroup
# =============================================================================

class TestColorGroup:
    """A struct whose list of colors mixes arrays, strings, structs and ints."""

    def test_encode(self):
        assert dumps(GROUP, discriminator=CONFIG) == GROUP_JSON

    def test_decode(self):
        group = loads(GROUP_JSON, ColorGroup, discriminator=CONFIG)
        assert group == GROUP
        assert isinstance(group.Colors[0], tuple)
        assert isinstance(group.Colors[2], CMYK)

    def test_decode_pretty_printed(self):
        data = """
        {
            "ID": 1,
            "Name": "Reds",
            "Colors": [
                {"_t": "[3]int", "_v": [220, 20, 60]},
                {"_t": "string", "_v": "Red"},
                {"_t": "CMYK", "Cyan": 0, "Magenta": 92, "Yellow": 58, "Key": 12},
                {"_t": "int", "_v": 8388608}
            ]
        }
        """
        assert loads(data, ColorGroup, discriminator=CONFIG) == GROUP

    def test_roundtrip_root_value(self):
        data = dumps(GROUP, discriminator=CONFIG, mode=EncodeMode.ROOT_VALUE)
        assert data.startswith('{"_t":"ColorGroup","ID":1')
        assert loads(data, discriminator=CONFIG) == GROUP


# =============================================================================
# 2. Per-Kind Round Trips
# =============================================================================

class TestKinds:
    """Every supported kind survives a trip through an open slot."""

    @pytest.mark.parametrize("value", [
        0,
        -42,
        2**63 - 1,
        3.25,
        True,
        "",
        "héllo",
        (1, 2, 3),
        ("a",),
        ["x", "y"],
        [1, "two", 3.0, None],
        {"a": 1.5},
        {7: "seven"},
        {"count": 1, "label": "x"},
        CMYK(1, 2, 3, 4),
        [CMYK(1, 2, 3, 4), CMYK(5, 6, 7, 8)],
        {"c": CMYK(0, 0, 0, 0)},
        Swatch(label="s", color=(1, 2), backup=CMYK(9, 9, 9, 9)),
        None,
    ])
    def test_value(self, value):
        assert roundtrip([value], list[Any]) == [value]

    def test_named_scalar(self):
        result = roundtrip([Hex("#ff0000")], list[Any])
        assert result == ["#ff0000"]
        assert type(result[0]) is Hex

    def test_untyped_list_subclass(self):
        """A list subclass without parameters holds open slots on both sides."""
        value = Leaves([Leaf(1), "x"])
        data = dumps([value], list[Any], discriminator=CONFIG)
        assert data == (
            '[{"_t":"Leaves","_v":[{"_t":"Leaf","a":1},{"_t":"string","_v":"x"}]}]'
        )
        result = loads(data, list[Any], discriminator=CONFIG)
        assert result == [value]
        assert type(result[0]) is Leaves

    def test_typed_list_subclass(self):
        data = dumps([Scores([1, 2])], list[Any], discriminator=CONFIG)
        assert data == '[{"_t":"Scores","_v":[1,2]}]'
        result = loads(data, list[Any], discriminator=CONFIG)
        assert result == [[1, 2]]
        assert type(result[0]) is Scores

    @pytest.mark.parametrize("value", [Pair((1, 2)), Point(1, 2)])
    def test_untyped_tuple_subclass_is_rejected(self, value):
        """Tuple subclasses without element types have no decodable name."""
        with pytest.raises(UnsupportedTypeError):
            dumps([value], list[Any], discriminator=CONFIG)

    def test_nested_any_in_model(self):
        swatch = Swatch(label="s", color=[CMYK(1, 1, 1, 1), "x"])
        assert roundtrip(swatch, Swatch) == swatch

    def test_deep_nesting(self):
        value = {
            "outer": [{"inner": (1, 2), "label": "x"}, ColorGroup(2, "g", [CMYK(1, 2, 3, 4)])],
            "count": 1,
        }
        assert roundtrip(value) == value


# =============================================================================
# 3. Modes and Resolvers
# =============================================================================

class TestModesAndResolvers:
    """Decoding reads every mode's output."""

    @pytest.mark.parametrize("mode", [
        EncodeMode.IF_REQUIRED,
        EncodeMode.ROOT_VALUE,
        EncodeMode.ALL_OBJECTS,
        EncodeMode.ROOT_VALUE | EncodeMode.ALL_OBJECTS,
    ])
    def test_modes(self, mode):
        assert roundtrip(GROUP, ColorGroup, mode=mode) == GROUP

    def test_with_path_and_import_resolver(self):
        config = DiscriminatorConfig("_t", "_v", resolver=import_resolver)
        data = dumps([CMYK(1, 2, 3, 4)], list[Any], discriminator=config, mode=EncodeMode.WITH_PATH)
        assert f'"{CMYK.__module__}.CMYK"' in data
        assert loads(data, list[Any], discriminator=config) == [CMYK(1, 2, 3, 4)]

    def test_with_path_and_registry_resolver(self):
        """Registries accept both plain and path-qualified names."""
        data = dumps([CMYK(1, 2, 3, 4)], list[Any], discriminator=CONFIG, mode=EncodeMode.WITH_PATH)
        assert loads(data, list[Any], discriminator=CONFIG) == [CMYK(1, 2, 3, 4)]

    def test_callable_resolver(self):
        config = DiscriminatorConfig("_t", "_v", resolver=lambda name: CMYK if name == "CMYK" else None)
        assert roundtrip([CMYK(0, 1, 0, 1)], list[Any], config=config) == [CMYK(0, 1, 0, 1)]

    def test_nested_compound_names_do_not_decode(self):
        """Type names are parsed one level deep, so a map of slices is not readable."""
        data = dumps([{"k": [1, 2]}], list[Any], discriminator=CONFIG)
        assert data == '[{"_t":"map[string][]int","k":[1,2]}]'
        with pytest.raises(InvalidDiscriminatorTypeError):
            loads(data, list[Any], discriminator=CONFIG)
