import pytest

from vboycore.options import CoreOption, find_option, legacy_variables


def test_keys_in_source_order():
    assert [key for key, _ in legacy_variables()] == [
        "vb_3dmode",
        "vb_anaglyph_preset",
        "vb_color_mode",
        "vb_right_analog_to_digital",
        "vb_cpu_emulation",
    ]


def test_legacy_value_of_3d_mode():
    assert find_option("vb_3dmode").legacy_value() == (
        "3D mode; anaglyph|cyberscope|side-by-side|vli|hli"
    )


def test_default_missing_from_values_falls_back_to_first():
    option = find_option("vb_cpu_emulation")
    assert option.default_index() == 0
    assert option.legacy_value() == "CPU emulation  (Restart); accurate|fast"


def test_default_moves_to_front():
    option = CoreOption("k", "Desc", None, (("a", None), ("b", None), ("c", None)), "b")
    assert option.default_index() == 1
    assert option.legacy_value() == "Desc; b|a|c"


def test_no_values_or_no_desc_gives_none():
    assert CoreOption("k", "Desc", None, (), "a").legacy_value() is None
    assert CoreOption("k", None, None, (("a", None),), "a").legacy_value() is None


def test_every_legacy_value_lists_all_values_once():
    for key, value in legacy_variables():
        option = find_option(key)
        listed = value.split("; ", 1)[1].split("|")
        assert sorted(listed) == sorted(v for v, _ in option.values)
        assert listed[0] == option.values[option.default_index()][0]


def test_custom_definitions():
    option = CoreOption("x", "X", None, (("on", None),), "on")
    assert legacy_variables([option]) == [("x", "X; on")]
    assert find_option("x", [option]) is option


def test_find_missing_raises():
    with pytest.raises(KeyError):
        find_option("vb_no_such_option")