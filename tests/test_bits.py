import pytest

from vboycore.bits import Bits256, bits_any_set, bits_clear_bits, bits_or_bits


def test_or_then_clear_round_trip():
    a = [0x0F, 0x100]
    b = [0xF0, 0x1]
    bits_or_bits(a, b)
    assert a == [0xFF, 0x101]
    bits_clear_bits(a, b)
    assert a == [0x0F, 0x100]


def test_clear_keeps_words_32_bit():
    a = [0xFFFFFFFF]
    bits_clear_bits(a, [0xFFFFFFFF])
    assert a == [0]


def test_any_set():
    assert bits_any_set([0, 0, 4]) is True
    assert bits_any_set([0, 0, 0]) is False
    assert bits_any_set([]) is False


def test_set_get_clear():
    bits = Bits256()
    for bit in (0, 31, 32, 255):
        bits.set(bit)
        assert bits.get(bit) is True
    assert bits.get(1) is False
    bits.clear(31)
    assert bits.get(31) is False
    assert bits.get(32) is True


def test_word_layout():
    bits = Bits256()
    bits.set(32)
    assert bits.data[1] == 1
    assert bits_any_set(bits.data[2:]) is False


def test_clear_all():
    bits = Bits256()
    bits.set(100)
    bits.clear_all()
    assert bits.data == [0] * 8
    assert bits.get(100) is False


def test_out_of_range_bit():
    bits = Bits256()
    with pytest.raises(IndexError):
        bits.set(256)
    with pytest.raises(IndexError):
        bits.get(-1)


def test_wrong_word_count():
    with pytest.raises(ValueError):
        Bits256([0] * 4)