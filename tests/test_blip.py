import pytest

from vboycore.blip import BUFFER_ACCURACY, BlipBuffer, BlipSynth


def test_full_volume_unit_range():
    synth = BlipSynth()
    synth.set_volume(1.0, 1)
    assert synth.delta_factor == 1 << 30


def test_negative_range_same_as_positive():
    a = BlipSynth()
    b = BlipSynth()
    a.set_volume(1.0 / 6 / 2, 0x400)
    b.set_volume(1.0 / 6 / 2, -0x400)
    assert a.delta_factor == b.delta_factor
    assert a.delta_factor > 0


def test_zero_range_rejected():
    with pytest.raises(ValueError):
        BlipSynth().set_volume(1.0, 0)


def test_samples_avail_from_offset():
    buf = BlipBuffer(16, offset=5 << BUFFER_ACCURACY)
    assert buf.samples_avail() == 5


def test_resampled_time_whole_samples():
    buf = BlipBuffer(16)
    assert buf.resampled_time(3) >> BUFFER_ACCURACY == 3


def test_offset_on_sample_boundary_touches_one_slot():
    synth = BlipSynth()
    synth.set_volume(1.0, 1024)
    buf = BlipBuffer(16)
    synth.offset(4, 7, buf)
    assert buf.buffer[4] == 7 * synth.delta_factor
    assert buf.buffer[5] == 0
    assert sum(buf.buffer) == 7 * synth.delta_factor


@pytest.mark.parametrize("phase", [1, 37, 128, 255])
def test_fractional_offset_preserves_total(phase):
    synth = BlipSynth()
    synth.set_volume(0.5, 64)
    buf = BlipBuffer(16)
    time = (3 << BUFFER_ACCURACY) | (phase << (BUFFER_ACCURACY - 8))
    synth.offset_resampled(time, -5, buf)
    assert sum(buf.buffer) == -5 * synth.delta_factor
    assert buf.buffer[4] != 0


def test_offsets_accumulate():
    synth = BlipSynth()
    synth.set_volume(1.0, 1024)
    buf = BlipBuffer(16)
    synth.offset(2, 3, buf)
    synth.offset(2, -3, buf)
    assert buf.buffer[2] == 0


def test_offset_past_end_rejected():
    synth = BlipSynth()
    synth.set_volume(1.0, 1)
    buf = BlipBuffer(8)
    with pytest.raises(ValueError):
        synth.offset(8, 1, buf)


def test_invalid_size_rejected():
    with pytest.raises(ValueError):
        BlipBuffer(0)