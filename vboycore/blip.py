"""Band-limited step synthesis into a resampling buffer."""

from __future__ import annotations

BUFFER_ACCURACY = 32
PHASE_BITS = 8
WIDEST_IMPULSE = 16
BUFFER_EXTRA = WIDEST_IMPULSE + 2
RES = 1 << PHASE_BITS
SAMPLE_BITS = 30
SAMPLE_MAX = 32767


def _s32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


class BlipBuffer:
    """Accumulates amplitude deltas at resampled (fixed-point) positions."""

    def __init__(self, size: int, factor: int = 1 << BUFFER_ACCURACY,
                 offset: int = 0) -> None:
        if size <= 0:
            raise ValueError("buffer size must be positive")
        self.size = size
        self.factor = factor
        self.offset = offset
        self.buffer = [0] * (size + BUFFER_EXTRA)

    def resampled_time(self, t: int) -> int:
        """Convert a clock timestamp to a fixed-point output sample position."""
        return t * self.factor + self.offset

    def samples_avail(self) -> int:
        """Number of whole output samples ready to be read."""
        return self.offset >> BUFFER_ACCURACY


class BlipSynth:
    """Adds scaled amplitude steps to a BlipBuffer."""

    def __init__(self) -> None:
        self.delta_factor = 0

    def set_volume(self, volume: float, range: int) -> None:
        """Scale so that a step of ``range`` produces ``volume`` of full output."""
        if range == 0:
            raise ValueError("range must be non-zero")
        self.delta_factor = int(volume * (1.0 / abs(range)) * (1 << SAMPLE_BITS) + 0.5)

    def offset(self, t: int, delta: int, buffer: BlipBuffer) -> None:
        """Add an amplitude step of ``delta`` at clock time ``t``."""
        self.offset_resampled(t * buffer.factor + buffer.offset, delta, buffer)

    def offset_resampled(self, time: int, delta: int, buffer: BlipBuffer) -> None:
        """Add an amplitude step at fixed-point sample position ``time``."""
        index = _s32(time >> BUFFER_ACCURACY)
        if not 0 <= index < buffer.size:
            raise ValueError("time is beyond the end of the buffer")
        delta = _s32(delta * self.delta_factor)
        phase = (time >> (BUFFER_ACCURACY - PHASE_BITS)) & (RES - 1)

        buf = buffer.buffer
        left = _s32(buf[index] + delta)
        right = _s32((delta >> PHASE_BITS) * phase)
        left = _s32(left - right)
        right = _s32(right + buf[index + 1])

        buf[index] = left
        buf[index + 1] = right