"""The six-channel sound unit: five wavetable voices and one noise voice."""

from __future__ import annotations

from .blip import BlipBuffer, BlipSynth
from .savestate import Field, StateMem, array, scalar, state_action

CHANNELS = 6
WAVE_TABLES = 5
WAVE_LENGTH = 0x20

_NOISE_CH = 5
_SWEEP_CH = 4

_EFFECTS_PERIOD = 4800
_INTERVAL_PERIOD = 4
_ENVELOPE_PERIOD = 4
_LATCHER_PERIOD = 120

_TAP_LUT = (15 - 1, 11 - 1, 14 - 1, 5 - 1, 9 - 1, 7 - 1, 10 - 1, 12 - 1)


def _s8(value: int) -> int:
    value &= 0xFF
    return value - 0x100 if value & 0x80 else value


class VSU:
    """Virtual sound unit, mixing its voices into a left and a right BlipBuffer."""

    def __init__(self, left: BlipBuffer, right: BlipBuffer) -> None:
        self.left = left
        self.right = right
        self.synth = BlipSynth()
        self.synth.set_volume(1.0 / 6 / 2, 0x400)
        self.last_output = [[0, 0] for _ in range(CHANNELS)]
        self.lfsr = 0
        self.mod_wave_pos = 0
        self.power()

    def power(self) -> None:
        """Reset registers, counters and wave memory to the power-on state."""
        self.sweep_control = 0
        self.sweep_mod_counter = 0
        self.sweep_mod_clock_divider = 1

        self.intl_control = [0] * CHANNELS
        self.left_level = [0] * CHANNELS
        self.right_level = [0] * CHANNELS
        self.frequency = [0] * CHANNELS
        self.env_control = [0] * CHANNELS
        self.ram_address = [0] * CHANNELS

        self.eff_freq = [0] * CHANNELS
        self.envelope = [0] * CHANNELS
        self.wave_pos = [0] * CHANNELS
        self.freq_counter = [0] * CHANNELS
        self.interval_counter = [0] * CHANNELS
        self.envelope_counter = [0] * CHANNELS

        self.effects_clock_divider = [_EFFECTS_PERIOD] * CHANNELS
        self.interval_clock_divider = [_INTERVAL_PERIOD] * CHANNELS
        self.envelope_clock_divider = [_ENVELOPE_PERIOD] * CHANNELS
        self.latcher_clock_divider = [_LATCHER_PERIOD] * CHANNELS

        self.noise_latcher_clock_divider = _LATCHER_PERIOD
        self.noise_latcher = 0

        self.wave_data = [0] * (WAVE_TABLES * WAVE_LENGTH)
        self.mod_data = [0] * WAVE_LENGTH

        self.last_ts = 0

    # Register interface

    def write(self, timestamp: int, address: int, value: int) -> None:
        """Write a byte to wave memory, modulation memory or a channel register."""
        address &= 0x7FF
        value &= 0xFF

        self._update(timestamp)

        if address < 0x280:
            self.wave_data[(address >> 7) * WAVE_LENGTH + ((address >> 2) & 0x1F)] = value & 0x3F
        elif address < 0x400:
            self.mod_data[(address >> 2) & 0x1F] = value
        elif address < 0x600:
            ch = (address >> 6) & 0xF
            if ch >= CHANNELS:
                if address == 0x580 and value & 1:
                    for i in range(CHANNELS):
                        self.intl_control[i] &= 0x7F
            else:
                self._write_channel(ch, (address >> 2) & 0xF, value)

    def _write_channel(self, ch: int, reg: int, value: int) -> None:
        if reg == 0x0:
            self.intl_control[ch] = value & 0xBF
            if value & 0x80:
                self.eff_freq[ch] = self.frequency[ch]
                period = 2048 - self.eff_freq[ch]
                self.freq_counter[ch] = 10 * period if ch == _NOISE_CH else period
                self.interval_counter[ch] = (value & 0x1F) + 1
                self.envelope_counter[ch] = (self.env_control[ch] & 0x7) + 1

                if ch == _SWEEP_CH:
                    self.sweep_mod_counter = (self.sweep_control >> 4) & 7
                    self.sweep_mod_clock_divider = 8 if self.sweep_control & 0x80 else 1
                    self.mod_wave_pos = 0

                self.wave_pos[ch] = 0

                if ch == _NOISE_CH:
                    self.lfsr = 1

                self.effects_clock_divider[ch] = _EFFECTS_PERIOD
                self.interval_clock_divider[ch] = _INTERVAL_PERIOD
                self.envelope_clock_divider[ch] = _ENVELOPE_PERIOD
        elif reg == 0x1:
            self.left_level[ch] = (value >> 4) & 0xF
            self.right_level[ch] = value & 0xF
        elif reg == 0x2:
            self.frequency[ch] = (self.frequency[ch] & 0xFF00) | value
            self.eff_freq[ch] = (self.eff_freq[ch] & 0xFF00) | value
        elif reg == 0x3:
            self.frequency[ch] = (self.frequency[ch] & 0x00FF) | ((value & 0x7) << 8)
            self.eff_freq[ch] = (self.eff_freq[ch] & 0x00FF) | ((value & 0x7) << 8)
        elif reg == 0x4:
            self.env_control[ch] = (self.env_control[ch] & 0xFF00) | value
            self.envelope[ch] = (value >> 4) & 0xF
        elif reg == 0x5:
            self.env_control[ch] &= 0x00FF
            if ch == _SWEEP_CH:
                self.env_control[ch] |= (value & 0x73) << 8
            elif ch == _NOISE_CH:
                self.env_control[ch] |= (value & 0x73) << 8
                self.lfsr = 1
            else:
                self.env_control[ch] |= (value & 0x03) << 8
        elif reg == 0x6:
            self.ram_address[ch] = value & 0xF
        elif reg == 0x7:
            if ch == _SWEEP_CH:
                self.sweep_control = value

    # Synthesis

    def _current_output(self, ch: int) -> tuple[int, int]:
        if not self.intl_control[ch] & 0x80:
            return 0, 0

        if ch == _NOISE_CH:
            wd = self.noise_latcher
        elif self.ram_address[ch] > 4:
            wd = 0
        else:
            wd = self.wave_data[self.ram_address[ch] * WAVE_LENGTH + self.wave_pos[ch]]

        l_ol = self.envelope[ch] * self.left_level[ch]
        if l_ol:
            l_ol = (l_ol >> 3) + 1
        r_ol = self.envelope[ch] * self.right_level[ch]
        if r_ol:
            r_ol = (r_ol >> 3) + 1
        return wd * l_ol, wd * r_ol

    def _emit(self, ch: int, timestamp: int) -> None:
        left, right = self._current_output(ch)
        last = self.last_output[ch]
        self.synth.offset(timestamp, left - last[0], self.left)
        self.synth.offset(timestamp, right - last[1], self.right)
        last[0] = left
        last[1] = right

    def _update(self, timestamp: int) -> None:
        for ch in range(CHANNELS):
            clocks = timestamp - self.last_ts
            running = self.last_ts

            self._emit(ch, running)

            if not self.intl_control[ch] & 0x80:
                continue

            while clocks > 0:
                chunk = min(clocks, self.effects_clock_divider[ch])
                if ch == _NOISE_CH:
                    chunk = min(chunk, self.noise_latcher_clock_divider)
                elif self.eff_freq[ch] >= 2040:
                    chunk = min(chunk, self.latcher_clock_divider[ch])
                else:
                    chunk = min(chunk, self.freq_counter[ch])

                self.freq_counter[ch] -= chunk
                while self.freq_counter[ch] <= 0:
                    if ch == _NOISE_CH:
                        tap = _TAP_LUT[(self.env_control[_NOISE_CH] >> 12) & 0x7]
                        feedback = ((self.lfsr >> 7) & 1) ^ ((self.lfsr >> tap) & 1) ^ 1
                        self.lfsr = ((self.lfsr << 1) & 0x7FFF) | feedback
                        self.freq_counter[ch] += 10 * (2048 - self.eff_freq[ch])
                    else:
                        self.freq_counter[ch] += 2048 - self.eff_freq[ch]
                        self.wave_pos[ch] = (self.wave_pos[ch] + 1) & 0x1F

                self.latcher_clock_divider[ch] -= chunk
                while self.latcher_clock_divider[ch] <= 0:
                    self.latcher_clock_divider[ch] += _LATCHER_PERIOD

                if ch == _NOISE_CH:
                    self.noise_latcher_clock_divider -= chunk
                    if not self.noise_latcher_clock_divider:
                        self.noise_latcher_clock_divider = _LATCHER_PERIOD
                        bit = self.lfsr & 1
                        self.noise_latcher = (bit << 6) - bit

                self.effects_clock_divider[ch] -= chunk
                while self.effects_clock_divider[ch] <= 0:
                    self.effects_clock_divider[ch] += _EFFECTS_PERIOD
                    self._clock_effects(ch)

                clocks -= chunk
                running += chunk
                self._emit(ch, running)

        self.last_ts = timestamp

    def _clock_effects(self, ch: int) -> None:
        self.interval_clock_divider[ch] -= 1
        while self.interval_clock_divider[ch] <= 0:
            self.interval_clock_divider[ch] += _INTERVAL_PERIOD

            if self.intl_control[ch] & 0x20:
                self.interval_counter[ch] -= 1
                if not self.interval_counter[ch]:
                    self.intl_control[ch] &= 0x7F

            self.envelope_clock_divider[ch] -= 1
            while self.envelope_clock_divider[ch] <= 0:
                self.envelope_clock_divider[ch] += _ENVELOPE_PERIOD
                self._clock_envelope(ch)

        if ch == _SWEEP_CH:
            self.sweep_mod_clock_divider -= 1
            while self.sweep_mod_clock_divider <= 0:
                self.sweep_mod_clock_divider += 8 if self.sweep_control & 0x80 else 1
                self._clock_sweep_mod(ch)

    def _clock_envelope(self, ch: int) -> None:
        control = self.env_control[ch]
        if not control & 0x0100:
            return
        self.envelope_counter[ch] -= 1
        if self.envelope_counter[ch]:
            return
        self.envelope_counter[ch] = (control & 0x7) + 1
        if control & 0x0008:
            if self.envelope[ch] < 0xF or control & 0x200:
                self.envelope[ch] = (self.envelope[ch] + 1) & 0xF
        elif self.envelope[ch] > 0 or control & 0x200:
            self.envelope[ch] = (self.envelope[ch] - 1) & 0xF

    def _clock_sweep_mod(self, ch: int) -> None:
        interval = (self.sweep_control >> 4) & 0x7
        control = self.env_control[ch]
        if not (interval and control & 0x4000):
            return

        if self.sweep_mod_counter:
            self.sweep_mod_counter -= 1
        if self.sweep_mod_counter:
            return
        self.sweep_mod_counter = interval

        if control & 0x1000:
            if self.mod_wave_pos < 32 or control & 0x2000:
                self.mod_wave_pos &= 0x1F
                freq = self.eff_freq[ch] + _s8(self.mod_data[self.mod_wave_pos])
                self.eff_freq[ch] = max(0, min(0x7FF, freq))
                self.mod_wave_pos += 1
        else:
            delta = self.eff_freq[ch] >> (self.sweep_control & 0x7)
            new_freq = self.eff_freq[ch] + (delta if self.sweep_control & 0x8 else -delta)
            if new_freq < 0:
                self.eff_freq[ch] = 0
            elif new_freq > 0x7FF:
                self.intl_control[ch] &= 0x7F
            else:
                self.eff_freq[ch] = new_freq

    def end_frame(self, timestamp: int) -> None:
        """Run up to ``timestamp`` and start the next frame at time zero."""
        self._update(timestamp)
        self.last_ts = 0

    # Save states

    def _fields(self) -> list[Field]:
        def var(attr: str, name: str, width: int, signed: bool = False) -> Field:
            return scalar(name, lambda: getattr(self, attr),
                          lambda value: setattr(self, attr, value), width, signed)

        return [
            array("IntlControl", self.intl_control, 1),
            array("LeftLevel", self.left_level, 1),
            array("RightLevel", self.right_level, 1),
            array("Frequency", self.frequency, 2),
            array("EnvControl", self.env_control, 2),
            array("RAMAddress", self.ram_address, 1),
            var("sweep_control", "SweepControl", 1),
            array("&WaveData[0][0]", self.wave_data, 1),
            array("ModData", self.mod_data, 1),
            array("EffFreq", self.eff_freq, 4, signed=True),
            array("Envelope", self.envelope, 4, signed=True),
            array("WavePos", self.wave_pos, 4, signed=True),
            var("mod_wave_pos", "ModWavePos", 4, signed=True),
            array("LatcherClockDivider", self.latcher_clock_divider, 4, signed=True),
            array("FreqCounter", self.freq_counter, 4, signed=True),
            array("IntervalCounter", self.interval_counter, 4, signed=True),
            array("EnvelopeCounter", self.envelope_counter, 4, signed=True),
            var("sweep_mod_counter", "SweepModCounter", 4, signed=True),
            array("EffectsClockDivider", self.effects_clock_divider, 4, signed=True),
            array("IntervalClockDivider", self.interval_clock_divider, 4, signed=True),
            array("EnvelopeClockDivider", self.envelope_clock_divider, 4, signed=True),
            var("sweep_mod_clock_divider", "SweepModClockDivider", 4, signed=True),
            var("noise_latcher_clock_divider", "NoiseLatcherClockDivider", 4, signed=True),
            var("noise_latcher", "NoiseLatcher", 4),
            var("lfsr", "lfsr", 4),
        ]

    def state_action(self, mem: StateMem, load: int) -> None:
        """Save or restore the VSU section."""
        state_action(mem, load, self._fields(), "VSU", False)

    # Debugger access

    def peek_wave(self, which: int, address: int) -> int:
        """Read one sample of wave table ``which`` (0-4)."""
        if not 0 <= which < WAVE_TABLES:
            raise ValueError(f"no wave table {which}")
        return self.wave_data[which * WAVE_LENGTH + (address & 0x1F)]

    def poke_wave(self, which: int, address: int, value: int) -> None:
        """Write one 6-bit sample of wave table ``which`` (0-4)."""
        if not 0 <= which < WAVE_TABLES:
            raise ValueError(f"no wave table {which}")
        self.wave_data[which * WAVE_LENGTH + (address & 0x1F)] = value & 0x3F

    def peek_mod_wave(self, address: int) -> int:
        return self.mod_data[address & 0x1F]

    def poke_mod_wave(self, address: int, value: int) -> None:
        self.mod_data[address & 0x1F] = value & 0xFF