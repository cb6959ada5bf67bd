"""The video image processor: VRAM, display timing, drawing schedule and registers."""

from __future__ import annotations

import enum
from typing import Callable, Optional, Sequence, Tuple

from .events import IrqSource, Mode3D, SystemHooks
from .savestate import Field, StateMem, array, scalar, state_action
from .vip_render import (
    ColorTables,
    ColumnRenderer,
    Surface,
    build_color_tables,
    build_hli_lut,
    display_rect,
    needs_slow_anaglyph,
)

FB_SIZE = 0x6000
CHR_RAM_SIZE = 0x8000
DRAM_SIZE = 0x20000

COLUMNS = 384
COLUMN_CLOCKS = 259
BLOCK_CLOCKS = 1120
BLOCKS = 28
REGISTER_BASE = 0x5E000

XPCTRL_XP_RST = 0x0001
XPCTRL_XP_EN = 0x0002

_BAD_REGISTER = 0xDEADBEEF
_MAX_TIME = 128

DrawBlock = Callable[["VIP", int], Tuple[Sequence[Sequence[int]], Sequence[Sequence[int]]]]


class VipRegister(enum.IntEnum):
    """Debugger-visible VIP registers."""

    IPENDING = 0
    IENABLE = 1
    DPCTRL = 2
    BRTA = 3
    BRTB = 4
    BRTC = 5
    REST = 6
    FRMCYC = 7
    XPCTRL = 8
    SPT0 = 9
    SPT1 = 10
    SPT2 = 11
    SPT3 = 12
    GPLT0 = 13
    GPLT1 = 14
    GPLT2 = 15
    GPLT3 = 16
    JPLT0 = 17
    JPLT1 = 18
    JPLT2 = 19
    JPLT3 = 20
    BKCOL = 21


class Interrupt(enum.IntFlag):
    """VIP interrupt sources, as bits of the pending and enable registers."""

    SCAN_ERR = 0x0001
    LFB_END = 0x0002
    RFB_END = 0x0004
    GAME_START = 0x0008
    FRAME_START = 0x0010
    SB_HIT = 0x2000
    XP_END = 0x4000
    TIME_ERR = 0x8000


class VIP:
    """Video unit with its framebuffers, character and display RAM.

    ``draw_block(vip, block)`` renders one 8-row block of the drawing frame and
    returns ``(left_rows, right_rows)``: for each eye, 8 rows of at least 384
    two-bit pixel levels. Without it the framebuffers are left as they are.
    """

    def __init__(self, hooks: SystemHooks, draw_block: Optional[DrawBlock] = None) -> None:
        self.hooks = hooks
        self.draw_block = draw_block

        self.instant_display_hack = False
        self.allow_draw_skip = False
        self.parallax_disabled = False
        self.anaglyph_colors = [0xFF0000, 0x0000FF]
        self.mode_3d = Mode3D.ANAGLYPH
        self.default_color = 0xFFFFFF
        self.reverse_3d = 0
        self.prescale = 1
        self.sbs_separation = 0
        self.hli_lut = build_hli_lut(1)
        self.vid_settings_dirty = True

        self.tables: Optional[ColorTables] = None
        self.renderer: Optional[ColumnRenderer] = None
        self.brightness_cache = [0, 0, 0, 0]
        self.bright_clut = [[0] * 4, [0] * 4]

        self.surface: Optional[Surface] = None
        self.skip = False

        self.fb = bytearray(FB_SIZE * 4)
        self.chr_ram = bytearray(CHR_RAM_SIZE)
        self.dram = bytearray(DRAM_SIZE)
        self.power()

    # Configuration

    def power(self) -> None:
        """Reset registers, timing and video memory to the power-on state."""
        self.repeat = 0
        self.sb_latch = 0
        self.sbout_inactive_time = -1
        self.last_ts = 0

        self.column = 0
        self.column_counter = COLUMN_CLOCKS
        self.display_region = 0
        self.display_fb = 0
        self.game_frame_counter = 0

        self.drawing_counter = 0
        self.drawing_active = False
        self.drawing_fb = 0
        self.drawing_block = 0

        self.dpctrl = 2
        self.display_active = False

        self.fb[:] = bytes(len(self.fb))
        self.chr_ram[:] = bytes(len(self.chr_ram))
        self.dram[:] = bytes(len(self.dram))

        self.interrupt_pending = 0
        self.interrupt_enable = 0

        self.brta = 0
        self.brtb = 0
        self.brtc = 0
        self.rest = 0
        self.frmcyc = 0
        self.xpctrl = 0
        self.sbcmp = 0

        self.spt = [0] * 4
        self.gplt = [0] * 4
        self.jplt = [0] * 4
        self.gplt_cache = [[0] * 4 for _ in range(4)]
        self.jplt_cache = [[0] * 4 for _ in range(4)]
        for i in range(4):
            self._recalc_gplt(i)
            self._recalc_jplt(i)

        self.bkcol = 0

    def set_3d_mode(self, mode: int, reverse: bool = False, prescale: int = 1,
                    sbs_separation: int = 0) -> None:
        if prescale < 1:
            raise ValueError("prescale must be at least 1")
        self.mode_3d = Mode3D(mode)
        self.reverse_3d = 1 if reverse else 0
        self.prescale = prescale
        self.sbs_separation = sbs_separation
        self.hli_lut = build_hli_lut(prescale)
        self.vid_settings_dirty = True

    def set_parallax_disable(self, disabled: bool) -> None:
        self.parallax_disabled = bool(disabled)

    def set_default_color(self, color: int) -> None:
        self.default_color = color & 0xFFFFFF
        self.vid_settings_dirty = True

    def set_anaglyph_colors(self, lcolor: int, rcolor: int) -> None:
        """Set the eye tints as 0xRRGGBB."""
        self.anaglyph_colors = [lcolor & 0xFFFFFF, rcolor & 0xFFFFFF]
        self.vid_settings_dirty = True

    def set_instant_display_hack(self, enabled: bool) -> None:
        self.instant_display_hack = bool(enabled)

    def set_allow_draw_skip(self, enabled: bool) -> None:
        self.allow_draw_skip = bool(enabled)

    # Derived state

    def _recalc_gplt(self, which: int) -> None:
        self.gplt_cache[which] = [(self.gplt[which] >> (i * 2)) & 3 for i in range(4)]

    def _recalc_jplt(self, which: int) -> None:
        self.jplt_cache[which] = [(self.jplt[which] >> (i * 2)) & 3 for i in range(4)]

    def _check_irq(self) -> None:
        self.hooks.assert_irq(IrqSource.VIP, bool(self.interrupt_enable & self.interrupt_pending))

    def _recalc_brightness(self) -> None:
        cumulative = self.brta + 1 + self.brtb + 1 + self.brtc + 1 + self.rest + 1 + 1
        cache = [0, 0, 0, 0]

        for i in range(self.repeat + 1):
            start = i * cumulative
            if start >= _MAX_TIME:
                break
            b1 = max(min(start + self.brta, _MAX_TIME) - start, 0)
            b2 = max(min(start + self.brta + 1 + self.brtb, _MAX_TIME)
                     - (start + self.brta + 1), 0)
            b3 = max(min(start + self.brta + self.brtb + self.brtc + 1, _MAX_TIME)
                     - (start + 1), 0)
            cache[1] += b1
            cache[2] += b2
            cache[3] += b3

        self.brightness_cache = [255 * level // _MAX_TIME for level in cache]
        for lr in range(2):
            if self.tables is None:
                self.bright_clut[lr] = [0] * 4
            else:
                lut = self.tables.color_lut[lr]
                self.bright_clut[lr] = [lut[level] for level in self.brightness_cache]

    def _recalc_3d_mode(self, non_rgb_output: bool) -> None:
        slow = (self.mode_3d not in (Mode3D.CSCOPE, Mode3D.SIDEBYSIDE, Mode3D.VLI, Mode3D.HLI)
                and needs_slow_anaglyph(self.anaglyph_colors, non_rgb_output))
        self.renderer = ColumnRenderer(self.mode_3d, bool(self.reverse_3d), self.prescale,
                                       self.sbs_separation, slow)
        self._recalc_brightness()

    # Frame handling

    def start_frame(self, surface: Surface, skip: bool = False, format_changed: bool = False,
                    non_rgb_output: Optional[bool] = None) -> tuple[int, int, int, int]:
        """Prepare output to ``surface``; return the (x, y, w, h) display rectangle."""
        if non_rgb_output is None:
            non_rgb_output = surface.colorspace != 0
        if format_changed or self.vid_settings_dirty:
            self.tables = build_color_tables(self.mode_3d, bool(self.reverse_3d),
                                             self.anaglyph_colors, self.default_color)
            self._recalc_3d_mode(bool(non_rgb_output))

        self.surface = surface
        self.skip = bool(skip)

        if self.vid_settings_dirty:
            surface.clear()
            self.vid_settings_dirty = False

        return display_rect(self.mode_3d, self.prescale, self.sbs_separation)

    def reset_ts(self) -> None:
        if self.sbout_inactive_time >= 0:
            self.sbout_inactive_time -= self.last_ts
        self.last_ts = 0

    def _eye_offset(self, fb: int, lr: int) -> int:
        return (fb * 2 + lr) * FB_SIZE

    def _copy_column(self) -> None:
        if self.renderer is None or self.surface is None:
            return
        lr = (self.display_region & 2) >> 1
        base = self._eye_offset(self.display_fb, lr)
        slow_lut = self.tables.ana_slow if self.tables is not None else None
        with memoryview(self.fb) as view:
            self.renderer.copy_column(self.surface, view[base:base + FB_SIZE], self.column, lr,
                                      self.display_active, self.bright_clut,
                                      self.brightness_cache, slow_lut)

    def _check_column_table(self, lr: int) -> None:
        ctdata = self._dram16(0x1DFFE - ((self.column >> 2) * 2) - (0 if lr else 0x200))
        if (ctdata >> 8) != self.repeat:
            self.repeat = ctdata >> 8
            self._recalc_brightness()

    def _draw(self, block: int) -> None:
        if self.draw_block is None:
            return
        buffers = self.draw_block(self, block)
        for lr in range(2):
            rows = buffers[lr]
            target = self._eye_offset(self.drawing_fb, lr) + block * 2
            for x in range(COLUMNS):
                pos = target + 64 * x
                self.fb[pos] = (rows[0][x] | (rows[1][x] << 2)
                                | (rows[2][x] << 4) | (rows[3][x] << 6)) & 0xFF
                self.fb[pos + 1] = (rows[4][x] | (rows[5][x] << 2)
                                    | (rows[6][x] << 4) | (rows[7][x] << 6)) & 0xFF

    def _instant_display(self) -> None:
        saved = (self.display_region, self.column, self.repeat)
        for lr in range(2):
            self.display_region = lr << 1
            for column in range(COLUMNS):
                self.column = column
                if not column & 3:
                    self._check_column_table(lr)
                self._copy_column()
        self.display_region, self.column, self.repeat = saved
        self._recalc_brightness()

    def _end_of_line(self) -> None:
        self.column = 0

        if self.display_active and self.display_region & 1:
            self.interrupt_pending |= (Interrupt.RFB_END if self.display_region & 2
                                       else Interrupt.LFB_END)
            self._check_irq()

        self.display_region = (self.display_region + 1) & 3
        if self.display_region:
            return

        self.display_active = bool(self.dpctrl & 0x2)
        if self.display_active:
            self.interrupt_pending |= Interrupt.FRAME_START
            self._check_irq()

        self.game_frame_counter += 1
        if self.game_frame_counter > self.frmcyc:
            self.interrupt_pending |= Interrupt.GAME_START
            self._check_irq()
            if self.xpctrl & XPCTRL_XP_EN:
                self.display_fb ^= 1
                self.drawing_block = 0
                self.drawing_active = True
                self.drawing_counter = BLOCK_CLOCKS * 4
                self.drawing_fb = self.display_fb ^ 1
            self.game_frame_counter = 0

        if not self.skip and self.instant_display_hack:
            self._instant_display()

        self.hooks.exit_loop()

    def update(self, timestamp: int) -> int:
        """Run display and drawing up to ``timestamp``; return the next event time."""
        clocks = timestamp - self.last_ts
        running = timestamp

        while clocks > 0:
            chunk = clocks
            if 0 < self.drawing_counter < chunk:
                chunk = self.drawing_counter
            chunk = min(chunk, self.column_counter)
            running += chunk

            if self.drawing_counter > 0:
                self.drawing_counter -= chunk
                if self.drawing_counter <= 0:
                    if not (self.skip and self.instant_display_hack and self.allow_draw_skip):
                        self._draw(self.drawing_block)
                    self.sbout_inactive_time = running + BLOCK_CLOCKS
                    self.sb_latch = self.drawing_block
                    self.drawing_block += 1
                    if self.drawing_block == BLOCKS:
                        self.drawing_active = False
                        self.interrupt_pending |= Interrupt.XP_END
                        self._check_irq()
                    else:
                        self.drawing_counter += BLOCK_CLOCKS * 4

            self.column_counter -= chunk
            if self.column_counter == 0:
                if self.display_region & 1:
                    if not self.column & 3:
                        self._check_column_table((self.display_region & 2) >> 1)
                    if not self.skip and not self.instant_display_hack:
                        self._copy_column()

                self.column_counter = COLUMN_CLOCKS
                self.column += 1
                if self.column == COLUMNS:
                    self._end_of_line()

            clocks -= chunk

        self.last_ts = timestamp
        return timestamp + self.column_counter

    # Memory access

    def _dram16(self, address: int) -> int:
        address &= 0x1FFFE
        return self.dram[address] | (self.dram[address + 1] << 8)

    def _locate(self, address: int) -> Optional[tuple[bytearray, int]]:
        """Map a VIP address to a (memory, byte offset) pair, or None."""
        segment = address >> 16
        if segment in (0, 1):
            if (address & 0x7FFF) >= 0x6000:
                return self.chr_ram, (address & 0x1FFF) | ((address >> 2) & 0x6000)
            fb = (address >> 15) & 1
            lr = (address >> 16) & 1
            return self.fb, self._eye_offset(fb, lr) + (address & 0x7FFF)
        if segment in (2, 3):
            return self.dram, address & 0x1FFFF
        if segment == 7:
            return self.chr_ram, address & 0x7FFF
        return None

    def _is_register(self, address: int) -> bool:
        return (address >> 16) in (4, 5) and address >= REGISTER_BASE

    def read8(self, timestamp: int, address: int) -> int:
        if self._is_register(address):
            return self._read_register(timestamp, address) & 0xFF
        where = self._locate(address)
        if where is None:
            return 0
        mem, offset = where
        return mem[offset]

    def read16(self, timestamp: int, address: int) -> int:
        if self._is_register(address):
            return self._read_register(timestamp, address)
        where = self._locate(address)
        if where is None:
            return 0
        mem, offset = where
        offset &= ~1
        return mem[offset] | (mem[offset + 1] << 8)

    def write8(self, timestamp: int, address: int, value: int) -> None:
        value &= 0xFF
        if self._is_register(address):
            self._write_register(timestamp, address, value)
            return
        where = self._locate(address)
        if where is not None:
            mem, offset = where
            mem[offset] = value

    def write16(self, timestamp: int, address: int, value: int) -> None:
        value &= 0xFFFF
        if self._is_register(address):
            self._write_register(timestamp, address, value)
            return
        where = self._locate(address)
        if where is not None:
            mem, offset = where
            offset &= ~1
            mem[offset] = value & 0xFF
            mem[offset + 1] = value >> 8

    # Registers

    def _read_register(self, timestamp: int, address: int) -> int:
        reg = address & 0xFE
        ret = 0
        if reg == 0x00:
            ret = self.interrupt_pending
        elif reg == 0x02:
            ret = self.interrupt_enable
        elif reg == 0x20:
            ret = self.dpctrl & 0x702
            if self.display_region & 1 and self.display_active:
                busy = 1 << ((self.display_region >> 1) & 1)
                if self.display_fb:
                    busy <<= 2
                ret |= busy << 2
            ret |= 1 << 6
        elif reg == 0x24:
            ret = self.brta
        elif reg == 0x26:
            ret = self.brtb
        elif reg == 0x28:
            ret = self.brtc
        elif reg == 0x2A:
            ret = self.rest
        elif reg == 0x30:
            ret = 0xFFFF
        elif reg == 0x40:
            ret = self.xpctrl & 0x2
            if self.drawing_active:
                ret |= (1 + self.drawing_fb) << 2
            if timestamp < self.sbout_inactive_time:
                ret |= 0x8000 | (self.sb_latch << 8)
        elif reg == 0x44:
            ret = 2
        elif 0x48 <= reg <= 0x4E:
            ret = self.spt[(address >> 1) & 3]
        elif 0x60 <= reg <= 0x66:
            ret = self.gplt[(address >> 1) & 3]
        elif 0x68 <= reg <= 0x6E:
            ret = self.jplt[(address >> 1) & 3]
        elif reg == 0x70:
            ret = self.bkcol
        return ret & 0xFFFF

    def _write_register(self, timestamp: int, address: int, value: int) -> None:
        reg = address & 0xFE
        if reg == 0x02:
            self.interrupt_enable = value & 0xE01F
            self._check_irq()
        elif reg == 0x04:
            self.interrupt_pending &= ~value & 0xFFFF
            self._check_irq()
        elif reg == 0x22:
            self.dpctrl = value & 0x703
            if value & 1:
                self.display_active = False
                self.interrupt_pending &= ~int(
                    Interrupt.TIME_ERR | Interrupt.FRAME_START | Interrupt.GAME_START
                    | Interrupt.RFB_END | Interrupt.LFB_END | Interrupt.SCAN_ERR) & 0xFFFF
                self._check_irq()
        elif reg in (0x24, 0x26, 0x28, 0x2A):
            attr = {0x24: "brta", 0x26: "brtb", 0x28: "brtc", 0x2A: "rest"}[reg]
            setattr(self, attr, value & 0xFF)
            self._recalc_brightness()
        elif reg == 0x2E:
            self.frmcyc = value & 0xF
        elif reg == 0x42:
            self.xpctrl = value & 0x0002
            self.sbcmp = (value >> 8) & 0x1F
            if value & 1:
                self.drawing_active = False
                self.drawing_counter = 0
                self.interrupt_pending &= ~int(
                    Interrupt.SB_HIT | Interrupt.XP_END | Interrupt.TIME_ERR) & 0xFFFF
                self._check_irq()
        elif 0x48 <= reg <= 0x4E:
            self.spt[(address >> 1) & 3] = value & 0x3FF
        elif 0x60 <= reg <= 0x66:
            which = (address >> 1) & 3
            self.gplt[which] = value & 0xFC
            self._recalc_gplt(which)
        elif 0x68 <= reg <= 0x6E:
            which = (address >> 1) & 3
            self.jplt[which] = value & 0xFC
            self._recalc_jplt(which)
        elif reg == 0x70:
            self.bkcol = value & 0x3

    def get_register(self, reg: int) -> int:
        """Return a debugger register, or 0xDEADBEEF for an unknown one."""
        simple = {
            VipRegister.IPENDING: self.interrupt_pending,
            VipRegister.IENABLE: self.interrupt_enable,
            VipRegister.DPCTRL: self.dpctrl,
            VipRegister.BRTA: self.brta,
            VipRegister.BRTB: self.brtb,
            VipRegister.BRTC: self.brtc,
            VipRegister.REST: self.rest,
            VipRegister.FRMCYC: self.frmcyc,
            VipRegister.XPCTRL: self.xpctrl | (self.sbcmp << 8),
            VipRegister.BKCOL: self.bkcol,
        }
        if reg in simple:
            return simple[reg]
        if VipRegister.SPT0 <= reg <= VipRegister.SPT3:
            return self.spt[reg - VipRegister.SPT0]
        if VipRegister.GPLT0 <= reg <= VipRegister.GPLT3:
            return self.gplt[reg - VipRegister.GPLT0]
        if VipRegister.JPLT0 <= reg <= VipRegister.JPLT3:
            return self.jplt[reg - VipRegister.JPLT0]
        return _BAD_REGISTER

    def set_register(self, reg: int, value: int) -> None:
        """Set a debugger register; unknown registers are ignored."""
        if reg == VipRegister.IPENDING:
            self.interrupt_pending = value & 0xE01F
            self._check_irq()
        elif reg == VipRegister.IENABLE:
            self.interrupt_enable = value & 0xE01F
            self._check_irq()
        elif reg == VipRegister.DPCTRL:
            self.dpctrl = value & 0x703
        elif reg in (VipRegister.BRTA, VipRegister.BRTB, VipRegister.BRTC, VipRegister.REST):
            attr = {VipRegister.BRTA: "brta", VipRegister.BRTB: "brtb",
                    VipRegister.BRTC: "brtc", VipRegister.REST: "rest"}[VipRegister(reg)]
            setattr(self, attr, value & 0xFF)
            self._recalc_brightness()
        elif reg == VipRegister.FRMCYC:
            self.frmcyc = value & 0xF
        elif reg == VipRegister.XPCTRL:
            self.xpctrl = value & 0x2
            self.sbcmp = (value >> 8) & 0x1F
        elif VipRegister.SPT0 <= reg <= VipRegister.SPT3:
            self.spt[reg - VipRegister.SPT0] = value & 0x3FF
        elif VipRegister.GPLT0 <= reg <= VipRegister.GPLT3:
            which = reg - VipRegister.GPLT0
            self.gplt[which] = value & 0xFC
            self._recalc_gplt(which)
        elif VipRegister.JPLT0 <= reg <= VipRegister.JPLT3:
            which = reg - VipRegister.JPLT0
            self.jplt[which] = value & 0xFC
            self._recalc_jplt(which)
        elif reg == VipRegister.BKCOL:
            self.bkcol = value & 0x03

    # Save states

    def _fields(self) -> list[Field]:
        def var(attr: str, name: str, width: int, signed: bool = False,
                as_bool: bool = False) -> Field:
            def setter(value: int) -> None:
                setattr(self, attr, bool(value) if as_bool else value)
            return scalar(name, lambda: int(getattr(self, attr)), setter, width, signed)

        return [
            array("FB[0][0]", self.fb, 1),
            array("CHR_RAM", self.chr_ram, 1),
            array("DRAM", self.dram, 1),
            var("interrupt_pending", "InterruptPending", 2),
            var("interrupt_enable", "InterruptEnable", 2),
            var("brta", "BRTA", 1),
            var("brtb", "BRTB", 1),
            var("brtc", "BRTC", 1),
            var("rest", "REST", 1),
            var("frmcyc", "FRMCYC", 2),
            var("dpctrl", "DPCTRL", 2),
            var("display_active", "DisplayActive", 1, as_bool=True),
            var("xpctrl", "XPCTRL", 2),
            var("sbcmp", "SBCMP", 2),
            array("SPT", self.spt, 2),
            array("GPLT", self.gplt, 2),
            array("JPLT", self.jplt, 2),
            var("bkcol", "BKCOL", 2),
            var("column", "Column", 4, signed=True),
            var("column_counter", "ColumnCounter", 4, signed=True),
            var("display_region", "DisplayRegion", 4, signed=True),
            var("display_fb", "DisplayFB", 1),
            var("game_frame_counter", "GameFrameCounter", 4, signed=True),
            var("drawing_counter", "DrawingCounter", 4, signed=True),
            var("drawing_active", "DrawingActive", 1, as_bool=True),
            var("drawing_fb", "DrawingFB", 1),
            var("drawing_block", "DrawingBlock", 4),
            var("sb_latch", "SB_Latch", 4, signed=True),
            var("sbout_inactive_time", "SBOUT_InactiveTime", 4, signed=True),
            var("repeat", "Repeat", 1),
        ]

    def state_action(self, mem: StateMem, load: int) -> None:
        """Save or restore the VIP section."""
        state_action(mem, load, self._fields(), "VIP", False)
        if load:
            self._recalc_brightness()
            for i in range(4):
                self._recalc_gplt(i)
                self._recalc_jplt(i)