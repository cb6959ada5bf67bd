# vboycore

Hardware components of a Virtual Boy emulator in plain Python, with no
third-party dependencies. Each component is a class that keeps its own state,
is driven by timestamps in master-clock cycles, and talks to the rest of the
system through a `SystemHooks` object.

## Modules

- `vboycore.events` – identifiers `Event`, `IrqSource` and `Mode3D`, the
  constants `MASTER_CLOCK` and `EVENT_NONONO`, and `SystemHooks`. The base
  `SystemHooks` records what it is told: `events` (next timestamp per event),
  `irq_lines` (level per interrupt source) and `exit_requested`; it also offers
  `next_event()` and `pending_irqs()`. Subclass it to act on the calls.
- `vboycore.timer` – `Timer`, the 16-bit down-counting interval timer with
  reload and zero interrupt, and `TimerRegister` for debugger access through
  `get_register` / `set_register`.
- `vboycore.pad` – `Pad`, the game pad and its serial read-out unit. Attach a
  buffer whose first two bytes hold the buttons (little-endian) with
  `set_input`, then call `frame()` once per frame.
- `vboycore.blip` – `BlipBuffer`, which accumulates amplitude steps at
  fixed-point output positions, and `BlipSynth`, which adds scaled steps to it.
- `vboycore.vsu` – `VSU`, the six-channel sound unit (five wavetable voices,
  one noise voice, sweep and modulation on voice 5) writing into a left and a
  right `BlipBuffer`.
- `vboycore.vip_render` – `Surface` (a 32-bit pixel list), `make_color`,
  `ColorTables` / `build_color_tables`, `needs_slow_anaglyph`,
  `build_hli_lut`, `display_rect`, and `ColumnRenderer`, which copies one
  framebuffer column to a surface in anaglyph, CyberScope, side-by-side,
  vertical-line or horizontal-line interlaced layout.
- `vboycore.vip` – `VIP`, the video processor: framebuffers, character RAM,
  display RAM, display and drawing timing, interrupts (`Interrupt`) and
  registers (`VipRegister`).
- `vboycore.savestate` – the chunked save-state format: `StateMem`,
  `state_action`, `save_state`, `load_state`, the field builders `scalar`,
  `boolean`, `array` and `nested`, and `StateError`.
- `vboycore.options` – `CoreOption`, the default definitions
  `OPTION_DEFS_US`, `find_option` and `legacy_variables`, which gives each
  option's `"description; default|other|..."` string.
- `vboycore.bits` – `bits_or_bits`, `bits_clear_bits`, `bits_any_set` over
  lists of 32-bit words, and `Bits256`, a set of 256 flags.

## Example: timer and a save state

```python
from vboycore.events import IrqSource, SystemHooks
from vboycore.savestate import StateMem, load_state, save_state
from vboycore.timer import Timer

hooks = SystemHooks()
timer = Timer(hooks)
timer.power()
timer.write(0, 0x18, 0x10)   # reload value, low byte
timer.write(0, 0x20, 0x09)   # enable the timer and its zero interrupt
timer.update(40_000)
print(hooks.irq_lines[IrqSource.TIMER])

mem = StateMem()
save_state(mem, timer.state_action)   # header, then the TIMER section
snapshot = mem.getvalue()

restored = Timer(SystemHooks())
load_state(StateMem(snapshot), restored.state_action)
```

`save_state` writes a 32-byte header and calls `action(mem, 0)`;
`load_state` checks the header and calls `action(mem, version)`. To save
several components, pass a function that calls each one's `state_action` in
turn. Errors are raised as `StateError`.

## Example: video output

```python
from vboycore.events import Mode3D, SystemHooks
from vboycore.vip import VIP
from vboycore.vip_render import Surface

vip = VIP(SystemHooks())
vip.set_3d_mode(Mode3D.SIDEBYSIDE)
surface = Surface()
x, y, w, h = vip.start_frame(surface)
vip.update(400_000)          # runs display timing and copies columns
```

`VIP` takes an optional `draw_block(vip, block)` callable. It is called for
each 8-row block of a drawing frame and must return `(left_rows, right_rows)`:
for each eye, 8 rows of at least 384 two-bit pixel levels, which the VIP packs
into its framebuffer.

## Example: sound

```python
from vboycore.blip import BlipBuffer
from vboycore.vsu import VSU

left, right = BlipBuffer(100_000), BlipBuffer(100_000)
vsu = VSU(left, right)
vsu.write(0, 0x400 + 0x04, 0xFF)    # voice 1: full left and right level
vsu.end_frame(50_000)
```

With the default factor a `BlipBuffer` holds one position per clock, so its
size must exceed the timestamps used in a frame; `offset_resampled` raises
`ValueError` otherwise.

## What the package does not do

- There is no CPU, memory bus, cartridge loading or run loop; components are
  driven by calling their `read`, `write` and `update` methods with
  timestamps.
- The VIP does not render backgrounds or objects itself; that is left to the
  `draw_block` callable.
- `BlipBuffer` only accumulates steps; it does not filter them into output
  samples, and there is no audio or video output to a device.
- There is no frontend and no command-line program.

## Tests

Install with the `test` extra and run `pytest`.