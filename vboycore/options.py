"""Core option definitions and their legacy "desc; default|other|..." form."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence


@dataclass(frozen=True)
class CoreOption:
    """One frontend-configurable option.

    ``values`` holds ``(value, label)`` pairs; a label of ``None`` means the
    value is shown as is. ``desc`` of ``None`` marks an option without a
    legacy description.
    """

    key: str
    desc: Optional[str]
    info: Optional[str]
    values: tuple[tuple[str, Optional[str]], ...]
    default_value: Optional[str]

    def default_index(self) -> int:
        """Position of the default among the values, or 0 when it is absent."""
        index = 0
        if self.default_value is not None:
            for position, (value, _label) in enumerate(self.values):
                if value == self.default_value:
                    index = position
        return index

    def legacy_value(self) -> Optional[str]:
        """The legacy variable string: description, then default first, "|"-joined.

        Returns None when there is no description or there are no values.
        """
        if self.desc is None or not self.values:
            return None
        default = self.default_index()
        ordered = [self.values[default][0]]
        ordered.extend(value for position, (value, _label) in enumerate(self.values)
                       if position != default)
        return f"{self.desc}; " + "|".join(ordered)


def _opt(key: str, desc: str, info: str, values: Sequence[str], default: str) -> CoreOption:
    return CoreOption(key, desc, info, tuple((value, None) for value in values), default)


OPTION_DEFS_US: tuple[CoreOption, ...] = (
    _opt(
        "vb_3dmode",
        "3D mode",
        "Select the 3D mode. Anaglyph - used in conjunction with classic dual-lens-color "
        "glasses. Cyberscope - intended for use with the CyberScope 3D device. sidebyside - "
        "the left-eye image is displayed on the left, and the right-eye image is displayed "
        "on the right. vli - Vertical lines alternate between left and right view. hli - "
        "Horizontal lines alternate between left and right view.",
        ("anaglyph", "cyberscope", "side-by-side", "vli", "hli"),
        "anaglyph",
    ),
    _opt(
        "vb_anaglyph_preset",
        "Anaglyph preset",
        "Anaglyph preset colors.",
        ("disabled", "red & blue", "red & cyan", "red & electric cyan",
         "green & magenta", "yellow & blue"),
        "disabled",
    ),
    _opt(
        "vb_color_mode",
        "Palette",
        "",
        ("black & red", "black & white", "black & blue", "black & cyan",
         "black & electric cyan", "black & green", "black & magenta", "black & yellow"),
        "black & red",
    ),
    _opt(
        "vb_right_analog_to_digital",
        "Right analog to digital",
        "",
        ("disabled", "enabled", "invert x", "invert y", "invert both"),
        "disabled",
    ),
    _opt(
        "vb_cpu_emulation",
        "CPU emulation  (Restart)",
        "Choose between faster and accurate (slower) emulation.",
        ("accurate", "fast"),
        "disabled",
    ),
)


def legacy_variables(definitions: Iterable[CoreOption] = OPTION_DEFS_US
                     ) -> list[tuple[str, Optional[str]]]:
    """The ``(key, legacy value)`` pairs for frontends without the newer option interface."""
    return [(option.key, option.legacy_value()) for option in definitions]


def find_option(key: str, definitions: Iterable[CoreOption] = OPTION_DEFS_US) -> CoreOption:
    """Return the option named ``key``; raise KeyError if there is none."""
    for option in definitions:
        if option.key == key:
            return option
    raise KeyError(key)