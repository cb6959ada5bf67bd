"""Chunked save-state format: sections of named, little-endian variables."""

from __future__ import annotations

import enum
import logging
import os
import struct
from dataclasses import dataclass
from typing import Any, Callable, MutableSequence, Sequence

logger = logging.getLogger(__name__)

STATE_VERSION = 931
LINK_SIZE = 0xFFFFFFFF

_MAGIC = b"MDFNSVST"
_LEGACY_MAGIC = b"MEDNAFENSVESTATE"
_HEADER_SIZE = 32
_SECTION_NAME_SIZE = 32
_MAX_NAME = 255

_ARRAY_CODES = {1: "B", 2: "H", 4: "I", 8: "Q"}


class StateError(Exception):
    """Raised when a state cannot be written or read back."""


class StateFlag(enum.IntFlag):
    """Per-variable flags describing how the data is laid out."""

    NONE = 0
    RLSB = 0x80000000
    RLSB32 = 0x40000000
    RLSB16 = 0x20000000
    RLSB64 = 0x10000000
    BOOL = 0x08000000


_ARRAY_FLAGS = {
    1: StateFlag.NONE,
    2: StateFlag.RLSB16,
    4: StateFlag.RLSB32,
    8: StateFlag.RLSB64,
}


class StateMem:
    """A growable in-memory stream holding a save state."""

    def __init__(self, data: bytes = b"", initial_malloc: int = 0) -> None:
        self._buf = bytearray(data)
        self.loc = 0
        self.initial_malloc = initial_malloc

    def __len__(self) -> int:
        return len(self._buf)

    @property
    def remaining(self) -> int:
        return len(self._buf) - self.loc

    def read(self, size: int) -> bytes:
        """Read exactly ``size`` bytes, or raise without moving."""
        if size < 0 or self.loc + size > len(self._buf):
            raise StateError("unexpected end of state data")
        chunk = bytes(self._buf[self.loc:self.loc + size])
        self.loc += size
        return chunk

    def write(self, data: bytes) -> int:
        """Write ``data`` at the current position, growing as needed."""
        self._buf[self.loc:self.loc + len(data)] = data
        self.loc += len(data)
        return len(data)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move the position; SEEK_END counts ``offset`` back from the end."""
        if whence == os.SEEK_SET:
            self.loc = offset
        elif whence == os.SEEK_END:
            self.loc = len(self._buf) - offset
        elif whence == os.SEEK_CUR:
            self.loc += offset
        else:
            raise ValueError(f"invalid whence: {whence}")

        if self.loc > len(self._buf):
            self.loc = len(self._buf)
            raise StateError("seek past end of state data")
        if self.loc < 0:
            self.loc = 0
            raise StateError("seek before start of state data")
        return self.loc

    def getvalue(self) -> bytes:
        return bytes(self._buf)


def _write_u32(mem: StateMem, value: int) -> None:
    mem.write((value & 0xFFFFFFFF).to_bytes(4, "little"))


def _read_u32(mem: StateMem) -> int:
    return int.from_bytes(mem.read(4), "little")


@dataclass(frozen=True)
class Field:
    """One saved variable, or a link to a nested list of them."""

    name: str
    size: int
    flags: StateFlag = StateFlag.NONE
    dump: Callable[[], bytes] | None = None
    load: Callable[[bytes], None] | None = None
    children: tuple[Field, ...] = ()

    @property
    def is_link(self) -> bool:
        return self.size == LINK_SIZE


def scalar(name: str, get: Callable[[], int], set: Callable[[int], None],
           width: int = 4, signed: bool = False) -> Field:
    """A single integer variable stored in ``width`` little-endian bytes."""
    mask = (1 << (8 * width)) - 1

    def dump() -> bytes:
        return (int(get()) & mask).to_bytes(width, "little")

    def load(data: bytes) -> None:
        set(int.from_bytes(data, "little", signed=signed))

    return Field(name, width, StateFlag.RLSB, dump, load)


def boolean(name: str, get: Callable[[], Any], set: Callable[[bool], None]) -> Field:
    """A boolean variable stored as one byte."""

    def dump() -> bytes:
        return b"\x01" if get() else b"\x00"

    def load(data: bytes) -> None:
        set(bool(data[0]))

    return Field(name, 1, StateFlag.RLSB | StateFlag.BOOL, dump, load)


def array(name: str, items: MutableSequence[int], width: int = 1,
          signed: bool = False) -> Field:
    """A fixed-length list (or bytearray) of integers, updated in place on load."""
    if width not in _ARRAY_CODES:
        raise ValueError(f"unsupported element width: {width}")
    count = len(items)
    code = _ARRAY_CODES[width]
    load_code = code.lower() if signed else code
    mask = (1 << (8 * width)) - 1

    def dump() -> bytes:
        if len(items) != count:
            raise StateError(f"array {name!r} changed length")
        return struct.pack(f"<{count}{code}", *(v & mask for v in items))

    def load(data: bytes) -> None:
        items[:] = struct.unpack(f"<{count}{load_code}", data)

    return Field(name, count * width, _ARRAY_FLAGS[width], dump, load)


def nested(fields: Sequence[Field]) -> Field:
    """A link that splices another list of fields in place."""
    return Field("", LINK_SIZE, children=tuple(fields))


def _write_fields(mem: StateMem, fields: Sequence[Field]) -> None:
    for field in fields:
        if not field.size:
            continue
        if field.is_link:
            _write_fields(mem, field.children)
            continue
        if field.dump is None:
            continue
        name = field.name.encode("ascii")[:_MAX_NAME]
        data = field.dump()
        if len(data) != field.size:
            raise StateError(
                f"variable {field.name!r} produced {len(data)} bytes, expected {field.size}"
            )
        mem.write(bytes([len(name)]) + name)
        _write_u32(mem, field.size)
        mem.write(data)


def _find(name: bytes, fields: Sequence[Field]) -> Field | None:
    for field in fields:
        if not field.size:
            continue
        if field.is_link:
            found = _find(name, field.children)
            if found is not None:
                return found
        elif field.load is not None and field.name.encode("ascii") == name:
            return field
    return None


def _read_chunk(mem: StateMem, fields: Sequence[Field], size: int) -> None:
    end = mem.loc + size
    while mem.loc < end:
        name_len = mem.read(1)[0]
        name = mem.read(name_len)
        recorded = _read_u32(mem)
        field = _find(name, fields)
        label = name.decode("latin-1")
        if field is None:
            logger.warning("Unknown variable in save state: %s", label)
            mem.seek(recorded, os.SEEK_CUR)
        elif recorded != field.size:
            logger.warning("Variable in save state wrong size: %s.  Need: %d, got: %d",
                           label, field.size, recorded)
            mem.seek(recorded, os.SEEK_CUR)
        else:
            field.load(mem.read(recorded))


def _section_name(name: str) -> bytes:
    raw = name.encode("ascii")
    if len(raw) > _SECTION_NAME_SIZE:
        logger.warning("Section name is too long: %s", name)
    return raw[:_SECTION_NAME_SIZE].ljust(_SECTION_NAME_SIZE, b"\0")


def _write_section(mem: StateMem, name: str, fields: Sequence[Field]) -> int:
    mem.write(_section_name(name))
    _write_u32(mem, 0)
    data_start = mem.loc
    _write_fields(mem, fields)
    end = mem.loc
    mem.seek(data_start - 4)
    _write_u32(mem, end - data_start)
    mem.seek(end)
    return end - data_start


def state_action(mem: StateMem, load: int, fields: Sequence[Field], name: str,
                 optional: bool = False) -> None:
    """Save the section ``name`` or, when ``load`` is true, restore it.

    Loading scans the chunks from the current position and returns there
    afterwards.
    """
    if not load:
        if not _write_section(mem, name, fields):
            raise StateError(f"section {name!r} holds no data")
        return

    target = name.encode("ascii")[:_SECTION_NAME_SIZE]
    total = 0
    found = False
    while mem.remaining >= _SECTION_NAME_SIZE:
        raw_name = mem.read(_SECTION_NAME_SIZE)
        chunk_size = _read_u32(mem)
        total += chunk_size + _SECTION_NAME_SIZE + 4
        if raw_name.split(b"\0", 1)[0] == target:
            try:
                _read_chunk(mem, fields, chunk_size)
            except StateError as exc:
                raise StateError(f"error reading chunk: {name}") from exc
            found = True
            break
        mem.seek(chunk_size, os.SEEK_CUR)

    try:
        mem.seek(-total, os.SEEK_CUR)
    except StateError as exc:
        raise StateError("reverse seek error") from exc

    if not found and not optional:
        raise StateError(f"section missing: {name}")


def save_state(mem: StateMem, action: Callable[[StateMem, int], Any]) -> None:
    """Write the state header, then let ``action`` write its sections."""
    header = bytearray(_HEADER_SIZE)
    header[:len(_MAGIC)] = _MAGIC
    header[16:20] = STATE_VERSION.to_bytes(4, "little")
    mem.write(bytes(header))

    action(mem, 0)

    size = mem.loc
    mem.seek(16 + 4)
    _write_u32(mem, size)


def load_state(mem: StateMem, action: Callable[[StateMem, int], Any]) -> int:
    """Check the state header and hand its version to ``action``; return the version."""
    header = mem.read(_HEADER_SIZE)
    if header[:16] != _LEGACY_MAGIC and header[:8] != _MAGIC:
        raise StateError("not a save state")
    version = int.from_bytes(header[16:20], "little")
    action(mem, version)
    return version